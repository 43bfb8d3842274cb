"""
Abstract base class for external score feeds.
Defines the contract the reconciler consumes: one snapshot per call.
"""
from __future__ import annotations

import abc

from shared.models.domain import ExternalGame
from shared.utils.http_client import FeedHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class FeedError(Exception):
    """The feed could not produce a snapshot (network, timeout, malformed payload)."""


class ScoresProvider(abc.ABC):
    """
    Source of externally observed games.

    A snapshot carries no stable identifiers and may be empty. Implementations
    raise FeedError for anything that prevents a snapshot from being produced.
    """

    name: str = "base"

    async def start(self) -> None:
        """Acquire network resources."""

    async def close(self) -> None:
        """Release network resources."""

    @abc.abstractmethod
    async def fetch_live_games(self) -> list[ExternalGame]:
        """Return the games the feed currently knows about."""


class HTTPScoresProvider(ScoresProvider):
    """Base for feeds fetched with a FeedHTTPClient; handles client lifecycle."""

    def __init__(self, http_client: FeedHTTPClient) -> None:
        self._http = http_client

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()


class NullProvider(ScoresProvider):
    """Feed disabled: every snapshot is empty."""

    name = "none"

    async def fetch_live_games(self) -> list[ExternalGame]:
        return []

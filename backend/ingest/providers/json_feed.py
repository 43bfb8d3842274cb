"""
Generic JSON score feed.

Expects a list of game objects, or an object with a "games" list. Keys may be
snake_case or camelCase (homeTeam, homeScore, ...). Entries that do not
validate are dropped with a log line; the rest of the snapshot is kept.
"""
from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from shared.config import Settings, get_settings
from shared.models.domain import ExternalGame
from shared.utils.http_client import FeedHTTPClient, FeedHTTPError
from shared.utils.logging import get_logger

from ingest.providers.base import FeedError, HTTPScoresProvider

logger = get_logger(__name__)


def parse_feed(payload: Any) -> list[ExternalGame]:
    if isinstance(payload, dict) and isinstance(payload.get("games"), list):
        payload = payload["games"]
    if not isinstance(payload, list):
        raise FeedError(f"feed payload must be a list, got {type(payload).__name__}")

    games: list[ExternalGame] = []
    for idx, raw in enumerate(payload):
        if raw is None:
            continue
        try:
            games.append(ExternalGame.model_validate(raw))
        except ValidationError as exc:
            logger.warning("feed_entry_invalid", index=idx, errors=exc.error_count())
    return games


class JSONFeedProvider(HTTPScoresProvider):
    name = "json"

    def __init__(
        self,
        url: str | None = None,
        http_client: FeedHTTPClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._url = url or settings.feed_url
        if not self._url:
            raise ValueError("JSON feed provider requires feed_url")
        super().__init__(
            http_client or FeedHTTPClient(self.name, timeout_s=settings.feed_request_timeout_s)
        )

    async def fetch_live_games(self) -> list[ExternalGame]:
        try:
            payload = await self._http.get_json(self._url)
        except FeedHTTPError as exc:
            raise FeedError(str(exc)) from exc
        return parse_feed(payload)

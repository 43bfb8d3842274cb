"""Shared fixtures: an in-memory store, a recording push transport and a scripted feed."""
from __future__ import annotations

import asyncio
from typing import Any, Iterable, Optional

import pytest

from ingest.providers.base import ScoresProvider
from shared.broadcast import BroadcastChannel
from shared.models.domain import ExternalGame, GameCreate
from shared.store import GameStore


class RecordingTransport:
    """PushTransport that remembers every publish instead of delivering it."""

    def __init__(self) -> None:
        self.published: list[tuple[str, str, Any]] = []
        self.published_all: list[tuple[str, Any]] = []
        self.memberships: set[tuple[str, str]] = set()

    async def join(self, connection_id: str, topic: str) -> None:
        self.memberships.add((connection_id, topic))

    async def leave(self, connection_id: str, topic: str) -> None:
        self.memberships.discard((connection_id, topic))

    async def publish(self, topic: str, event: str, payload: Any) -> int:
        self.published.append((topic, event, payload))
        return 1

    async def publish_all(self, event: str, payload: Any) -> int:
        self.published_all.append((event, payload))
        return 1


class ScriptedProvider(ScoresProvider):
    """
    Feed that replays a script of snapshots.

    Each script item is a list of ExternalGame/dicts, or an exception to raise.
    Once the script runs out the last item repeats.
    """

    name = "scripted"

    def __init__(self, *script: Any) -> None:
        self._script = list(script) or [[]]
        self.calls = 0
        self.called = asyncio.Event()

    async def fetch_live_games(self) -> list[ExternalGame]:
        item = self._script[min(self.calls, len(self._script) - 1)]
        self.calls += 1
        self.called.set()
        if isinstance(item, BaseException):
            raise item
        return [g if isinstance(g, ExternalGame) else ExternalGame.model_validate(g) for g in item]


class HangingProvider(ScoresProvider):
    """Feed whose request never completes unless cancelled."""

    name = "hanging"

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled = False

    async def fetch_live_games(self) -> list[ExternalGame]:
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return []


@pytest.fixture
def store() -> GameStore:
    return GameStore()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def broadcast(transport: RecordingTransport) -> BroadcastChannel:
    return BroadcastChannel(transport)


def seed(store: GameStore, games: Iterable[tuple[str, str]], status: Optional[str] = None):
    created = []
    for home, away in games:
        body = GameCreate(home_team=home, away_team=away)
        if status is not None:
            body.status = status
        created.append(store.create(body))
    return created

"""
Group-addressed publish of named events to push subscribers.

Topics are derived from game ids ("game-<id>"). The BroadcastChannel sits
between the writers (HTTP handlers, the reconciler) and whatever push
transport holds the subscriber connections. Delivery is fire-and-forget:
no acknowledgement, no queue, no replay.
"""
from __future__ import annotations

import uuid
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from shared.models.domain import Game, PlayEvent
from shared.models.enums import BroadcastEvent
from shared.utils.logging import get_logger
from shared.utils.metrics import BROADCAST_PUBLISHES

logger = get_logger(__name__)

TOPIC_PREFIX = "game-"


def topic_for_game(game_id: uuid.UUID | str) -> str:
    return f"{TOPIC_PREFIX}{game_id}"


@runtime_checkable
class PushTransport(Protocol):
    """Capabilities the core needs from the subscriber-connection layer."""

    async def join(self, connection_id: str, topic: str) -> None: ...

    async def leave(self, connection_id: str, topic: str) -> None: ...

    async def publish(self, topic: str, event: str, payload: Any) -> int: ...

    async def publish_all(self, event: str, payload: Any) -> int: ...


def _to_wire(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    return payload


class BroadcastChannel:
    """Publishes ScoreUpdated / PlayEvent notifications to game topics."""

    def __init__(self, transport: PushTransport) -> None:
        self._transport = transport

    @property
    def transport(self) -> PushTransport:
        return self._transport

    async def score_updated(self, game: Game) -> bool:
        return await self.publish(topic_for_game(game.id), BroadcastEvent.SCORE_UPDATED, game)

    async def play_added(self, play: PlayEvent) -> bool:
        return await self.publish(topic_for_game(play.game_id), BroadcastEvent.PLAY_EVENT, play)

    async def publish(self, topic: str, event: BroadcastEvent | str, payload: Any) -> bool:
        """
        Deliver one named event to a topic.

        Transport failures are logged and swallowed; returns False when the
        hand-off to the transport failed.
        """
        name = event.value if isinstance(event, BroadcastEvent) else event
        try:
            delivered = await self._transport.publish(topic, name, _to_wire(payload))
        except Exception as exc:
            BROADCAST_PUBLISHES.labels(event=name, outcome="error").inc()
            logger.warning("broadcast_failed", topic=topic, broadcast_event=name, error=str(exc))
            return False

        BROADCAST_PUBLISHES.labels(event=name, outcome="ok").inc()
        logger.debug("broadcast_published", topic=topic, broadcast_event=name, recipients=delivered)
        return True

    async def broadcast_all(self, event: BroadcastEvent | str, payload: Any) -> bool:
        """Administrative broadcast to every connected client, regardless of topic."""
        name = event.value if isinstance(event, BroadcastEvent) else event
        try:
            delivered = await self._transport.publish_all(name, _to_wire(payload))
        except Exception as exc:
            BROADCAST_PUBLISHES.labels(event=name, outcome="error").inc()
            logger.warning("broadcast_all_failed", broadcast_event=name, error=str(exc))
            return False

        BROADCAST_PUBLISHES.labels(event=name, outcome="ok").inc()
        logger.info("broadcast_all_published", broadcast_event=name, recipients=delivered)
        return True

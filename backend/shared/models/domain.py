"""
Pydantic v2 domain models shared by the API, the feed adapters and the reconciler.
These are both the in-memory records and the wire representations.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.models.enums import GameStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class FrozenModel(BaseModel):
    """Immutable record; updates build a new validated instance."""
    model_config = ConfigDict(frozen=True, from_attributes=True)


# ── Games ───────────────────────────────────────────────────────────────
class Game(FrozenModel):
    id: uuid.UUID
    home_team: str = ""
    away_team: str = ""
    home_score: int = Field(default=0, ge=0)
    away_score: int = Field(default=0, ge=0)
    status: str = GameStatus.SCHEDULED.value


class GameCreate(DomainModel):
    """Body for POST /api/games. A supplied id is accepted and ignored."""
    id: Optional[uuid.UUID] = None
    home_team: str = ""
    away_team: str = ""
    home_score: int = Field(default=0, ge=0)
    away_score: int = Field(default=0, ge=0)
    status: str = GameStatus.SCHEDULED.value


class ScoreUpdate(DomainModel):
    home_score: int = Field(ge=0)
    away_score: int = Field(ge=0)
    status: Optional[str] = None


# ── Plays ───────────────────────────────────────────────────────────────
class PlayEvent(FrozenModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    game_id: uuid.UUID
    team: Optional[str] = None
    player: Optional[str] = None
    description: Optional[str] = None  # e.g. "Touchdown, 25 yd run"
    period: Optional[str] = None       # e.g. "Q4"
    clock: Optional[str] = None        # e.g. "02:13"
    timestamp: datetime = Field(default_factory=utcnow)


class PlayCreate(DomainModel):
    team: Optional[str] = None
    player: Optional[str] = None
    description: Optional[str] = None
    period: Optional[str] = None
    clock: Optional[str] = None
    timestamp: Optional[datetime] = None

    def to_play(self, game_id: uuid.UUID) -> PlayEvent:
        """Materialize a stored play: fresh id, timestamp defaulted to now."""
        return PlayEvent(
            id=uuid.uuid4(),
            game_id=game_id,
            team=self.team,
            player=self.player,
            description=self.description,
            period=self.period,
            clock=self.clock,
            timestamp=self.timestamp or utcnow(),
        )


# ── External feed ───────────────────────────────────────────────────────
class ExternalGame(BaseModel):
    """
    One game as reported by an external feed snapshot.

    Every field is optional: None means the feed said nothing about it this
    poll, never "reset to zero".
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    external_id: Optional[str] = None
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    home_score: Optional[int] = Field(default=None, ge=0)
    away_score: Optional[int] = Field(default=None, ge=0)
    status: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


# ── Subscriptions ───────────────────────────────────────────────────────
class SubscribeRequest(DomainModel):
    email: Optional[str] = None


class Subscription(DomainModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    email: str
    created_at: datetime = Field(default_factory=utcnow)


# ── WebSocket messages ──────────────────────────────────────────────────
class WSEventEnvelope(DomainModel):
    """Server → client event message."""
    type: str = "event"
    event: str
    topic: Optional[str] = None
    data: Any = None
    timestamp: datetime = Field(default_factory=utcnow)

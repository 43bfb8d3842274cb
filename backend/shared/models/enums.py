"""Domain enumerations for Gameday Live."""
from __future__ import annotations

from enum import Enum


class GameStatus(str, Enum):
    """
    Well-known status labels.

    Game.status is free-form (a quarter+clock string like "Q4 02:13" is
    valid too); these are the labels the service itself assigns.
    """
    SCHEDULED = "Scheduled"
    LIVE = "Live"
    HALFTIME = "Halftime"
    FINAL = "Final"


class BroadcastEvent(str, Enum):
    """Event names delivered to push subscribers."""
    SCORE_UPDATED = "ScoreUpdated"
    PLAY_EVENT = "PlayEvent"


class WSClientOp(str, Enum):
    JOIN = "join"
    LEAVE = "leave"
    PING = "ping"


class WSServerMsgType(str, Enum):
    STATE = "state"
    EVENT = "event"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"

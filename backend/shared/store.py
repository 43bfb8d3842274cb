"""
In-memory game and play-by-play store.

The store maps game id -> current Game value. Games are immutable: an update
builds a new validated value and swaps it in under the lock, so readers
only ever see whole records. Each game's play list is created together with the game and
kept as a tuple, newest first; appending a play replaces the tuple.

All operations are safe to call from the event loop and from worker threads.
Compound sequences (list, then update) are not atomic: last writer wins.
"""
from __future__ import annotations

import threading
import uuid
from typing import Optional

from shared.models.domain import Game, GameCreate, PlayEvent
from shared.utils.logging import get_logger
from shared.utils.metrics import GAMES_TRACKED

logger = get_logger(__name__)


class GameNotFoundError(LookupError):
    """Raised when a write targets a game id the store does not know."""

    def __init__(self, game_id: uuid.UUID) -> None:
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class GameStore:
    """Single source of truth for Game and PlayEvent state."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._games: dict[uuid.UUID, Game] = {}
        self._plays: dict[uuid.UUID, tuple[PlayEvent, ...]] = {}

    def __len__(self) -> int:
        return len(self._games)

    def list_all(self) -> list[Game]:
        """Snapshot of all games in insertion order."""
        with self._lock:
            return list(self._games.values())

    def get(self, game_id: uuid.UUID) -> Optional[Game]:
        return self._games.get(game_id)

    def exists(self, game_id: uuid.UUID) -> bool:
        return game_id in self._games

    def create(self, candidate: GameCreate | Game) -> Game:
        """
        Insert a new game under a freshly generated id.

        Any id carried by the candidate is ignored. The empty play list is
        created in the same critical section as the game.
        """
        with self._lock:
            game_id = uuid.uuid4()
            while game_id in self._games:
                game_id = uuid.uuid4()
            game = Game(
                id=game_id,
                home_team=candidate.home_team,
                away_team=candidate.away_team,
                home_score=candidate.home_score,
                away_score=candidate.away_score,
                status=candidate.status,
            )
            self._games[game_id] = game
            self._plays[game_id] = ()
            GAMES_TRACKED.set(len(self._games))

        logger.info(
            "game_created",
            game_id=str(game.id),
            home_team=game.home_team,
            away_team=game.away_team,
        )
        return game

    def update_score(
        self,
        game_id: uuid.UUID,
        home_score: int,
        away_score: int,
        status: Optional[str],
    ) -> Optional[Game]:
        """
        Replace score and status of a game.

        Returns the new value, or None when the id is unknown (nothing is
        created). Lower scores than the current ones are accepted; negative
        scores raise pydantic.ValidationError and leave the stored value alone.
        """
        with self._lock:
            current = self._games.get(game_id)
            if current is None:
                return None
            # Revalidated so the non-negative score constraint holds.
            updated = Game.model_validate(
                {
                    **current.model_dump(),
                    "home_score": home_score,
                    "away_score": away_score,
                    "status": status if status is not None else current.status,
                }
            )
            self._games[game_id] = updated
        return updated

    def add_play(self, game_id: uuid.UUID, play: PlayEvent) -> PlayEvent:
        """Prepend a play to its game's history. Raises GameNotFoundError for unknown ids."""
        with self._lock:
            if game_id not in self._games:
                raise GameNotFoundError(game_id)
            self._plays[game_id] = (play, *self._plays.get(game_id, ()))
        return play

    def get_plays(self, game_id: uuid.UUID) -> Optional[tuple[PlayEvent, ...]]:
        """Newest-first snapshot of a game's plays, or None for unknown games."""
        with self._lock:
            if game_id not in self._games:
                return None
            return self._plays.get(game_id, ())

"""
Game REST endpoints.

GET  /api/games                  All games.
POST /api/games                  Create a game.
GET  /api/games/{id}             One game.
GET  /api/games/{id}/plays       Play-by-play, newest first.
POST /api/games/{id}/score       Manual score update; broadcasts ScoreUpdated.
POST /api/games/{id}/plays       Post a play; broadcasts PlayEvent.
POST /api/broadcast              Admin broadcast to every connected client.
"""
from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status

from shared.broadcast import BroadcastChannel
from shared.models.domain import Game, GameCreate, PlayCreate, PlayEvent, ScoreUpdate
from shared.models.enums import BroadcastEvent
from shared.store import GameNotFoundError, GameStore
from shared.utils.logging import get_logger

from api.dependencies import get_broadcast, get_store

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["games"])


@router.get("/games")
async def list_games(store: GameStore = Depends(get_store)) -> list[Game]:
    return store.list_all()


@router.post("/games", status_code=status.HTTP_201_CREATED)
async def create_game(
    body: GameCreate,
    response: Response,
    store: GameStore = Depends(get_store),
) -> Game:
    game = store.create(body)
    response.headers["Location"] = f"/api/games/{game.id}"
    return game


@router.get("/games/{game_id}")
async def get_game(game_id: uuid.UUID, store: GameStore = Depends(get_store)) -> Game:
    game = store.get(game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return game


@router.get("/games/{game_id}/plays")
async def list_plays(game_id: uuid.UUID, store: GameStore = Depends(get_store)) -> list[PlayEvent]:
    plays = store.get_plays(game_id)
    if plays is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return list(plays)


@router.post("/games/{game_id}/score", status_code=status.HTTP_202_ACCEPTED)
async def update_score(
    game_id: uuid.UUID,
    body: ScoreUpdate,
    store: GameStore = Depends(get_store),
    broadcast: BroadcastChannel = Depends(get_broadcast),
) -> Game:
    updated = store.update_score(game_id, body.home_score, body.away_score, body.status)
    if updated is None:
        raise HTTPException(status_code=404, detail="Game not found")

    logger.info(
        "score_updated",
        game_id=str(updated.id),
        home_score=updated.home_score,
        away_score=updated.away_score,
        status=updated.status,
        source="manual",
    )
    await broadcast.score_updated(updated)
    return updated


@router.post("/games/{game_id}/plays", status_code=status.HTTP_201_CREATED)
async def add_play(
    game_id: uuid.UUID,
    body: PlayCreate,
    response: Response,
    store: GameStore = Depends(get_store),
    broadcast: BroadcastChannel = Depends(get_broadcast),
) -> PlayEvent:
    play = body.to_play(game_id)
    try:
        store.add_play(game_id, play)
    except GameNotFoundError:
        raise HTTPException(status_code=404, detail="Game not found")

    logger.info("play_added", game_id=str(game_id), play_id=str(play.id), period=play.period)
    await broadcast.play_added(play)
    response.headers["Location"] = f"/api/games/{game_id}/plays/{play.id}"
    return play


@router.post("/broadcast", status_code=status.HTTP_202_ACCEPTED)
async def broadcast_all(
    payload: dict[str, Any] = Body(...),
    broadcast: BroadcastChannel = Depends(get_broadcast),
) -> dict[str, Any]:
    """Push an arbitrary ScoreUpdated payload to every connected client."""
    delivered = await broadcast.broadcast_all(BroadcastEvent.SCORE_UPDATED, payload)
    return {"accepted": delivered}

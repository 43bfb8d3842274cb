"""
Unit tests for the in-memory game store.

Run: pytest backend/tests/test_store.py -v
"""
from __future__ import annotations

import threading
import uuid

import pytest
from pydantic import ValidationError

from shared.models.domain import Game, GameCreate, PlayEvent
from shared.store import GameNotFoundError, GameStore


def _play(game_id: uuid.UUID, description: str) -> PlayEvent:
    return PlayEvent(game_id=game_id, description=description)


# ── create / exists ─────────────────────────────────────────────────────

def test_create_assigns_fresh_id_and_ignores_supplied_one(store: GameStore) -> None:
    supplied = uuid.uuid4()
    game = store.create(GameCreate(id=supplied, home_team="A", away_team="B"))
    assert game.id != supplied
    assert store.exists(game.id)
    assert not store.exists(supplied)


def test_created_ids_are_unique(store: GameStore) -> None:
    ids = {store.create(GameCreate(home_team="A", away_team="B")).id for _ in range(200)}
    assert len(ids) == 200
    assert len(store) == 200


def test_create_starts_with_empty_play_list(store: GameStore) -> None:
    game = store.create(GameCreate(home_team="A", away_team="B"))
    assert store.get_plays(game.id) == ()


def test_list_all_is_insertion_ordered_snapshot(store: GameStore) -> None:
    first = store.create(GameCreate(home_team="A", away_team="B", status="Final"))
    second = store.create(GameCreate(home_team="C", away_team="D", status="Live"))
    snapshot = store.list_all()
    assert [g.id for g in snapshot] == [first.id, second.id]

    store.create(GameCreate(home_team="E", away_team="F"))
    assert len(snapshot) == 2


# ── update_score ────────────────────────────────────────────────────────

def test_update_score_replaces_value(store: GameStore) -> None:
    game = store.create(GameCreate(home_team="A", away_team="B"))
    updated = store.update_score(game.id, 7, 3, "Q2 04:11")
    assert updated is not None
    assert (updated.home_score, updated.away_score, updated.status) == (7, 3, "Q2 04:11")
    assert store.get(game.id) == updated
    # The old value is untouched: records are immutable.
    assert (game.home_score, game.away_score, game.status) == (0, 0, "Scheduled")


def test_update_score_accepts_lower_scores(store: GameStore) -> None:
    game = store.create(GameCreate(home_team="A", away_team="B", home_score=14))
    updated = store.update_score(game.id, 7, 0, "Live")
    assert updated is not None and updated.home_score == 7


def test_update_score_without_status_keeps_current(store: GameStore) -> None:
    game = store.create(GameCreate(home_team="A", away_team="B", status="Live"))
    updated = store.update_score(game.id, 1, 0, None)
    assert updated is not None and updated.status == "Live"


def test_update_score_unknown_id_returns_none_without_creating(store: GameStore) -> None:
    assert store.update_score(uuid.uuid4(), 1, 1, "Live") is None
    assert len(store) == 0
    assert store.list_all() == []


def test_update_score_rejects_negative_scores(store: GameStore) -> None:
    game = store.create(GameCreate(home_team="A", away_team="B", home_score=3))
    with pytest.raises(ValidationError):
        store.update_score(game.id, -1, 0, "Live")
    assert store.get(game.id) == game


def test_game_records_are_frozen(store: GameStore) -> None:
    game = store.create(GameCreate(home_team="A", away_team="B"))
    with pytest.raises(ValidationError):
        game.home_score = 99  # type: ignore[misc]


# ── plays ───────────────────────────────────────────────────────────────

def test_add_play_is_returned_first(store: GameStore) -> None:
    game = store.create(GameCreate(home_team="A", away_team="B"))
    store.add_play(game.id, _play(game.id, "kickoff"))
    newest = _play(game.id, "touchdown")
    store.add_play(game.id, newest)
    plays = store.get_plays(game.id)
    assert plays is not None
    assert plays[0] == newest


def test_plays_come_back_in_reverse_insertion_order(store: GameStore) -> None:
    game = store.create(GameCreate(home_team="A", away_team="B"))
    added = [_play(game.id, f"play {i}") for i in range(5)]
    for p in added:
        store.add_play(game.id, p)
    assert list(store.get_plays(game.id) or ()) == list(reversed(added))


def test_get_plays_is_a_snapshot(store: GameStore) -> None:
    game = store.create(GameCreate(home_team="A", away_team="B"))
    store.add_play(game.id, _play(game.id, "one"))
    before = store.get_plays(game.id)
    store.add_play(game.id, _play(game.id, "two"))
    assert before is not None and len(before) == 1
    assert isinstance(before, tuple)


def test_add_play_unknown_game_is_rejected(store: GameStore) -> None:
    missing = uuid.uuid4()
    with pytest.raises(GameNotFoundError):
        store.add_play(missing, _play(missing, "orphan"))
    assert store.get_plays(missing) is None


def test_get_plays_unknown_game_returns_none(store: GameStore) -> None:
    assert store.get_plays(uuid.uuid4()) is None


# ── concurrency ─────────────────────────────────────────────────────────

def test_concurrent_writers_from_threads(store: GameStore) -> None:
    game = store.create(GameCreate(home_team="A", away_team="B"))
    per_thread = 50

    def worker(n: int) -> None:
        for i in range(per_thread):
            store.add_play(game.id, _play(game.id, f"t{n}-{i}"))
            store.update_score(game.id, i, n, "Live")
            store.create(GameCreate(home_team=f"H{n}", away_team=f"A{i}"))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    plays = store.get_plays(game.id)
    assert plays is not None and len(plays) == 8 * per_thread
    assert len(store) == 1 + 8 * per_thread
    final = store.get(game.id)
    assert isinstance(final, Game) and final.status == "Live"

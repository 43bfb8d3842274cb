"""
Score reconciliation loop.

Every poll interval the reconciler pulls a snapshot from the external feed,
matches each external game to at most one local game, writes score/status
changes into the GameStore and announces them on the game's topic. Unmatched
games with both team names present are created locally.

Matching is a heuristic: the feed has no stable ids, so an external game is
paired with the first local game whose normalized home AND away team names
are equal. Two local games with the same pairing are ambiguous and the first
one wins. The matcher is injectable so a feed with real ids can replace it.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from shared.broadcast import BroadcastChannel
from shared.config import Settings, effective_poll_interval, get_settings
from shared.models.domain import ExternalGame, Game, GameCreate
from shared.models.enums import GameStatus
from shared.store import GameStore
from shared.utils.logging import get_logger
from shared.utils.metrics import (
    RECONCILE_CHANGES,
    RECONCILE_CYCLES,
    RECONCILE_DURATION,
    atrack_latency,
)

from ingest.providers.base import FeedError, ScoresProvider

logger = get_logger(__name__)

GameMatcher = Callable[[ExternalGame, Sequence[Game]], Optional[Game]]


def normalize_team(name: Optional[str]) -> str:
    return (name or "").strip().casefold()


def match_by_team_names(external: ExternalGame, local_games: Sequence[Game]) -> Optional[Game]:
    """First local game whose normalized home and away names both equal the external ones."""
    home = normalize_team(external.home_team)
    away = normalize_team(external.away_team)
    for game in local_games:
        local_home = normalize_team(game.home_team)
        local_away = normalize_team(game.away_team)
        if not local_home or not local_away:
            continue
        if local_home == home and local_away == away:
            return game
    return None


@dataclass
class CycleResult:
    """Counters for one reconciliation cycle."""
    fetched: int = 0
    updated: int = 0
    created: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: int = 0
    feed_error: bool = False
    cancelled: bool = False

    @property
    def outcome(self) -> str:
        if self.cancelled:
            return "cancelled"
        if self.feed_error:
            return "feed_error"
        if self.fetched == 0:
            return "empty"
        return "ok"


class _Shutdown(Exception):
    """Internal: shutdown was requested while waiting on the feed."""


class ScoreReconciler:
    """
    Background worker keeping local games in step with the external feed.

    run() loops until stop() is called or the task is cancelled; both are a
    normal shutdown. A feed failure or a bad entry is logged and the loop
    carries on.
    """

    def __init__(
        self,
        provider: ScoresProvider,
        store: GameStore,
        broadcast: BroadcastChannel,
        settings: Settings | None = None,
        interval_s: float | None = None,
        matcher: GameMatcher = match_by_team_names,
    ) -> None:
        self._provider = provider
        self._store = store
        self._broadcast = broadcast
        self._settings = settings or get_settings()
        # An explicit interval bypasses the settings floor (tests drive short cycles).
        self._interval = (
            interval_s if interval_s is not None
            else effective_poll_interval(self._settings.scores_poll_interval_s)
        )
        self._matcher = matcher
        self._shutdown = asyncio.Event()
        self._cycles = 0

    @property
    def interval_s(self) -> float:
        return self._interval

    @property
    def cycles(self) -> int:
        return self._cycles

    @property
    def stopping(self) -> bool:
        return self._shutdown.is_set()

    def stop(self) -> None:
        """Request shutdown; the loop exits at its next wait point."""
        self._shutdown.set()

    # ── Loop ────────────────────────────────────────────────────────────

    async def run(self) -> None:
        logger.info(
            "score_reconciler_started",
            interval_s=self._interval,
            provider=getattr(self._provider, "name", type(self._provider).__name__),
        )
        try:
            while not self._shutdown.is_set():
                result = await self.run_cycle()
                if result.cancelled:
                    break
                if await self._sleep():
                    break
        except asyncio.CancelledError:
            logger.info("score_reconciler_cancelled")
        finally:
            logger.info("score_reconciler_stopped", cycles=self._cycles)

    async def _sleep(self) -> bool:
        """Wait one interval. Returns True if shutdown was requested meanwhile."""
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            return False
        return True

    # ── Cycle ───────────────────────────────────────────────────────────

    async def run_cycle(self) -> CycleResult:
        """Fetch one snapshot and apply it. Never raises for feed or entry errors."""
        result = CycleResult()
        self._cycles += 1

        try:
            snapshot = await self._fetch()
        except _Shutdown:
            result.cancelled = True
            return result
        except Exception as exc:
            # FeedError is the expected case; anything else from the adapter is treated the same.
            result.feed_error = True
            RECONCILE_CYCLES.labels(outcome=result.outcome).inc()
            logger.warning(
                "feed_fetch_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                unexpected=not isinstance(exc, FeedError),
            )
            return result

        result.fetched = len(snapshot)
        if not snapshot:
            RECONCILE_CYCLES.labels(outcome=result.outcome).inc()
            logger.debug("feed_snapshot_empty")
            return result

        local_games = self._store.list_all()
        async with atrack_latency(RECONCILE_DURATION):
            for entry in snapshot:
                if entry is None:
                    continue
                try:
                    await self._reconcile_entry(entry, local_games, result)
                except Exception as exc:
                    result.errors += 1
                    RECONCILE_CHANGES.labels(kind="error").inc()
                    logger.error(
                        "reconcile_entry_failed",
                        home_team=getattr(entry, "home_team", None),
                        away_team=getattr(entry, "away_team", None),
                        error=str(exc),
                        exc_info=True,
                    )

        RECONCILE_CYCLES.labels(outcome=result.outcome).inc()
        logger.debug(
            "reconcile_cycle_done",
            fetched=result.fetched,
            updated=result.updated,
            created=result.created,
            unchanged=result.unchanged,
            skipped=result.skipped,
            errors=result.errors,
        )
        return result

    async def _fetch(self) -> list[ExternalGame]:
        """Race the feed request against shutdown so a hung fetch cannot block stop()."""
        if self._shutdown.is_set():
            raise _Shutdown()

        fetch_task = asyncio.ensure_future(self._provider.fetch_live_games())
        stop_task = asyncio.ensure_future(self._shutdown.wait())
        try:
            await asyncio.wait({fetch_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            if not fetch_task.done():
                fetch_task.cancel()

        if not fetch_task.done() or self._shutdown.is_set():
            raise _Shutdown()
        if fetch_task.cancelled():
            # Cancelled from inside the provider, not by stop(): a failed cycle.
            raise FeedError(f"{self._provider.name} feed request was cancelled")
        return list(fetch_task.result() or [])

    async def _reconcile_entry(
        self, entry: ExternalGame, local_games: list[Game], result: CycleResult
    ) -> None:
        match = self._matcher(entry, local_games)
        if match is not None:
            updated = await self._apply_update(match, entry, result)
            if updated is not None:
                # Later entries in this snapshot compare against the stored value.
                for idx, game in enumerate(local_games):
                    if game.id == updated.id:
                        local_games[idx] = updated
                        break
            return

        if not normalize_team(entry.home_team) or not normalize_team(entry.away_team):
            result.skipped += 1
            RECONCILE_CHANGES.labels(kind="skipped").inc()
            logger.debug(
                "external_game_unmatchable",
                home_team=entry.home_team,
                away_team=entry.away_team,
                external_id=entry.external_id,
            )
            return

        created = self._store.create(
            GameCreate(
                home_team=entry.home_team.strip(),
                away_team=entry.away_team.strip(),
                home_score=entry.home_score if entry.home_score is not None else 0,
                away_score=entry.away_score if entry.away_score is not None else 0,
                status=entry.status if entry.status is not None else GameStatus.LIVE.value,
            )
        )
        local_games.append(created)
        result.created += 1
        RECONCILE_CHANGES.labels(kind="created").inc()
        logger.info(
            "external_game_created",
            game_id=str(created.id),
            home_team=created.home_team,
            away_team=created.away_team,
            external_id=entry.external_id,
        )
        await self._broadcast.score_updated(created)

    async def _apply_update(self, local: Game, entry: ExternalGame, result: CycleResult) -> Optional[Game]:
        home = entry.home_score if entry.home_score is not None else local.home_score
        away = entry.away_score if entry.away_score is not None else local.away_score
        status = entry.status if entry.status is not None else local.status

        if (home, away, status) == (local.home_score, local.away_score, local.status):
            result.unchanged += 1
            RECONCILE_CHANGES.labels(kind="unchanged").inc()
            return None

        updated = self._store.update_score(local.id, home, away, status)
        if updated is None:
            result.skipped += 1
            logger.warning("matched_game_vanished", game_id=str(local.id))
            return None

        result.updated += 1
        RECONCILE_CHANGES.labels(kind="updated").inc()
        logger.info(
            "score_updated",
            game_id=str(updated.id),
            home_team=updated.home_team,
            away_team=updated.away_team,
            home_score=updated.home_score,
            away_score=updated.away_score,
            status=updated.status,
            source="feed",
        )
        await self._broadcast.score_updated(updated)
        return updated

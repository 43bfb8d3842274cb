"""
ESPN scoreboard feed.
Fetches ESPN's public site scoreboard for one league and maps each event to an ExternalGame.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from shared.config import Settings, get_settings
from shared.models.domain import ExternalGame
from shared.models.enums import GameStatus
from shared.utils.http_client import FeedHTTPClient, FeedHTTPError
from shared.utils.logging import get_logger

from ingest.providers.base import FeedError, HTTPScoresProvider

logger = get_logger(__name__)

ESPN_BASE = "https://site.api.espn.com/apis/site/v2/sports"

ESPN_FIXED_STATUS: dict[str, str] = {
    "STATUS_SCHEDULED": GameStatus.SCHEDULED.value,
    "STATUS_HALFTIME": GameStatus.HALFTIME.value,
    "STATUS_FINAL": GameStatus.FINAL.value,
    "STATUS_FULL_TIME": GameStatus.FINAL.value,
    "STATUS_FINAL_OVERTIME": GameStatus.FINAL.value,
}

_LIVE_STATUSES = {"STATUS_IN_PROGRESS", "STATUS_END_PERIOD"}


def _safe_score(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, dict):
        raw = raw.get("value", raw.get("displayValue"))
    try:
        value = int(float(raw))
    except (TypeError, ValueError):
        return None
    return value if value >= 0 else None


def _parse_time(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def _period_label(period: int) -> str:
    return f"Q{period}" if 1 <= period <= 4 else "OT"


def status_label(status_obj: dict[str, Any]) -> Optional[str]:
    """
    Turn an ESPN competition status into a display label.

    Live games become "<period> <clock>" (e.g. "Q4 02:13"); a break at the
    end of a period becomes "End Q2".
    """
    type_obj = status_obj.get("type") or {}
    if not isinstance(type_obj, dict):
        type_obj = {}
    name = type_obj.get("name") or ""

    if name in ESPN_FIXED_STATUS:
        return ESPN_FIXED_STATUS[name]

    if name in _LIVE_STATUSES:
        try:
            period = int(status_obj.get("period", 0))
        except (TypeError, ValueError):
            period = 0
        if period <= 0:
            return GameStatus.LIVE.value
        label = _period_label(period)
        if name == "STATUS_END_PERIOD":
            return f"End {label}"
        clock = status_obj.get("displayClock")
        return f"{label} {clock}" if clock else label

    detail = type_obj.get("shortDetail") or type_obj.get("description")
    return detail or None


def parse_scoreboard(payload: Any) -> list[ExternalGame]:
    """Map an ESPN scoreboard body to ExternalGames; unusable events are skipped."""
    if not isinstance(payload, dict) or not isinstance(payload.get("events"), list):
        raise FeedError("espn scoreboard payload has no events list")

    games: list[ExternalGame] = []
    for event in payload["events"]:
        if not isinstance(event, dict):
            continue
        competitions = event.get("competitions")
        if not competitions or not isinstance(competitions, list):
            logger.debug("espn_event_no_competitions", espn_id=event.get("id"))
            continue
        comp = competitions[0]
        competitors = comp.get("competitors") or []
        home = next((c for c in competitors if c.get("homeAway") == "home"), None)
        away = next((c for c in competitors if c.get("homeAway") == "away"), None)
        if home is None or away is None:
            continue

        status_obj = comp.get("status", event.get("status", {}))
        if not isinstance(status_obj, dict):
            status_obj = {}

        try:
            games.append(
                ExternalGame(
                    external_id=str(event["id"]) if event.get("id") is not None else None,
                    home_team=(home.get("team") or {}).get("displayName"),
                    away_team=(away.get("team") or {}).get("displayName"),
                    home_score=_safe_score(home.get("score")),
                    away_score=_safe_score(away.get("score")),
                    status=status_label(status_obj),
                    start_time=_parse_time(event.get("date")),
                )
            )
        except ValidationError as exc:
            logger.debug("espn_event_invalid", espn_id=event.get("id"), error=str(exc))
    return games


class ESPNScoreboardProvider(HTTPScoresProvider):
    """Polls site.api.espn.com/.../<sport>/<league>/scoreboard."""

    name = "espn"

    def __init__(
        self,
        league_path: str | None = None,
        http_client: FeedHTTPClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._league_path = (league_path or settings.espn_league_path).strip("/")
        super().__init__(
            http_client
            or FeedHTTPClient(self.name, ESPN_BASE, timeout_s=settings.feed_request_timeout_s)
        )

    async def fetch_live_games(self) -> list[ExternalGame]:
        try:
            payload = await self._http.get_json(f"/{self._league_path}/scoreboard")
        except FeedHTTPError as exc:
            raise FeedError(str(exc)) from exc
        return parse_scoreboard(payload)

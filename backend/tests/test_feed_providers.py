"""
Tests for the feed adapters: payload parsing, HTTP error mapping and provider selection.
Run: pytest backend/tests/test_feed_providers.py -v
"""
from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from ingest.providers.base import FeedError, NullProvider
from ingest.providers.espn import ESPNScoreboardProvider, parse_scoreboard, status_label
from ingest.providers.json_feed import JSONFeedProvider, parse_feed
from ingest.providers.registry import build_provider
from shared.config import FeedProviderName, Settings
from shared.utils.http_client import FeedHTTPClient

FEED_URL = "https://feed.example.test/live.json"


def _client(handler: Callable[[httpx.Request], httpx.Response], provider: str = "json") -> FeedHTTPClient:
    return FeedHTTPClient(provider, timeout_s=2.0, transport=httpx.MockTransport(handler))


def _espn_event(
    home: str,
    away: str,
    home_score: Any = "0",
    away_score: Any = "0",
    status: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "id": "401547",
        "date": "2026-10-17T19:30Z",
        "competitions": [
            {
                "competitors": [
                    {"homeAway": "home", "score": home_score, "team": {"displayName": home}},
                    {"homeAway": "away", "score": away_score, "team": {"displayName": away}},
                ],
                "status": status or {"type": {"name": "STATUS_SCHEDULED"}},
            }
        ],
    }


# ── JSON feed parsing ───────────────────────────────────────────────────

def test_parse_feed_accepts_camel_and_snake_case() -> None:
    games = parse_feed([
        {"homeTeam": "Gators", "awayTeam": "Tigers", "homeScore": 7, "awayScore": 3, "status": "Q2 04:11"},
        {"home_team": "Bulldogs", "away_team": "Vols"},
    ])
    assert [(g.home_team, g.home_score, g.status) for g in games] == [
        ("Gators", 7, "Q2 04:11"),
        ("Bulldogs", None, None),
    ]


def test_parse_feed_accepts_wrapped_games_list() -> None:
    [game] = parse_feed({"games": [{"homeTeam": "A", "awayTeam": "B"}]})
    assert game.away_team == "B"


def test_parse_feed_drops_invalid_entries() -> None:
    games = parse_feed([
        {"homeTeam": "A", "awayTeam": "B", "homeScore": -4},
        None,
        {"homeTeam": "C", "awayTeam": "D", "homeScore": 10},
    ])
    assert [g.home_team for g in games] == ["C"]


@pytest.mark.parametrize("payload", [{"error": "down"}, "games", 42])
def test_parse_feed_rejects_other_shapes(payload: Any) -> None:
    with pytest.raises(FeedError):
        parse_feed(payload)


# ── ESPN parsing ────────────────────────────────────────────────────────

def test_parse_scoreboard_maps_competitors() -> None:
    payload = {"events": [_espn_event("Florida Gators", "LSU Tigers", "21", "17")]}
    [game] = parse_scoreboard(payload)
    assert game.home_team == "Florida Gators"
    assert game.away_team == "LSU Tigers"
    assert (game.home_score, game.away_score) == (21, 17)
    assert game.status == "Scheduled"
    assert game.external_id == "401547"
    assert game.start_time is not None and game.start_time.year == 2026


def test_parse_scoreboard_unreadable_score_is_absent() -> None:
    [game] = parse_scoreboard({"events": [_espn_event("A", "B", "", {"value": 3})]})
    assert game.home_score is None
    assert game.away_score == 3


def test_parse_scoreboard_skips_events_without_both_sides() -> None:
    broken = _espn_event("A", "B")
    broken["competitions"][0]["competitors"].pop()
    payload = {"events": [broken, {"id": "1"}, _espn_event("C", "D")]}
    assert [g.home_team for g in parse_scoreboard(payload)] == ["C"]


def test_parse_scoreboard_requires_events_list() -> None:
    with pytest.raises(FeedError):
        parse_scoreboard({"leagues": []})


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        ({"type": {"name": "STATUS_IN_PROGRESS"}, "period": 4, "displayClock": "02:13"}, "Q4 02:13"),
        ({"type": {"name": "STATUS_IN_PROGRESS"}, "period": 5, "displayClock": "10:00"}, "OT 10:00"),
        ({"type": {"name": "STATUS_END_PERIOD"}, "period": 2}, "End Q2"),
        ({"type": {"name": "STATUS_IN_PROGRESS"}}, "Live"),
        ({"type": {"name": "STATUS_HALFTIME"}}, "Halftime"),
        ({"type": {"name": "STATUS_FINAL"}}, "Final"),
        ({"type": {"name": "STATUS_POSTPONED", "shortDetail": "Postponed"}}, "Postponed"),
        ({}, None),
    ],
)
def test_status_label(status: dict[str, Any], expected: str | None) -> None:
    assert status_label(status) == expected


# ── HTTP error mapping ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_json_provider_fetches_snapshot() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json=[{"homeTeam": "A", "awayTeam": "B", "homeScore": 3}])

    provider = JSONFeedProvider(FEED_URL, _client(handler))
    await provider.start()
    try:
        [game] = await provider.fetch_live_games()
    finally:
        await provider.close()
    assert seen == [FEED_URL]
    assert game.home_score == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(500, text="boom"),
        lambda request: httpx.Response(200, text="<html>not json</html>"),
    ],
    ids=["server-error", "not-json"],
)
async def test_json_provider_bad_responses_raise_feed_error(
    handler: Callable[[httpx.Request], httpx.Response],
) -> None:
    provider = JSONFeedProvider(FEED_URL, _client(handler))
    await provider.start()
    try:
        with pytest.raises(FeedError):
            await provider.fetch_live_games()
    finally:
        await provider.close()


@pytest.mark.asyncio
async def test_json_provider_timeout_raises_feed_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow feed", request=request)

    provider = JSONFeedProvider(FEED_URL, _client(handler))
    await provider.start()
    try:
        with pytest.raises(FeedError, match="timed out"):
            await provider.fetch_live_games()
    finally:
        await provider.close()


@pytest.mark.asyncio
async def test_json_provider_connection_error_raises_feed_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    provider = JSONFeedProvider(FEED_URL, _client(handler))
    await provider.start()
    try:
        with pytest.raises(FeedError):
            await provider.fetch_live_games()
    finally:
        await provider.close()


@pytest.mark.asyncio
async def test_espn_provider_requests_league_scoreboard() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"events": [_espn_event("A", "B", "7", "0")]})

    client = FeedHTTPClient(
        "espn",
        "https://site.api.espn.com/apis/site/v2/sports",
        transport=httpx.MockTransport(handler),
    )
    provider = ESPNScoreboardProvider("football/college-football", client)
    await provider.start()
    try:
        [game] = await provider.fetch_live_games()
    finally:
        await provider.close()
    assert seen == ["/apis/site/v2/sports/football/college-football/scoreboard"]
    assert game.home_score == 7


@pytest.mark.asyncio
async def test_client_must_be_started() -> None:
    client = _client(lambda request: httpx.Response(200, json=[]))
    assert not client.started
    with pytest.raises(RuntimeError):
        await client.get_json(FEED_URL)


# ── Provider selection ──────────────────────────────────────────────────

def test_build_provider_json_requires_url() -> None:
    with pytest.raises(ValueError):
        build_provider(Settings(feed_provider=FeedProviderName.JSON, feed_url=""))


def test_build_provider_selects_configured_feed() -> None:
    assert isinstance(
        build_provider(Settings(feed_provider=FeedProviderName.JSON, feed_url=FEED_URL)),
        JSONFeedProvider,
    )
    assert isinstance(build_provider(Settings(feed_provider=FeedProviderName.ESPN)), ESPNScoreboardProvider)
    assert isinstance(build_provider(Settings(feed_provider=FeedProviderName.NONE)), NullProvider)


@pytest.mark.asyncio
async def test_null_provider_is_always_empty() -> None:
    assert await NullProvider().fetch_live_games() == []

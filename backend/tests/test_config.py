"""Settings tests: env loading, poll interval defaults and the floor clamp."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from shared.config import (
    DEFAULT_POLL_INTERVAL_S,
    MIN_POLL_INTERVAL_S,
    FeedProviderName,
    Settings,
    effective_poll_interval,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GD_SCORES_POLL_INTERVAL_S", "SCORES_POLL_INTERVAL_SECONDS", "GD_FEED_PROVIDER"):
        monkeypatch.delenv(name, raising=False)


def test_poll_interval_default() -> None:
    assert Settings().scores_poll_interval_s == DEFAULT_POLL_INTERVAL_S
    assert effective_poll_interval(None) == DEFAULT_POLL_INTERVAL_S


@pytest.mark.parametrize(("configured", "expected"), [(0, 5.0), (2, 5.0), (5, 5.0), (30, 30.0)])
def test_poll_interval_floor(configured: float, expected: float) -> None:
    assert Settings(scores_poll_interval_s=configured).scores_poll_interval_s == expected
    assert effective_poll_interval(configured) == max(MIN_POLL_INTERVAL_S, configured)


def test_poll_interval_from_prefixed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GD_SCORES_POLL_INTERVAL_S", "45")
    assert Settings().scores_poll_interval_s == 45.0


def test_poll_interval_from_legacy_env_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCORES_POLL_INTERVAL_SECONDS", "1")
    assert Settings().scores_poll_interval_s == MIN_POLL_INTERVAL_S


def test_poll_interval_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GD_SCORES_POLL_INTERVAL_S", "soon")
    with pytest.raises(ValidationError):
        Settings()


def test_feed_provider_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GD_FEED_PROVIDER", "none")
    assert Settings().feed_provider is FeedProviderName.NONE

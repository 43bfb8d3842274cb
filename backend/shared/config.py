"""
Central configuration for the Gameday Live service.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Polling faster than this hot-loops the feed on a bad config value.
MIN_POLL_INTERVAL_S = 5.0
DEFAULT_POLL_INTERVAL_S = 15.0


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class FeedProviderName(str, Enum):
    ESPN = "espn"
    JSON = "json"
    NONE = "none"


def effective_poll_interval(seconds: float | None) -> float:
    """Apply the default and the floor clamp to a configured poll interval."""
    if seconds is None:
        return DEFAULT_POLL_INTERVAL_S
    return max(MIN_POLL_INTERVAL_S, float(seconds))


class Settings(BaseSettings):
    """Root settings for the API process and its background reconciler."""

    model_config = SettingsConfigDict(
        env_prefix="GD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Container/pod id bound to every log line")

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["*"]
    static_dir: Optional[str] = Field(default="wwwroot", description="Static site root; skipped if missing")
    seed_demo_game: bool = True

    # ── WebSocket ────────────────────────────────────────────
    ws_heartbeat_interval_s: float = 30.0
    ws_heartbeat_timeout_s: float = 10.0
    ws_max_topics_per_conn: int = 25

    # ── Reconciliation ───────────────────────────────────────
    scores_poll_interval_s: float = Field(
        default=DEFAULT_POLL_INTERVAL_S,
        validation_alias=AliasChoices(
            "GD_SCORES_POLL_INTERVAL_S",
            "SCORES_POLL_INTERVAL_SECONDS",
            "scores_poll_interval_s",
        ),
    )

    # ── Feed ─────────────────────────────────────────────────
    feed_provider: FeedProviderName = FeedProviderName.ESPN
    feed_url: str = Field(default="", description="Endpoint for the generic JSON feed provider")
    espn_league_path: str = "football/college-football"
    feed_request_timeout_s: float = 10.0

    # ── Weather proxy ────────────────────────────────────────
    weather_base_url: str = "https://api.open-meteo.com/v1/forecast"
    weather_cache_ttl_s: float = 120.0
    weather_rate_limit_rpm: int = 30
    weather_request_timeout_s: float = 10.0

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @field_validator("scores_poll_interval_s", mode="after")
    @classmethod
    def clamp_poll_interval(cls, value: float) -> float:
        return effective_poll_interval(value)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()

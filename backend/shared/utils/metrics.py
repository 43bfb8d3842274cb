"""
Prometheus metrics for Gameday Live.
Wraps prometheus_client; every metric is module-level so all components share one registry.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
FEED_REQUESTS = Counter(
    "gd_feed_requests_total",
    "Total external score feed HTTP requests",
    ["provider", "status"],
)
RECONCILE_CYCLES = Counter(
    "gd_reconcile_cycles_total",
    "Reconciliation cycles by outcome",
    ["outcome"],
)
RECONCILE_CHANGES = Counter(
    "gd_reconcile_changes_total",
    "Per-entry reconciliation results",
    ["kind"],
)
BROADCAST_PUBLISHES = Counter(
    "gd_broadcast_publishes_total",
    "Named events handed to the push transport",
    ["event", "outcome"],
)
WS_MESSAGES = Counter(
    "gd_ws_messages_total",
    "Total WebSocket messages",
    ["direction"],
)
WEATHER_REQUESTS = Counter(
    "gd_weather_requests_total",
    "Weather proxy requests by cache result",
    ["result"],
)

# ── Histograms ──────────────────────────────────────────────────────────
FEED_LATENCY = Histogram(
    "gd_feed_latency_seconds",
    "External score feed request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
RECONCILE_DURATION = Histogram(
    "gd_reconcile_cycle_seconds",
    "Wall time of one reconciliation cycle",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
GAMES_TRACKED = Gauge(
    "gd_games_tracked",
    "Games currently held in the in-memory store",
)
WS_CONNECTIONS = Gauge(
    "gd_ws_connections_active",
    "Currently active WebSocket connections",
)
WS_TOPIC_MEMBERSHIPS = Gauge(
    "gd_ws_topic_memberships",
    "Connection/topic memberships currently held",
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        target = histogram.labels(**labels) if labels else histogram
        target.observe(elapsed)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)

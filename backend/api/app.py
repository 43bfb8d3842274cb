"""
FastAPI application factory for the Gameday Live API service.

Creates the app with:
- REST routes (games, plays, weather, subscriptions)
- WebSocket push endpoint (/hubs/scores)
- Middleware stack
- Health and status endpoints
- Lifespan management: in-memory store, WebSocket manager, feed provider
  and the background score reconciler
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator

import httpx
from fastapi import FastAPI, WebSocket
from fastapi.staticfiles import StaticFiles

from shared.config import Settings, get_settings
from shared.models.domain import GameCreate
from shared.models.enums import GameStatus
from shared.store import GameStore
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import (
    get_broadcast,
    get_store,
    get_ws_manager,
    init_dependencies,
    reset_dependencies,
)
from api.middleware import setup_middleware
from api.routes.games import router as games_router
from api.routes.subscriptions import router as subscriptions_router
from api.routes.weather import router as weather_router
from api.ws.manager import WebSocketManager
from ingest.providers.registry import build_provider
from scheduler.reconciler import ScoreReconciler

logger = get_logger(__name__)

# Grace period for the reconciler to leave its loop after stop().
RECONCILER_STOP_TIMEOUT_S = 5.0


def seed_demo_game(store: GameStore) -> None:
    store.create(
        GameCreate(
            home_team="College A",
            away_team="College B",
            status=GameStatus.SCHEDULED.value,
        )
    )


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for tests that wire dependencies themselves."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Startup builds the process singletons and starts the reconciler;
    shutdown stops it and closes every connection.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server()

    store = GameStore()
    if settings.seed_demo_game:
        seed_demo_game(store)

    ws_manager = WebSocketManager(settings)
    await ws_manager.start()
    init_dependencies(store, ws_manager)

    app.state.weather_client = httpx.AsyncClient(timeout=settings.weather_request_timeout_s)

    provider = build_provider(settings)
    await provider.start()
    reconciler = ScoreReconciler(provider, store, get_broadcast(), settings)
    app.state.reconciler = reconciler
    reconciler_task = asyncio.create_task(reconciler.run(), name="score-reconciler")

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        poll_interval_s=reconciler.interval_s,
    )

    try:
        yield
    finally:
        reconciler.stop()
        try:
            await asyncio.wait_for(reconciler_task, timeout=RECONCILER_STOP_TIMEOUT_S)
        except asyncio.TimeoutError:
            logger.warning("score_reconciler_stop_timeout")
        await provider.close()
        await ws_manager.stop()
        await app.state.weather_client.aclose()
        reset_dependencies()
        logger.info("api_service_stopped")


def _mount_static(app: FastAPI, settings: Settings) -> None:
    if not settings.static_dir:
        return
    root = Path(settings.static_dir)
    if not root.is_dir():
        logger.debug("static_dir_missing", path=str(root))
        return
    app.mount("/", StaticFiles(directory=str(root), html=True), name="static")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for tests."""
    settings = get_settings()

    app = FastAPI(
        title="Gameday Live API",
        description="Live scores and play-by-play with push updates",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(games_router)
    app.include_router(weather_router)
    app.include_router(subscriptions_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/v1/status", tags=["system"])
    async def system_status() -> dict[str, Any]:
        """Process status: games tracked, push connections, reconciler state."""
        store = get_store()
        ws_manager = get_ws_manager()
        reconciler: ScoreReconciler | None = getattr(app.state, "reconciler", None)
        return {
            "status": "ok",
            "games_tracked": len(store),
            "ws_connections": ws_manager.connection_count if ws_manager else 0,
            "reconciler": {
                "running": reconciler is not None and not reconciler.stopping,
                "interval_s": reconciler.interval_s if reconciler else None,
                "cycles": reconciler.cycles if reconciler else 0,
                "feed_provider": settings.feed_provider.value,
            },
        }

    @app.websocket("/hubs/scores")
    async def scores_hub(ws: WebSocket) -> None:
        """
        WebSocket endpoint for live game updates.

        Client operations:
        - join:  {"op": "join", "game_id": "..."}
        - leave: {"op": "leave", "game_id": "..."}
        - ping:  {"op": "ping"}

        Server messages:
        - event: {"type": "event", "event": "ScoreUpdated" | "PlayEvent", "topic": ..., "data": ...}
        - state: connection/topic state
        - pong / ping / error
        """
        ws_manager = get_ws_manager()
        if ws_manager is None:
            await ws.close(code=1013, reason="service_unavailable")
            return
        await ws_manager.handle_connection(ws)

    # Last, so API routes take precedence over the static catch-all.
    _mount_static(app, settings)

    return app


# For running with uvicorn directly
app = create_app()

"""
Dependency injection for the API service.
Provides the game store, broadcast channel and other process singletons to route handlers.
"""
from __future__ import annotations

from typing import Optional

from shared.broadcast import BroadcastChannel
from shared.store import GameStore

from api.subscriptions import SubscriptionService
from api.weather import WeatherCache
from api.ws.manager import WebSocketManager

# Module-level singletons, initialized at startup
_store: GameStore | None = None
_broadcast: BroadcastChannel | None = None
_ws_manager: WebSocketManager | None = None
_subscriptions: SubscriptionService | None = None
_weather_cache: WeatherCache | None = None


def init_dependencies(
    store: GameStore,
    ws_manager: WebSocketManager,
    subscriptions: SubscriptionService | None = None,
    weather_cache: WeatherCache | None = None,
    broadcast: BroadcastChannel | None = None,
) -> None:
    """
    Initialize module-level singletons. Called once at startup (and by tests).

    The broadcast channel defaults to one wrapping the WebSocket manager.
    """
    global _store, _broadcast, _ws_manager, _subscriptions, _weather_cache
    _store = store
    _ws_manager = ws_manager
    _broadcast = broadcast or BroadcastChannel(ws_manager)
    _subscriptions = subscriptions or SubscriptionService()
    _weather_cache = weather_cache or WeatherCache()


def reset_dependencies() -> None:
    global _store, _broadcast, _ws_manager, _subscriptions, _weather_cache
    _store = _broadcast = _ws_manager = _subscriptions = _weather_cache = None


def get_store() -> GameStore:
    """FastAPI dependency: returns the shared GameStore."""
    if _store is None:
        raise RuntimeError("GameStore not initialized; call init_dependencies first")
    return _store


def get_broadcast() -> BroadcastChannel:
    """FastAPI dependency: returns the shared BroadcastChannel."""
    if _broadcast is None:
        raise RuntimeError("BroadcastChannel not initialized; call init_dependencies first")
    return _broadcast


def get_ws_manager() -> Optional[WebSocketManager]:
    """The WebSocket transport, or None before startup."""
    return _ws_manager


def get_subscriptions() -> SubscriptionService:
    if _subscriptions is None:
        raise RuntimeError("SubscriptionService not initialized; call init_dependencies first")
    return _subscriptions


def get_weather_cache() -> WeatherCache:
    if _weather_cache is None:
        raise RuntimeError("WeatherCache not initialized; call init_dependencies first")
    return _weather_cache

"""
WebSocket connection manager for Gameday Live.

Implements the push transport behind the broadcast channel:
- Topic membership (join/leave "game-<id>" groups)
- Named event delivery to one topic or to every connection
- Heartbeat/ping-pong for connection liveness
- Per-connection topic limits

Delivery is best-effort: a client that is disconnected when an event is
published never sees it.
"""
from __future__ import annotations

import asyncio
import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from shared.broadcast import topic_for_game
from shared.config import Settings, get_settings
from shared.models.domain import WSEventEnvelope
from shared.models.enums import WSClientOp, WSServerMsgType
from shared.utils.logging import get_logger
from shared.utils.metrics import WS_CONNECTIONS, WS_MESSAGES, WS_TOPIC_MEMBERSHIPS

logger = get_logger(__name__)

# Idle receive timeout; the loop re-checks shutdown after each one.
RECEIVE_TIMEOUT_S = 60.0


@dataclass
class WSConnection:
    """Represents a single WebSocket client connection."""

    ws: WebSocket
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    topics: set[str] = field(default_factory=set)
    created_at: float = field(default_factory=time.monotonic)
    last_pong_at: float = field(default_factory=time.monotonic)
    remote_addr: str = ""

    @property
    def alive_seconds(self) -> float:
        return time.monotonic() - self.created_at


class WebSocketManager:
    """
    Manages all WebSocket connections for this process.

    Topics follow the pattern game-{game_id}. Clients join and leave topics
    with JSON ops; publishers call publish()/publish_all().
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._connections: dict[str, WSConnection] = {}
        # topic -> set of connection_ids
        self._topic_members: dict[str, set[str]] = {}
        self._heartbeat_task: Optional[asyncio.Task[None]] = None
        self._shutdown = asyncio.Event()

    @property
    def connection_count(self) -> int:
        """Current number of active connections."""
        return len(self._connections)

    def members(self, topic: str) -> set[str]:
        return set(self._topic_members.get(topic, ()))

    async def start(self) -> None:
        """Start the heartbeat task."""
        self._heartbeat_task = asyncio.create_task(self._run_heartbeat())
        logger.info("ws_manager_started")

    async def stop(self) -> None:
        """Stop background tasks and close all connections."""
        self._shutdown.set()
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass

        served = len(self._connections)
        for conn in list(self._connections.values()):
            await self._close_connection(conn, code=1001, reason="server_shutdown")

        logger.info("ws_manager_stopped", open_connections_closed=served)

    # ── Transport capabilities ──────────────────────────────────────────

    async def join(self, connection_id: str, topic: str) -> None:
        conn = self._connections.get(connection_id)
        if conn is None or topic in conn.topics:
            return
        conn.topics.add(topic)
        self._topic_members.setdefault(topic, set()).add(connection_id)
        WS_TOPIC_MEMBERSHIPS.inc()

    async def leave(self, connection_id: str, topic: str) -> None:
        conn = self._connections.get(connection_id)
        if conn is not None and topic in conn.topics:
            conn.topics.discard(topic)
            WS_TOPIC_MEMBERSHIPS.dec()
        members = self._topic_members.get(topic)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._topic_members[topic]

    async def publish(self, topic: str, event: str, payload: Any) -> int:
        """Send a named event to every member of a topic. Returns the recipient count."""
        member_ids = self._topic_members.get(topic)
        if not member_ids:
            return 0
        message = WSEventEnvelope(event=event, topic=topic, data=payload).model_dump(mode="json")
        targets = [self._connections[c] for c in list(member_ids) if c in self._connections]
        return await self._fan_out(targets, message)

    async def publish_all(self, event: str, payload: Any) -> int:
        """Send a named event to every connection."""
        message = WSEventEnvelope(event=event, data=payload).model_dump(mode="json")
        return await self._fan_out(list(self._connections.values()), message)

    async def _fan_out(self, targets: list[WSConnection], message: dict[str, Any]) -> int:
        if not targets:
            return 0
        await asyncio.gather(*(self._send(conn, message) for conn in targets), return_exceptions=True)
        WS_MESSAGES.labels(direction="out").inc(len(targets))
        return len(targets)

    # ── Connection lifecycle ────────────────────────────────────────────

    async def handle_connection(self, ws: WebSocket) -> None:
        """
        Handle a new WebSocket connection lifecycle.

        Accepts the connection, processes messages, and cleans up on disconnect.
        """
        await ws.accept()

        conn = WSConnection(
            ws=ws,
            remote_addr=f"{ws.client.host}:{ws.client.port}" if ws.client else "unknown",
        )
        self._connections[conn.connection_id] = conn
        WS_CONNECTIONS.inc()

        logger.info("ws_connected", connection_id=conn.connection_id, remote_addr=conn.remote_addr)

        await self._send(conn, {
            "type": WSServerMsgType.STATE.value,
            "connection_id": conn.connection_id,
            "max_topics": self._settings.ws_max_topics_per_conn,
            "heartbeat_interval": self._settings.ws_heartbeat_interval_s,
        })

        try:
            while not self._shutdown.is_set():
                try:
                    raw = await asyncio.wait_for(ws.receive_text(), timeout=RECEIVE_TIMEOUT_S)
                except asyncio.TimeoutError:
                    continue

                WS_MESSAGES.labels(direction="in").inc()
                await self._handle_message(conn, raw)

        except WebSocketDisconnect:
            pass
        except Exception as exc:
            logger.warning("ws_connection_error", connection_id=conn.connection_id, error=str(exc))
        finally:
            await self._cleanup_connection(conn)

    async def _handle_message(self, conn: WSConnection, raw: str) -> None:
        """Parse and dispatch a client message."""
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            await self._send_error(conn, "invalid_json", "Message must be valid JSON")
            return

        op = msg.get("op") if isinstance(msg, dict) else None
        if not op:
            await self._send_error(conn, "missing_op", "Message must include 'op' field")
            return

        try:
            operation = WSClientOp(op)
        except ValueError:
            await self._send_error(conn, "unknown_op", f"Unknown operation: {op}")
            return

        if operation == WSClientOp.PING:
            await self._handle_ping(conn)
            return

        game_id = self._parse_game_id(msg.get("game_id"))
        if game_id is None:
            await self._send_error(conn, "invalid_game_id", f"{op} requires a valid game_id")
            return
        topic = topic_for_game(game_id)

        if operation == WSClientOp.JOIN:
            if topic not in conn.topics and len(conn.topics) >= self._settings.ws_max_topics_per_conn:
                await self._send_error(
                    conn,
                    "topic_limit",
                    f"Maximum {self._settings.ws_max_topics_per_conn} topics per connection",
                )
                return
            await self.join(conn.connection_id, topic)
            logger.debug("ws_joined", connection_id=conn.connection_id, topic=topic)
        else:
            await self.leave(conn.connection_id, topic)
            logger.debug("ws_left", connection_id=conn.connection_id, topic=topic)

        await self._send(conn, {
            "type": WSServerMsgType.STATE.value,
            "topics": sorted(conn.topics),
        })

    @staticmethod
    def _parse_game_id(raw: Any) -> Optional[uuid.UUID]:
        if not isinstance(raw, str) or not raw:
            return None
        try:
            return uuid.UUID(raw)
        except ValueError:
            return None

    async def _handle_ping(self, conn: WSConnection) -> None:
        """Handle client ping, respond with pong."""
        conn.last_pong_at = time.monotonic()
        await self._send(conn, {
            "type": WSServerMsgType.PONG.value,
            "timestamp": time.time(),
        })

    async def _run_heartbeat(self) -> None:
        """
        Periodically send heartbeat pings to all connections.
        Disconnect clients that haven't pinged back within the window.
        """
        interval = self._settings.ws_heartbeat_interval_s
        timeout = self._settings.ws_heartbeat_timeout_s
        while not self._shutdown.is_set():
            try:
                await asyncio.sleep(interval)
                if self._shutdown.is_set():
                    break

                now = time.monotonic()
                stale: list[WSConnection] = []
                for conn in list(self._connections.values()):
                    if now - conn.last_pong_at > interval + timeout:
                        stale.append(conn)
                        continue
                    await self._send(conn, {
                        "type": WSServerMsgType.PING.value,
                        "timestamp": time.time(),
                    })

                for conn in stale:
                    logger.info(
                        "ws_heartbeat_timeout",
                        connection_id=conn.connection_id,
                        alive_seconds=round(conn.alive_seconds, 1),
                    )
                    await self._close_connection(conn, code=1000, reason="heartbeat_timeout")

            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error("ws_heartbeat_error", error=str(exc))

    async def _send(self, conn: WSConnection, message: dict[str, Any]) -> None:
        """Send a JSON message to a WebSocket connection."""
        try:
            if conn.ws.client_state == WebSocketState.CONNECTED:
                await conn.ws.send_text(json.dumps(message, default=str))
        except Exception as exc:
            logger.debug("ws_send_error", connection_id=conn.connection_id, error=str(exc))

    async def _send_error(self, conn: WSConnection, code: str, message: str) -> None:
        """Send an error message to a WebSocket connection."""
        await self._send(conn, {
            "type": WSServerMsgType.ERROR.value,
            "error": {"code": code, "message": message},
        })

    async def _close_connection(self, conn: WSConnection, code: int = 1000, reason: str = "") -> None:
        """Close a WebSocket connection and clean up."""
        try:
            if conn.ws.client_state == WebSocketState.CONNECTED:
                await conn.ws.close(code=code, reason=reason)
        except Exception as exc:
            logger.debug("ws_close_error", connection_id=conn.connection_id, error=str(exc))
        await self._cleanup_connection(conn)

    async def _cleanup_connection(self, conn: WSConnection) -> None:
        """Remove a connection from all tracking structures."""
        if conn.connection_id not in self._connections:
            return

        for topic in list(conn.topics):
            await self.leave(conn.connection_id, topic)

        del self._connections[conn.connection_id]
        WS_CONNECTIONS.dec()

        logger.info(
            "ws_disconnected",
            connection_id=conn.connection_id,
            alive_seconds=round(conn.alive_seconds, 1),
        )

"""WebSocket connection tracking for live in-app notifications.

Connections are kept per process and grouped by user id. A notification
published for a user reaches every socket that user has open on this
instance; users who are offline read it from the notification list later.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
import logging
import time
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from prometheus_client import Gauge

from notification_service.core.settings import get_notification_settings

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = logging.getLogger(__name__)

stream_connections = Gauge(
    "notification_stream_connections",
    "Open in-app notification WebSocket streams",
)


@dataclass
class ConnectionInfo:
    """An accepted WebSocket and the user it belongs to."""

    connection_id: str
    websocket: WebSocket
    user_id: str
    connected_at: float = field(default_factory=time.time)


class ConnectionManager:
    """Tracks open streams and fans messages out to a user's sockets.

    Example:
        connection_id = await manager.connect(websocket, user_id="bk-1")
        try:
            async for message in websocket.iter_text():
                ...
        finally:
            await manager.disconnect(connection_id)

        await manager.send_to_user("bk-1", {"type": "notification", "data": {...}})
    """

    def __init__(self, max_connections: int | None = None) -> None:
        self._max_connections = max_connections or get_notification_settings().max_stream_connections
        self._connections: dict[str, ConnectionInfo] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def user_connection_count(self, user_id: str) -> int:
        return sum(1 for conn in self._connections.values() if conn.user_id == user_id)

    async def connect(self, websocket: WebSocket, user_id: str) -> str:
        """Accept the socket and register it for `user_id`.

        Raises:
            ConnectionRefusedError: If the per-process limit is reached
        """
        if len(self._connections) >= self._max_connections:
            logger.warning(
                "Stream refused: max connections reached",
                extra={"max": self._max_connections, "user_id": user_id},
            )
            raise ConnectionRefusedError("Maximum connections reached")

        await websocket.accept()
        connection_id = str(uuid4())
        self._connections[connection_id] = ConnectionInfo(connection_id, websocket, user_id)
        stream_connections.set(len(self._connections))

        logger.info(
            "Notification stream connected",
            extra={
                "connection_id": connection_id,
                "user_id": user_id,
                "total_connections": len(self._connections),
            },
        )
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        """Forget a connection and close its socket if still open."""
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return
        stream_connections.set(len(self._connections))
        with contextlib.suppress(Exception):
            await conn.websocket.close()
        logger.info(
            "Notification stream disconnected",
            extra={"connection_id": connection_id, "user_id": conn.user_id},
        )

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        """Send `message` to every open socket of `user_id`.

        Sockets that fail to send are dropped.

        Returns:
            Number of sockets the message was written to
        """
        delivered = 0
        for conn in [c for c in self._connections.values() if c.user_id == user_id]:
            try:
                await conn.websocket.send_json(message)
            except Exception as exc:
                logger.warning(
                    "Dropping broken notification stream",
                    extra={"connection_id": conn.connection_id, "user_id": user_id, "error": str(exc)},
                )
                await self.disconnect(conn.connection_id)
            else:
                delivered += 1
        return delivered

    async def close_all(self) -> None:
        """Close every stream (application shutdown)."""
        for connection_id in list(self._connections):
            await self.disconnect(connection_id)


_manager: ConnectionManager | None = None


def get_connection_manager() -> ConnectionManager:
    """Get the process-wide ConnectionManager."""
    global _manager
    if _manager is None:
        _manager = ConnectionManager()
    return _manager

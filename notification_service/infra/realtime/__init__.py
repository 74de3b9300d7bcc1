"""Per-user WebSocket streams for live in-app notifications."""

from notification_service.infra.realtime.manager import (
    ConnectionInfo,
    ConnectionManager,
    get_connection_manager,
)

__all__ = [
    "ConnectionInfo",
    "ConnectionManager",
    "get_connection_manager",
]

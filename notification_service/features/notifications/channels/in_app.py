"""In-app channel adapter.

The notification row is what the inbox shows. Delivery also pushes the
rendered notification to any live stream the recipient has open, so a
connected client sees it without polling.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from notification_service.features.notifications.channels.base import DeliveryResult, Sent
from notification_service.features.notifications.enums import ChannelType
from notification_service.infra.logging import get_lazy_logger
from notification_service.infra.realtime import ConnectionManager, get_connection_manager

if TYPE_CHECKING:
    from uuid import UUID

    from notification_service.features.notifications.schemas import ChannelConfig


def build_stream_message(
    notification_id: UUID | None,
    recipient: str,
    title: str,
    body: str,
) -> dict[str, Any]:
    """Stream message announcing a new notification."""
    return {
        "type": "notification",
        "data": {
            "id": str(notification_id) if notification_id else None,
            "user_id": recipient,
            "title": title,
            "body": body,
            "read": False,
            "sent_at": datetime.now(UTC).isoformat(),
        },
    }


class InAppChannelAdapter:
    """Adapter for in-app notifications.

    Always `Sent`: a recipient with no open stream reads the notification
    from the inbox later. No configuration is required.
    """

    channel_type = ChannelType.IN_APP

    def __init__(self, manager: ConnectionManager | None = None) -> None:
        self._manager = manager
        self._lazy = get_lazy_logger(__name__)

    @property
    def manager(self) -> ConnectionManager:
        return self._manager or get_connection_manager()

    async def deliver(
        self,
        recipient: str,
        title: str,
        body: str,
        config: ChannelConfig | None,
        *,
        notification_id: UUID | None = None,
    ) -> DeliveryResult:
        message = build_stream_message(notification_id, recipient, title, body)
        streams = await self.manager.send_to_user(recipient, message)
        self._lazy.debug(lambda: f"in_app.deliver({recipient=}, {notification_id=}) -> {streams} streams")
        return Sent()

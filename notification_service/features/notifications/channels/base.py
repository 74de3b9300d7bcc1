"""Base protocol and result types for channel adapters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from uuid import UUID

    from notification_service.features.notifications.enums import ChannelType
    from notification_service.features.notifications.schemas import ChannelConfig


@dataclass(frozen=True, slots=True)
class Sent:
    """The provider accepted the message.

    Attributes:
        provider_id: Provider message id, when one is returned
    """

    provider_id: str | None = None


@dataclass(frozen=True, slots=True)
class Failed:
    """The attempt failed; `reason` ends up in the delivery log."""

    reason: str


DeliveryResult = Sent | Failed


class ChannelAdapter(Protocol):
    """Protocol for channel-specific delivery.

    Each channel (in-app, email, SMS, push, chat) implements this protocol.
    Adapters return `Failed` for expected conditions (no contact address,
    provider rejection); unexpected exceptions are recorded by the
    dispatcher.
    """

    channel_type: ChannelType

    async def deliver(
        self,
        recipient: str,
        title: str,
        body: str,
        config: ChannelConfig | None,
        *,
        notification_id: UUID | None = None,
    ) -> DeliveryResult:
        """Deliver rendered content to one recipient.

        Args:
            recipient: User identifier
            title: Rendered title
            body: Rendered body
            config: Active channel configuration (None for in-app)
            notification_id: Notification row the attempt belongs to

        Returns:
            Sent or Failed
        """
        ...

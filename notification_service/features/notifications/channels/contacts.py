"""Recipient address lookup for external channels."""

from __future__ import annotations

from typing import Protocol

from notification_service.features.notifications.enums import ChannelType


class ContactDirectory(Protocol):
    """Resolves the address a channel should use for a user.

    Returns None when the user has no address for the channel; adapters
    record that as a `no-contact` failure.
    """

    async def contact_for(self, user_id: str, channel_type: ChannelType) -> str | None:
        """Get email address, phone number or device token for a user."""
        ...

"""Shared HTTP transport for provider-backed channels (SMS, push, chat)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from notification_service.features.notifications.channels.base import (
    DeliveryResult,
    Failed,
    Sent,
)
from notification_service.features.notifications.enums import REASON_NO_CONTACT
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from uuid import UUID

    from notification_service.features.notifications.channels.contacts import ContactDirectory
    from notification_service.features.notifications.enums import ChannelType
    from notification_service.features.notifications.schemas import ChannelConfig

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


class HttpChannelAdapter:
    """Base for adapters that POST JSON to a provider endpoint.

    Subclasses implement `build_request` for their provider's payload
    shape. A non-2xx response is a `Failed` result; transport errors
    propagate to the dispatcher.
    """

    channel_type: ChannelType
    config_type: type[Any]

    def __init__(
        self,
        contacts: ContactDirectory,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize adapter.

        Args:
            contacts: Resolves user ids to provider addresses
            transport: Optional httpx transport (used by tests)
        """
        self._contacts = contacts
        self._transport = transport

    def build_request(
        self,
        config: Any,
        address: str,
        title: str,
        body: str,
    ) -> tuple[str, dict[str, Any], dict[str, str]]:
        """Return (url, json payload, headers) for one message."""
        raise NotImplementedError

    async def deliver(
        self,
        recipient: str,
        title: str,
        body: str,
        config: ChannelConfig | None,
        *,
        notification_id: UUID | None = None,
    ) -> DeliveryResult:
        if not isinstance(config, self.config_type):
            return Failed(f"invalid-config: {self.channel_type.value} configuration required")

        address = await self._contacts.contact_for(recipient, self.channel_type)
        if not address:
            return Failed(REASON_NO_CONTACT)

        url, payload, headers = self.build_request(config, address, title, body)
        lazy_logger.debug(lambda: f"{self.channel_type.value}.deliver({recipient=}, {notification_id=}, url={url})")

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(url, json=payload, headers=headers)

        if not response.is_success:
            logger.warning(
                "Provider rejected notification",
                extra={
                    "channel": self.channel_type.value,
                    "user_id": recipient,
                    "status_code": response.status_code,
                },
            )
            return Failed(f"HTTP {response.status_code}")

        provider_id: str | None = None
        if response.headers.get("content-type", "").startswith("application/json"):
            data = response.json()
            if isinstance(data, dict):
                raw_id = data.get("id") or data.get("message_id") or data.get("sid")
                provider_id = str(raw_id) if raw_id is not None else None
        return Sent(provider_id=provider_id)

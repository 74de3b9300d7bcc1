"""Chat channel adapter (WhatsApp Business style messaging API)."""

from __future__ import annotations

from typing import Any

from notification_service.features.notifications.channels.http import HttpChannelAdapter
from notification_service.features.notifications.enums import ChannelType
from notification_service.features.notifications.schemas import ChatChannelConfig


class ChatChannelAdapter(HttpChannelAdapter):
    """Sends a text message from the configured business number."""

    channel_type = ChannelType.CHAT
    config_type = ChatChannelConfig

    def build_request(
        self,
        config: ChatChannelConfig,
        address: str,
        title: str,
        body: str,
    ) -> tuple[str, dict[str, Any], dict[str, str]]:
        payload = {
            "from": config.business_number,
            "to": address,
            "type": "text",
            "text": {"body": f"*{title}*\n{body}"},
        }
        headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else {}
        return str(config.api_url), payload, headers

"""SMS channel adapter (Twilio or Nexmo style gateways)."""

from __future__ import annotations

from typing import Any

from notification_service.features.notifications.channels.http import HttpChannelAdapter
from notification_service.features.notifications.enums import ChannelType
from notification_service.features.notifications.schemas import SmsChannelConfig


class SmsChannelAdapter(HttpChannelAdapter):
    """Sends the title and body as one text message."""

    channel_type = ChannelType.SMS
    config_type = SmsChannelConfig

    def build_request(
        self,
        config: SmsChannelConfig,
        address: str,
        title: str,
        body: str,
    ) -> tuple[str, dict[str, Any], dict[str, str]]:
        text = f"{title}\n{body}"
        if config.provider == "nexmo":
            payload: dict[str, Any] = {
                "api_key": config.api_key,
                "from": config.sender,
                "to": address,
                "text": text,
            }
            headers: dict[str, str] = {}
        else:
            payload = {"From": config.sender, "To": address, "Body": text}
            headers = {"Authorization": f"Bearer {config.api_key}"}
        return str(config.api_url), payload, headers

"""Push channel adapter (FCM HTTP gateway)."""

from __future__ import annotations

from typing import Any

from notification_service.features.notifications.channels.http import HttpChannelAdapter
from notification_service.features.notifications.enums import ChannelType
from notification_service.features.notifications.schemas import PushChannelConfig


class PushChannelAdapter(HttpChannelAdapter):
    """Sends a notification message to the user's device token."""

    channel_type = ChannelType.PUSH
    config_type = PushChannelConfig

    def build_request(
        self,
        config: PushChannelConfig,
        address: str,
        title: str,
        body: str,
    ) -> tuple[str, dict[str, Any], dict[str, str]]:
        payload = {
            "to": address,
            "notification": {"title": title, "body": body},
        }
        headers = {"Authorization": f"key={config.fcm_server_key}"}
        return str(config.endpoint), payload, headers

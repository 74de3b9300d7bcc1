"""Shared test helpers."""

from __future__ import annotations

import asyncio

from notification_service.features.notifications.channels.base import Sent


class RecordingAdapter:
    """Channel adapter that records calls and returns a preset result."""

    def __init__(self, channel_type, result=None, *, delay: float = 0.0, error=None):
        self.channel_type = channel_type
        self.result = result or Sent(provider_id=f"{channel_type.value}-msg")
        self.delay = delay
        self.error = error
        self.calls: list[tuple[str, str, str, object]] = []
        self.notification_ids: list = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def deliver(self, recipient, title, body, config, *, notification_id=None):
        self.calls.append((recipient, title, body, config))
        self.notification_ids.append(notification_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.result
        finally:
            self.in_flight -= 1


ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


def user_headers(user_id: str, role: str | None = None) -> dict[str, str]:
    """Gateway identity headers for a regular user."""
    headers = {"X-User-Id": user_id}
    if role:
        headers["X-User-Role"] = role
    return headers


class FakeWebSocket:
    """Stand-in for a server-side WebSocket that records sent JSON."""

    def __init__(self, *, broken: bool = False) -> None:
        self.accepted = False
        self.closed = False
        self.sent: list[dict] = []
        self.broken = broken

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data: dict) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = True

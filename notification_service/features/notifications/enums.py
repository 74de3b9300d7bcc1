"""Enumerations shared across the notifications feature."""

from __future__ import annotations

from enum import Enum


class NotificationKind(str, Enum):
    """Semantic category of a notification, independent of channel."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ChannelType(str, Enum):
    """Delivery medium."""

    IN_APP = "in_app"
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    CHAT = "chat"

    @property
    def is_interruptive(self) -> bool:
        """Whether quiet hours apply to this channel."""
        return self is not ChannelType.IN_APP


class DeliveryStatus(str, Enum):
    """Outcome of a single (notification, channel) delivery attempt."""

    PENDING = "pending"
    SENT = "sent"
    SUPPRESSED = "suppressed"
    FAILED = "failed"


# Reasons recorded in the delivery log
REASON_DISABLED = "disabled-by-preference"
REASON_QUIET_HOURS = "quiet-hours"
REASON_NOT_CONFIGURED = "not-configured"
REASON_TIMEOUT = "timeout"
REASON_NO_CONTACT = "no-contact"

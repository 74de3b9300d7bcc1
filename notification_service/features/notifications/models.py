"""SQLAlchemy models for the notifications feature."""

from __future__ import annotations

from datetime import datetime, time
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from notification_service.core.database import StringArray, UUIDv7TimestampedBase
from notification_service.features.notifications.enums import DeliveryStatus


class NotificationTemplate(UUIDv7TimestampedBase):
    """Reusable title/body patterns with `{{name}}` placeholders.

    Patterns are stored verbatim. Every placeholder a pattern references must
    appear in `required_variables`, which also fixes the order in which
    missing variables are reported. `version` is bumped on every edit;
    notifications already rendered from an older version keep their text.
    """

    __tablename__ = "notification_templates"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        comment="Template identifier (e.g., 'violation_recorded')",
    )
    title_pattern: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
        comment="Title pattern with {{name}} placeholders",
    )
    body_pattern: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
        comment="Body pattern with {{name}} placeholders",
    )
    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Notification kind: info, success, warning, error",
    )
    default_channels: Mapped[list[str]] = mapped_column(
        StringArray(),
        nullable=False,
        default=list,
        comment="Channels requested when the caller names none",
    )
    required_variables: Mapped[list[str]] = mapped_column(
        StringArray(),
        nullable=False,
        default=list,
        comment="Ordered variable names the patterns require",
    )
    description: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
        comment="Human-readable template description",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean(),
        default=True,
        nullable=False,
        comment="Inactive templates cannot be sent",
    )
    version: Mapped[int] = mapped_column(
        Integer(),
        default=1,
        nullable=False,
        comment="Bumped on every edit",
    )


class NotificationChannel(UUIDv7TimestampedBase):
    """Configured instance of a delivery channel.

    `config` holds the type-specific settings validated by the
    `ChannelConfig` tagged union. At most one row per `channel_type` is
    active, enforced by a partial unique index; `version` backs the
    optimistic check used during activation.
    """

    __tablename__ = "notification_channels"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Display name (e.g., 'School SMTP')",
    )
    channel_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        comment="Channel type: email, sms, push, chat",
    )
    config: Mapped[dict[str, Any]] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=False,
        default=dict,
        comment="Type-specific configuration",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean(),
        default=False,
        nullable=False,
        comment="Whether this is the active instance for its type",
    )
    version: Mapped[int] = mapped_column(
        Integer(),
        default=1,
        nullable=False,
        comment="Optimistic concurrency version",
    )

    __table_args__ = (
        Index(
            "uq_notification_channels_active_type",
            "channel_type",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )


class UserNotificationPreference(UUIDv7TimestampedBase):
    """Per-user, per-kind delivery preferences.

    A missing row means enabled, in-app only, no quiet hours. Quiet hours
    are local wall-clock times in the recipient's own time zone.
    """

    __tablename__ = "user_notification_preferences"

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="User identifier",
    )
    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Notification kind these preferences apply to",
    )
    enabled: Mapped[bool] = mapped_column(
        Boolean(),
        default=True,
        nullable=False,
        comment="False suppresses every channel for this kind",
    )
    channels: Mapped[list[str]] = mapped_column(
        StringArray(),
        nullable=False,
        default=lambda: ["in_app"],
        comment="Channels the user accepts for this kind",
    )
    quiet_hours_start: Mapped[time | None] = mapped_column(
        Time(),
        nullable=True,
        comment="Local start of quiet hours (inclusive)",
    )
    quiet_hours_end: Mapped[time | None] = mapped_column(
        Time(),
        nullable=True,
        comment="Local end of quiet hours (exclusive)",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "kind", name="uq_user_notification_preferences_user_kind"),
    )


class Notification(UUIDv7TimestampedBase):
    """A rendered message addressed to exactly one user.

    Rows are created by the dispatch engine and afterwards only change
    read state. They are never deleted by the engine.
    """

    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Recipient user identifier",
    )
    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Notification kind",
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Rendered title",
    )
    body: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
        comment="Rendered body",
    )
    template_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        index=True,
        comment="Template this notification was rendered from",
    )
    data: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=True,
        comment="Payload carried from the originating event",
    )
    read: Mapped[bool] = mapped_column(
        Boolean(),
        default=False,
        nullable=False,
        comment="Whether the user has read the notification",
    )
    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the notification was read",
    )

    __table_args__ = (
        Index("idx_notification_user_read", "user_id", "read"),
    )


class NotificationDelivery(UUIDv7TimestampedBase):
    """Append-only delivery log entry for one (notification, channel) pair."""

    __tablename__ = "notification_deliveries"

    notification_id: Mapped[UUID] = mapped_column(
        ForeignKey("notifications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Notification this attempt belongs to",
    )
    channel_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Channel type attempted",
    )
    channel_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("notification_channels.id", ondelete="SET NULL"),
        nullable=True,
        comment="Configured channel instance used (none for in-app)",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DeliveryStatus.PENDING.value,
        comment="pending, sent, suppressed, failed",
    )
    reason: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
        comment="Suppression or failure reason",
    )
    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the attempt was made",
    )
    response_time_ms: Mapped[int | None] = mapped_column(
        Integer(),
        nullable=True,
        comment="Adapter call duration in milliseconds",
    )

    __table_args__ = (
        Index("idx_delivery_notification_channel", "notification_id", "channel_type"),
        Index("idx_delivery_channel_status", "channel_type", "status"),
    )

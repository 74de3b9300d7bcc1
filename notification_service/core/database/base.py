"""Declarative base and shared columns for the notification tables.

Every table gets a time-ordered UUID v7 key and created/updated timestamps:

    class NotificationChannel(UUIDv7TimestampedBase):
        __tablename__ = "notification_channels"
        name: Mapped[str] = mapped_column(String(100))
"""

from __future__ import annotations

import os
import time
import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base; models name their tables explicitly."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def generate_uuid7() -> uuid.UUID:
    """UUID v7: 48-bit millisecond timestamp followed by random bits."""
    timestamp_ms = int(time.time() * 1000)
    random_bytes = os.urandom(10)

    raw = bytearray(16)
    raw[0:6] = timestamp_ms.to_bytes(6, byteorder="big")
    raw[6] = (random_bytes[0] & 0x0F) | 0x70
    raw[7] = random_bytes[1]
    raw[8] = (random_bytes[2] & 0x3F) | 0x80
    raw[9:16] = random_bytes[3:10]
    return uuid.UUID(bytes=bytes(raw))


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UUIDv7TimestampedBase(Base):
    """Abstract base with a UUID v7 key plus created_at and updated_at.

    Notifications and deliveries sort by creation time through their keys.
    Timestamps have Python defaults for SQLite and server defaults for raw SQL.
    """

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid7)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
        nullable=False,
    )

"""Notification dispatch settings.

Environment variables use NOTIFY_ prefix.
Example: NOTIFY_DEFAULT_TIMEZONE=Asia/Jakarta, NOTIFY_ADAPTER_TIMEOUT_SECONDS=5
"""

from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationSettings(BaseSettings):
    """Dispatch engine configuration.

    Controls the delivery worker pool, adapter timeouts, the fallback
    time zone used for quiet hours and the user directory endpoint.
    """

    default_timezone: str = Field(
        default="UTC",
        description="IANA zone used when a recipient's own zone is unknown",
    )
    max_concurrent_deliveries: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Upper bound on concurrently running channel adapter calls",
    )
    adapter_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=300.0,
        description="Timeout for a single channel adapter call",
    )
    directory_url: HttpUrl | None = Field(
        default=None,
        description="Base URL of the user/role directory (static in-memory directory when unset)",
    )
    directory_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60.0,
        description="HTTP timeout for user directory lookups",
    )
    max_stream_connections: int = Field(
        default=1000,
        ge=1,
        description="Open in-app WebSocket streams accepted per process",
    )

    @field_validator("default_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject zone names the tz database does not know."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown time zone: {v}"
            raise ValueError(msg) from exc
        return v

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

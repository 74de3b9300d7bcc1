"""Pydantic schemas for the notifications feature."""

from __future__ import annotations

from datetime import datetime, time
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    field_validator,
    model_validator,
)

from notification_service.features.notifications.enums import (
    ChannelType,
    NotificationKind,
)

# ============================================================================
# Channel configuration (tagged union keyed by channel_type)
# ============================================================================


class EmailChannelConfig(BaseModel):
    """SMTP settings for the email channel."""

    model_config = ConfigDict(extra="forbid")

    channel_type: Literal["email"] = "email"
    smtp_host: str = Field(..., min_length=1, description="SMTP server host")
    smtp_port: int = Field(default=587, ge=1, le=65535, description="SMTP server port")
    use_tls: bool = Field(default=True, description="TLS: implicit on port 465, STARTTLS otherwise")
    username: str | None = Field(default=None, description="SMTP login")
    password: str | None = Field(default=None, repr=False, description="SMTP password")
    from_address: str = Field(
        default="noreply@school.local",
        min_length=3,
        description="Envelope and header sender",
    )


class SmsChannelConfig(BaseModel):
    """SMS gateway settings."""

    model_config = ConfigDict(extra="forbid")

    channel_type: Literal["sms"] = "sms"
    provider: Literal["twilio", "nexmo"] = Field(default="twilio", description="SMS provider")
    api_url: HttpUrl = Field(..., description="Provider message endpoint")
    api_key: str = Field(..., min_length=1, repr=False, description="Provider API key")
    sender: str | None = Field(default=None, description="Sender number or alphanumeric ID")


class PushChannelConfig(BaseModel):
    """Push notification gateway settings."""

    model_config = ConfigDict(extra="forbid")

    channel_type: Literal["push"] = "push"
    endpoint: HttpUrl = Field(..., description="Push gateway send endpoint")
    fcm_server_key: str = Field(..., min_length=1, repr=False, description="FCM server key")
    vapid_public_key: str | None = Field(default=None, description="VAPID public key for web push")


class ChatChannelConfig(BaseModel):
    """Chat (WhatsApp Business style) API settings."""

    model_config = ConfigDict(extra="forbid")

    channel_type: Literal["chat"] = "chat"
    api_url: HttpUrl = Field(..., description="Chat API message endpoint")
    business_number: str = Field(..., min_length=3, description="Business sender number")
    api_key: str | None = Field(default=None, repr=False, description="Bearer token for the chat API")


ChannelConfig = Annotated[
    EmailChannelConfig | SmsChannelConfig | PushChannelConfig | ChatChannelConfig,
    Field(discriminator="channel_type"),
]

_channel_config_adapter: TypeAdapter[ChannelConfig] = TypeAdapter(ChannelConfig)

SECRET_CONFIG_FIELDS = frozenset({"password", "api_key", "fcm_server_key"})


def parse_channel_config(channel_type: str, data: dict[str, Any]) -> ChannelConfig:
    """Validate stored configuration against the variant for `channel_type`.

    Raises:
        pydantic.ValidationError: If the data does not fit the variant.
    """
    return _channel_config_adapter.validate_python({**data, "channel_type": channel_type})


def redact_config(config: dict[str, Any]) -> dict[str, Any]:
    """Mask secret values for API responses."""
    return {
        key: ("***" if key in SECRET_CONFIG_FIELDS and value else value)
        for key, value in config.items()
    }


# ============================================================================
# NotificationTemplate Schemas
# ============================================================================


class NotificationTemplateBase(BaseModel):
    """Shared attributes for notification template payloads."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        pattern=r"^[a-z0-9_.-]+$",
        description="Template identifier (e.g., 'violation_recorded')",
    )
    title_pattern: str = Field(..., min_length=1, description="Title with {{name}} placeholders")
    body_pattern: str = Field(..., min_length=1, description="Body with {{name}} placeholders")
    kind: NotificationKind = Field(default=NotificationKind.INFO)
    default_channels: list[ChannelType] = Field(
        default_factory=lambda: [ChannelType.IN_APP],
        description="Channels requested when the sender names none",
    )
    required_variables: list[str] = Field(
        default_factory=list,
        description="Ordered variable names the patterns require",
    )
    description: str | None = Field(default=None, max_length=500)
    is_active: bool = True

    @field_validator("required_variables")
    @classmethod
    def validate_unique_variables(cls, v: list[str]) -> list[str]:
        """Reject duplicate variable names."""
        if len(set(v)) != len(v):
            msg = "required_variables must not contain duplicates"
            raise ValueError(msg)
        return v


class NotificationTemplateCreate(NotificationTemplateBase):
    """Payload for creating a notification template."""


class NotificationTemplateUpdate(BaseModel):
    """Payload for updating a notification template."""

    title_pattern: str | None = Field(default=None, min_length=1)
    body_pattern: str | None = Field(default=None, min_length=1)
    kind: NotificationKind | None = None
    default_channels: list[ChannelType] | None = None
    required_variables: list[str] | None = None
    description: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None


class NotificationTemplateResponse(BaseModel):
    """Representation of a notification template returned from the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    title_pattern: str
    body_pattern: str
    kind: str
    default_channels: list[str]
    required_variables: list[str]
    description: str | None
    is_active: bool
    version: int
    created_at: datetime
    updated_at: datetime


class NotificationTemplateListResponse(BaseModel):
    """Response containing a list of notification templates."""

    templates: list[NotificationTemplateResponse]
    total: int


class TemplatePreviewRequest(BaseModel):
    """Request to render a template with sample variables."""

    variables: dict[str, Any] = Field(default_factory=dict)


class TemplatePreviewResponse(BaseModel):
    """Rendered preview of a template."""

    title: str
    body: str
    placeholders: list[str]


# ============================================================================
# NotificationChannel Schemas
# ============================================================================


class NotificationChannelCreate(BaseModel):
    """Payload for creating a channel instance."""

    name: str = Field(..., min_length=1, max_length=100)
    config: ChannelConfig
    is_active: bool = Field(
        default=False,
        description="Activate immediately, deactivating the current instance",
    )

    @property
    def channel_type(self) -> ChannelType:
        """Channel type implied by the config variant."""
        return ChannelType(self.config.channel_type)


class NotificationChannelUpdate(BaseModel):
    """Payload for updating a channel instance.

    The channel type cannot change; a new config must match the stored type.
    """

    name: str | None = Field(default=None, min_length=1, max_length=100)
    config: ChannelConfig | None = None


class NotificationChannelResponse(BaseModel):
    """Representation of a channel instance with secrets masked."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    channel_type: str
    config: dict[str, Any]
    is_active: bool
    version: int
    created_at: datetime
    updated_at: datetime

    @field_validator("config")
    @classmethod
    def mask_secrets(cls, v: dict[str, Any]) -> dict[str, Any]:
        """Never echo credentials back."""
        return redact_config(v)


class NotificationChannelListResponse(BaseModel):
    """Response containing a list of channel instances."""

    channels: list[NotificationChannelResponse]
    total: int


class ChannelActivateRequest(BaseModel):
    """Optional optimistic version for activation."""

    expected_version: int | None = Field(default=None, ge=1)


# ============================================================================
# UserNotificationPreference Schemas
# ============================================================================


class UserNotificationPreferenceUpdate(BaseModel):
    """Payload for creating or replacing a preference for one kind."""

    enabled: bool = True
    channels: list[ChannelType] = Field(default_factory=lambda: [ChannelType.IN_APP])
    quiet_hours_start: time | None = Field(default=None, description="Local start (inclusive)")
    quiet_hours_end: time | None = Field(default=None, description="Local end (exclusive)")

    @model_validator(mode="after")
    def validate_quiet_hours(self) -> UserNotificationPreferenceUpdate:
        """Quiet hours need both bounds or neither."""
        if (self.quiet_hours_start is None) != (self.quiet_hours_end is None):
            msg = "quiet_hours_start and quiet_hours_end must be set together"
            raise ValueError(msg)
        return self


class UserNotificationPreferenceResponse(BaseModel):
    """Representation of a preference returned from the API."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    kind: str
    enabled: bool
    channels: list[str]
    quiet_hours_start: time | None = None
    quiet_hours_end: time | None = None


class UserNotificationPreferenceListResponse(BaseModel):
    """Response containing a list of user notification preferences."""

    preferences: list[UserNotificationPreferenceResponse]
    total: int


# ============================================================================
# Notification Schemas
# ============================================================================


class NotificationResponse(BaseModel):
    """Representation of a notification returned from the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    kind: str
    title: str
    body: str
    template_name: str | None
    data: dict[str, Any] | None
    read: bool
    read_at: datetime | None
    created_at: datetime


class NotificationDeliveryResponse(BaseModel):
    """Representation of a delivery log entry returned from the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    notification_id: UUID
    channel_type: str
    channel_id: UUID | None
    status: str
    reason: str | None
    attempted_at: datetime
    response_time_ms: int | None


class NotificationWithDeliveriesResponse(NotificationResponse):
    """Notification response including delivery details."""

    deliveries: list[NotificationDeliveryResponse]


class NotificationListResponse(BaseModel):
    """Response containing a list of notifications."""

    notifications: list[NotificationResponse]
    total: int
    unread_count: int


class NotificationDeliveryListResponse(BaseModel):
    """Response containing a list of notification deliveries."""

    deliveries: list[NotificationDeliveryResponse]
    total: int


class MarkAllReadResponse(BaseModel):
    """Number of notifications flipped to read."""

    updated: int


# ============================================================================
# Send Schemas
# ============================================================================


class RecipientSelector(BaseModel):
    """Exactly one of a single user, a role, or an explicit user list."""

    user_id: str | None = Field(default=None, min_length=1)
    role: str | None = Field(default=None, min_length=1)
    user_ids: list[str] | None = None

    @model_validator(mode="after")
    def validate_exactly_one(self) -> RecipientSelector:
        """Reject selectors naming zero or several targets."""
        chosen = [v for v in (self.user_id, self.role, self.user_ids) if v is not None]
        if len(chosen) != 1:
            msg = "Exactly one of user_id, role or user_ids must be provided"
            raise ValueError(msg)
        return self


class SendDirectRequest(BaseModel):
    """Send literal content to a single user."""

    user_id: str = Field(..., min_length=1)
    kind: NotificationKind = NotificationKind.INFO
    title: str = Field(..., min_length=1, max_length=500)
    body: str
    channels: list[ChannelType] | None = None
    data: dict[str, Any] | None = None


class SendRoleRequest(BaseModel):
    """Send literal content to every holder of a role."""

    role: str = Field(..., min_length=1)
    kind: NotificationKind = NotificationKind.INFO
    title: str = Field(..., min_length=1, max_length=500)
    body: str
    channels: list[ChannelType] | None = None
    data: dict[str, Any] | None = None


class SendTemplateRequest(BaseModel):
    """Render a stored template for a recipient selector."""

    template_name: str = Field(..., min_length=1)
    recipients: RecipientSelector
    variables: dict[str, Any] = Field(default_factory=dict)
    recipient_variables: dict[str, dict[str, Any]] | None = Field(
        default=None,
        description="Per-user variables merged over the shared bag",
    )
    channels: list[ChannelType] | None = None
    data: dict[str, Any] | None = None


class SendResponse(BaseModel):
    """Identifiers of the notifications created."""

    notification_ids: list[UUID]
    count: int


__all__ = [
    "ChannelActivateRequest",
    "ChannelConfig",
    "ChatChannelConfig",
    "EmailChannelConfig",
    "MarkAllReadResponse",
    "NotificationChannelCreate",
    "NotificationChannelListResponse",
    "NotificationChannelResponse",
    "NotificationChannelUpdate",
    "NotificationDeliveryListResponse",
    "NotificationDeliveryResponse",
    "NotificationListResponse",
    "NotificationResponse",
    "NotificationTemplateCreate",
    "NotificationTemplateListResponse",
    "NotificationTemplateResponse",
    "NotificationTemplateUpdate",
    "NotificationWithDeliveriesResponse",
    "PushChannelConfig",
    "RecipientSelector",
    "SendDirectRequest",
    "SendResponse",
    "SendRoleRequest",
    "SendTemplateRequest",
    "SmsChannelConfig",
    "TemplatePreviewRequest",
    "TemplatePreviewResponse",
    "UserNotificationPreferenceListResponse",
    "UserNotificationPreferenceResponse",
    "UserNotificationPreferenceUpdate",
    "parse_channel_config",
    "redact_config",
]

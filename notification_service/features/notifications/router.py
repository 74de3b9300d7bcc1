"""API router for the notifications feature.

User Endpoints:
- GET /notifications - List the caller's notifications
- GET /notifications/{notification_id} - Single notification with deliveries
- POST /notifications/{notification_id}/mark-read - Mark as read
- POST /notifications/mark-all-read - Mark every unread notification as read

Preference Endpoints:
- GET /notifications/preferences - List stored preferences
- GET /notifications/preferences/{kind} - Effective preference for a kind
- PUT /notifications/preferences/{kind} - Create or replace preference
- DELETE /notifications/preferences/{kind} - Reset to defaults

Admin Endpoints (X-User-Role: admin):
- Templates: CRUD + POST /notifications/admin/templates/{id}/preview
- Channels: CRUD + POST /notifications/admin/channels/{id}/{activate,deactivate}
- Sending: POST /notifications/admin/send/{direct,role,template}
- Delivery log: GET /notifications/admin/deliveries, GET /notifications/admin/stats
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from notification_service.core.dependencies.auth import require_admin
from notification_service.features.notifications.dependencies import (
    ChannelRegistryDep,
    CurrentUserIdDep,
    NotificationDeliveryRepositoryDep,
    NotificationServiceDep,
    NotificationTemplateServiceDep,
    SessionDep,
)
from notification_service.features.notifications.enums import (
    ChannelType,
    DeliveryStatus,
    NotificationKind,
)
from notification_service.features.notifications.schemas import (
    ChannelActivateRequest,
    MarkAllReadResponse,
    NotificationChannelCreate,
    NotificationChannelListResponse,
    NotificationChannelResponse,
    NotificationChannelUpdate,
    NotificationDeliveryListResponse,
    NotificationDeliveryResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationTemplateCreate,
    NotificationTemplateListResponse,
    NotificationTemplateResponse,
    NotificationTemplateUpdate,
    NotificationWithDeliveriesResponse,
    SendDirectRequest,
    SendResponse,
    SendRoleRequest,
    SendTemplateRequest,
    TemplatePreviewRequest,
    TemplatePreviewResponse,
    UserNotificationPreferenceListResponse,
    UserNotificationPreferenceResponse,
    UserNotificationPreferenceUpdate,
)
from notification_service.features.notifications.templates.renderer import placeholders
from notification_service.infra.logging import get_lazy_logger

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

# Main router for user endpoints
router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
)

# Admin router for admin-only endpoints
admin_router = APIRouter(
    prefix="/notifications/admin",
    tags=["notifications-admin"],
    dependencies=[Depends(require_admin)],
)


# ============================================================================
# User Endpoints - Notifications
# ============================================================================


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List user's notifications",
    description="""
List notifications for the calling user, newest first.

**Query Parameters:**
- `kind`: Filter by notification kind
- `unread_only`: Only return unread notifications (default: false)
- `limit`: Maximum results (1-100, default: 50)
- `offset`: Pagination offset (default: 0)
""",
)
async def list_notifications(
    user_id: CurrentUserIdDep,
    session: SessionDep,
    service: NotificationServiceDep,
    kind: Annotated[NotificationKind | None, Query(description="Filter by kind")] = None,
    unread_only: Annotated[bool, Query(description="Only return unread notifications")] = False,
    limit: Annotated[int, Query(ge=1, le=100, description="Maximum results")] = 50,
    offset: Annotated[int, Query(ge=0, description="Pagination offset")] = 0,
) -> NotificationListResponse:
    """List notifications for the calling user."""
    notifications, total, unread_count = await service.list_user_notifications(
        session,
        user_id,
        kind=kind.value if kind else None,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )

    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        unread_count=unread_count,
    )


@router.post(
    "/mark-all-read",
    response_model=MarkAllReadResponse,
    summary="Mark all notifications as read",
)
async def mark_all_read(
    user_id: CurrentUserIdDep,
    session: SessionDep,
    service: NotificationServiceDep,
) -> MarkAllReadResponse:
    """Mark every unread notification of the caller as read."""
    updated = await service.mark_all_as_read(session, user_id)
    await session.commit()
    return MarkAllReadResponse(updated=updated)


# ============================================================================
# User Endpoints - Preferences
# ============================================================================


@router.get(
    "/preferences",
    response_model=UserNotificationPreferenceListResponse,
    summary="List stored notification preferences",
)
async def list_preferences(
    user_id: CurrentUserIdDep,
    session: SessionDep,
    service: NotificationServiceDep,
) -> UserNotificationPreferenceListResponse:
    """List the caller's stored preferences. Kinds without a row use defaults."""
    preferences = await service.list_preferences(session, user_id)
    return UserNotificationPreferenceListResponse(
        preferences=[UserNotificationPreferenceResponse.model_validate(p) for p in preferences],
        total=len(preferences),
    )


@router.get(
    "/preferences/{kind}",
    response_model=UserNotificationPreferenceResponse,
    summary="Get effective preference for a kind",
)
async def get_preference(
    kind: NotificationKind,
    user_id: CurrentUserIdDep,
    session: SessionDep,
    service: NotificationServiceDep,
) -> UserNotificationPreferenceResponse:
    """Get the stored preference or the default for a kind."""
    pref = await service.get_preference(session, user_id, kind)
    return UserNotificationPreferenceResponse.model_validate(pref)


@router.put(
    "/preferences/{kind}",
    response_model=UserNotificationPreferenceResponse,
    summary="Create or replace preference for a kind",
)
async def set_preference(
    kind: NotificationKind,
    payload: UserNotificationPreferenceUpdate,
    user_id: CurrentUserIdDep,
    session: SessionDep,
    service: NotificationServiceDep,
) -> UserNotificationPreferenceResponse:
    """Create or replace the caller's preference for a kind."""
    pref = await service.set_preference(session, user_id, kind, payload)
    await session.commit()
    return UserNotificationPreferenceResponse.model_validate(pref)


@router.delete(
    "/preferences/{kind}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Reset preference for a kind to defaults",
)
async def reset_preference(
    kind: NotificationKind,
    user_id: CurrentUserIdDep,
    session: SessionDep,
    service: NotificationServiceDep,
) -> Response:
    """Delete the caller's stored preference for a kind."""
    removed = await service.reset_preference(session, user_id, kind)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No stored preference for kind '{kind.value}'",
        )
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# User Endpoints - Single notification
# ============================================================================


@router.get(
    "/{notification_id}",
    response_model=NotificationWithDeliveriesResponse,
    summary="Get single notification with deliveries",
    responses={404: {"description": "Notification not found"}},
)
async def get_notification(
    notification_id: UUID,
    user_id: CurrentUserIdDep,
    session: SessionDep,
    service: NotificationServiceDep,
) -> NotificationWithDeliveriesResponse:
    """Get a single notification owned by the caller, with its delivery log."""
    found = await service.get_notification(session, notification_id, user_id)
    if found is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification {notification_id} not found",
        )

    notification, deliveries = found
    return NotificationWithDeliveriesResponse(
        **NotificationResponse.model_validate(notification).model_dump(),
        deliveries=[NotificationDeliveryResponse.model_validate(d) for d in deliveries],
    )


@router.post(
    "/{notification_id}/mark-read",
    response_model=NotificationResponse,
    summary="Mark notification as read",
    responses={404: {"description": "Notification not found"}},
)
async def mark_notification_read(
    notification_id: UUID,
    user_id: CurrentUserIdDep,
    session: SessionDep,
    service: NotificationServiceDep,
) -> NotificationResponse:
    """Mark a notification as read."""
    notification = await service.mark_as_read(session, notification_id, user_id)

    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification {notification_id} not found",
        )

    await session.commit()

    return NotificationResponse.model_validate(notification)


# ============================================================================
# Admin Endpoints - Templates
# ============================================================================


@admin_router.get(
    "/templates",
    response_model=NotificationTemplateListResponse,
    summary="List notification templates",
)
async def list_templates(
    session: SessionDep,
    template_service: NotificationTemplateServiceDep,
    active_only: Annotated[bool, Query(description="Only active templates")] = False,
) -> NotificationTemplateListResponse:
    """List templates ordered by name."""
    templates = await template_service.list_templates(session, active_only=active_only)
    return NotificationTemplateListResponse(
        templates=[NotificationTemplateResponse.model_validate(t) for t in templates],
        total=len(templates),
    )


@admin_router.post(
    "/templates",
    response_model=NotificationTemplateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create notification template",
)
async def create_template(
    payload: NotificationTemplateCreate,
    session: SessionDep,
    template_service: NotificationTemplateServiceDep,
) -> NotificationTemplateResponse:
    """Create a template. Every placeholder must be declared in required_variables."""
    template = await template_service.create_template(session, payload)
    await session.commit()
    return NotificationTemplateResponse.model_validate(template)


@admin_router.get(
    "/templates/{template_id}",
    response_model=NotificationTemplateResponse,
    summary="Get notification template",
)
async def get_template(
    template_id: UUID,
    session: SessionDep,
    template_service: NotificationTemplateServiceDep,
) -> NotificationTemplateResponse:
    """Get a template by id."""
    template = await template_service.get_template(session, template_id)
    return NotificationTemplateResponse.model_validate(template)


@admin_router.patch(
    "/templates/{template_id}",
    response_model=NotificationTemplateResponse,
    summary="Update notification template",
)
async def update_template(
    template_id: UUID,
    payload: NotificationTemplateUpdate,
    session: SessionDep,
    template_service: NotificationTemplateServiceDep,
) -> NotificationTemplateResponse:
    """Update a template and bump its version."""
    template = await template_service.update_template(session, template_id, payload)
    await session.commit()
    return NotificationTemplateResponse.model_validate(template)


@admin_router.delete(
    "/templates/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete notification template",
    responses={409: {"description": "Template is referenced by notifications"}},
)
async def delete_template(
    template_id: UUID,
    session: SessionDep,
    template_service: NotificationTemplateServiceDep,
) -> Response:
    """Delete a template that no notification references."""
    await template_service.delete_template(session, template_id)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin_router.post(
    "/templates/{template_id}/preview",
    response_model=TemplatePreviewResponse,
    summary="Preview template rendering",
)
async def preview_template(
    template_id: UUID,
    payload: TemplatePreviewRequest,
    session: SessionDep,
    template_service: NotificationTemplateServiceDep,
) -> TemplatePreviewResponse:
    """Render a template with sample variables without sending anything."""
    template = await template_service.get_template(session, template_id)
    rendered = await template_service.preview(session, template_id, payload.variables)
    names = placeholders(template.title_pattern)
    names.extend(n for n in placeholders(template.body_pattern) if n not in names)
    return TemplatePreviewResponse(title=rendered.title, body=rendered.body, placeholders=names)


# ============================================================================
# Admin Endpoints - Channels
# ============================================================================


@admin_router.get(
    "/channels",
    response_model=NotificationChannelListResponse,
    summary="List channel instances",
)
async def list_channels(
    session: SessionDep,
    registry: ChannelRegistryDep,
    channel_type: Annotated[ChannelType | None, Query(description="Filter by type")] = None,
) -> NotificationChannelListResponse:
    """List configured channel instances."""
    channels = await registry.list_channels(session, channel_type)
    return NotificationChannelListResponse(
        channels=[NotificationChannelResponse.model_validate(c) for c in channels],
        total=len(channels),
    )


@admin_router.post(
    "/channels",
    response_model=NotificationChannelResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create channel instance",
    responses={409: {"description": "Concurrent activation conflict"}},
)
async def create_channel(
    payload: NotificationChannelCreate,
    session: SessionDep,
    registry: ChannelRegistryDep,
) -> NotificationChannelResponse:
    """Create a channel instance, optionally activating it."""
    channel = await registry.create_channel(session, payload)
    await session.commit()
    return NotificationChannelResponse.model_validate(channel)


@admin_router.get(
    "/channels/{channel_id}",
    response_model=NotificationChannelResponse,
    summary="Get channel instance",
)
async def get_channel(
    channel_id: UUID,
    session: SessionDep,
    registry: ChannelRegistryDep,
) -> NotificationChannelResponse:
    """Get a channel instance by id (secrets masked)."""
    channel = await registry.get_channel(session, channel_id)
    return NotificationChannelResponse.model_validate(channel)


@admin_router.patch(
    "/channels/{channel_id}",
    response_model=NotificationChannelResponse,
    summary="Update channel instance",
)
async def update_channel(
    channel_id: UUID,
    payload: NotificationChannelUpdate,
    session: SessionDep,
    registry: ChannelRegistryDep,
) -> NotificationChannelResponse:
    """Rename or reconfigure a channel instance."""
    channel = await registry.update_channel(session, channel_id, payload)
    await session.commit()
    return NotificationChannelResponse.model_validate(channel)


@admin_router.delete(
    "/channels/{channel_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete channel instance",
)
async def delete_channel(
    channel_id: UUID,
    session: SessionDep,
    registry: ChannelRegistryDep,
) -> Response:
    """Delete a channel instance."""
    await registry.delete_channel(session, channel_id)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin_router.post(
    "/channels/{channel_id}/activate",
    response_model=NotificationChannelResponse,
    summary="Activate channel instance",
    responses={409: {"description": "Concurrent activation conflict or stale version"}},
)
async def activate_channel(
    channel_id: UUID,
    session: SessionDep,
    registry: ChannelRegistryDep,
    payload: ChannelActivateRequest | None = None,
) -> NotificationChannelResponse:
    """Make this instance the active one for its channel type."""
    expected_version = payload.expected_version if payload else None
    channel = await registry.activate_channel(session, channel_id, expected_version)
    await session.commit()
    return NotificationChannelResponse.model_validate(channel)


@admin_router.post(
    "/channels/{channel_id}/deactivate",
    response_model=NotificationChannelResponse,
    summary="Deactivate channel instance",
    responses={409: {"description": "Stale version"}},
)
async def deactivate_channel(
    channel_id: UUID,
    session: SessionDep,
    registry: ChannelRegistryDep,
    payload: ChannelActivateRequest | None = None,
) -> NotificationChannelResponse:
    """Switch the channel type off; deliveries on it fail as not-configured."""
    expected_version = payload.expected_version if payload else None
    channel = await registry.deactivate_channel(session, channel_id, expected_version)
    await session.commit()
    return NotificationChannelResponse.model_validate(channel)


# ============================================================================
# Admin Endpoints - Sending
# ============================================================================


@admin_router.post(
    "/send/direct",
    response_model=SendResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send to a single user",
)
async def send_direct(
    payload: SendDirectRequest,
    session: SessionDep,
    service: NotificationServiceDep,
) -> SendResponse:
    """Send literal content to one user."""
    notification_id = await service.send_direct(
        session,
        payload.user_id,
        payload.kind,
        payload.title,
        payload.body,
        payload.channels,
        data=payload.data,
    )
    await session.commit()
    return SendResponse(notification_ids=[notification_id], count=1)


@admin_router.post(
    "/send/role",
    response_model=SendResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send to every holder of a role",
)
async def send_by_role(
    payload: SendRoleRequest,
    session: SessionDep,
    service: NotificationServiceDep,
) -> SendResponse:
    """Fan out literal content to a role."""
    ids = await service.send_by_role(
        session,
        payload.role,
        payload.kind,
        payload.title,
        payload.body,
        payload.channels,
        data=payload.data,
    )
    await session.commit()
    return SendResponse(notification_ids=ids, count=len(ids))


@admin_router.post(
    "/send/template",
    response_model=SendResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a stored template",
    responses={
        404: {"description": "Unknown template"},
        422: {"description": "Missing template variables"},
        503: {"description": "Recipient resolution failed"},
    },
)
async def send_from_template(
    payload: SendTemplateRequest,
    session: SessionDep,
    service: NotificationServiceDep,
) -> SendResponse:
    """Render a template and send it to the selected recipients."""
    ids = await service.send_from_template(
        session,
        payload.template_name,
        payload.recipients,
        payload.variables,
        channels=payload.channels,
        recipient_variables=payload.recipient_variables,
        data=payload.data,
    )
    await session.commit()
    return SendResponse(notification_ids=ids, count=len(ids))


# ============================================================================
# Admin Endpoints - Delivery log
# ============================================================================


@admin_router.get(
    "/deliveries",
    response_model=NotificationDeliveryListResponse,
    summary="List delivery log entries",
    description="""
List delivery log entries, newest first. External retry housekeeping reads
`status=failed` entries from here.
""",
)
async def list_deliveries(
    session: SessionDep,
    delivery_repo: NotificationDeliveryRepositoryDep,
    status_filter: Annotated[
        DeliveryStatus | None,
        Query(alias="status", description="Filter by delivery status"),
    ] = None,
    channel_type: Annotated[ChannelType | None, Query(description="Filter by channel type")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> NotificationDeliveryListResponse:
    """List delivery log entries with filters."""
    deliveries, total = await delivery_repo.list_filtered(
        session,
        status=status_filter.value if status_filter else None,
        channel_type=channel_type.value if channel_type else None,
        limit=limit,
        offset=offset,
    )
    return NotificationDeliveryListResponse(
        deliveries=[NotificationDeliveryResponse.model_validate(d) for d in deliveries],
        total=total,
    )


@admin_router.get(
    "/stats",
    response_model=dict[str, int],
    summary="Delivery counts by status",
)
async def delivery_stats(
    session: SessionDep,
    delivery_repo: NotificationDeliveryRepositoryDep,
    channel_type: Annotated[ChannelType | None, Query(description="Filter by channel type")] = None,
) -> dict[str, int]:
    """Count delivery log entries grouped by status."""
    return await delivery_repo.get_stats_by_status(
        session,
        channel_type.value if channel_type else None,
    )

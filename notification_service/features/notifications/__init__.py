"""Notification dispatch feature.

Turns domain events into delivered messages across in-app, email, SMS, push
and chat channels, honoring per-user preferences and quiet hours.

Example:
    from notification_service.features.notifications import get_notification_service

    service = get_notification_service()
    ids = await service.send_from_template(
        session,
        "violation_recorded",
        RecipientSelector(role="guru_bk"),
        {"student_name": "Budi", "violation_name": "Terlambat", "points": 5},
    )
    await session.commit()
"""

from notification_service.features.notifications.enums import (
    ChannelType,
    DeliveryStatus,
    NotificationKind,
)
from notification_service.features.notifications.router import admin_router, router
from notification_service.features.notifications.schemas import RecipientSelector
from notification_service.features.notifications.service import (
    NotificationService,
    get_notification_service,
)

__all__ = [
    "ChannelType",
    "DeliveryStatus",
    "NotificationKind",
    "NotificationService",
    "RecipientSelector",
    "admin_router",
    "get_notification_service",
    "router",
]

"""FastAPI dependencies for the notifications feature.

Provides Annotated type aliases for dependency injection in route handlers:

    @router.get("/notifications")
    async def list_notifications(
        user_id: CurrentUserIdDep,
        session: SessionDep,
        service: NotificationServiceDep,
    ) -> NotificationListResponse:
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notification_service.core.dependencies.auth import CallerDep
from notification_service.core.dependencies.database import get_db_session
from notification_service.features.notifications.channels.registry import (
    ChannelRegistry,
    get_channel_registry,
)
from notification_service.features.notifications.repository import (
    NotificationDeliveryRepository,
    get_notification_delivery_repository,
)
from notification_service.features.notifications.service import (
    NotificationService,
    get_notification_service,
)
from notification_service.features.notifications.templates.service import (
    NotificationTemplateService,
    get_notification_template_service,
)

SessionDep = Annotated[AsyncSession, Depends(get_db_session)]


def get_current_user_id(caller: CallerDep) -> str:
    """Extract the user id of the caller."""
    return caller.user_id


CurrentUserIdDep = Annotated[str, Depends(get_current_user_id)]

NotificationDeliveryRepositoryDep = Annotated[
    NotificationDeliveryRepository, Depends(get_notification_delivery_repository),
]

NotificationServiceDep = Annotated[
    NotificationService,
    Depends(get_notification_service),
]
NotificationTemplateServiceDep = Annotated[
    NotificationTemplateService, Depends(get_notification_template_service),
]
ChannelRegistryDep = Annotated[ChannelRegistry, Depends(get_channel_registry)]


__all__ = [
    "ChannelRegistryDep",
    "CurrentUserIdDep",
    "NotificationDeliveryRepositoryDep",
    "NotificationServiceDep",
    "NotificationTemplateServiceDep",
    "SessionDep",
    "get_current_user_id",
]

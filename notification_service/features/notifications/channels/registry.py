"""Channel registry: configured channel instances and the active pointer.

Exactly one instance per channel type may be active. Activation flips the
previous instance off and the new one on in one transaction, guarded by
optimistic version checks on both rows; the partial unique index on
`(channel_type) WHERE is_active` backs this up at the database level.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

from sqlalchemy.exc import IntegrityError, OperationalError

from notification_service.core.database import NotFoundError
from notification_service.core.exceptions import NotFoundException, ValidationException
from notification_service.core.services.base import BaseService
from notification_service.features.notifications.enums import ChannelType
from notification_service.features.notifications.exceptions import (
    ActivationConflictError,
    NotConfiguredError,
)
from notification_service.features.notifications.metrics import channel_activation_total
from notification_service.features.notifications.models import NotificationChannel
from notification_service.features.notifications.repository import (
    NotificationChannelRepository,
    get_notification_channel_repository,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.features.notifications.schemas import (
        NotificationChannelCreate,
        NotificationChannelUpdate,
    )


class ChannelRegistry(BaseService):
    """CRUD and activation for configured channel instances."""

    def __init__(self, repository: NotificationChannelRepository | None = None) -> None:
        super().__init__()
        self._repository = repository or get_notification_channel_repository()

    async def get_active_channel(
        self,
        session: AsyncSession,
        channel_type: ChannelType | str,
    ) -> NotificationChannel:
        """Get the active instance of a channel type.

        Raises:
            NotConfiguredError: If no instance of the type is active
        """
        channel_type = ChannelType(channel_type)
        channel = await self._repository.get_active(session, channel_type.value)
        if channel is None:
            raise NotConfiguredError(channel_type.value)
        return channel

    async def get_channel(self, session: AsyncSession, channel_id: UUID) -> NotificationChannel:
        """Get a channel instance by id.

        Raises:
            NotFoundException: If it does not exist
        """
        try:
            return await self._repository.get_or_raise(session, channel_id)
        except NotFoundError as exc:
            raise NotFoundException(
                detail=f"Notification channel {channel_id} not found",
                type="channel-not-found",
                extra={"channel_id": str(channel_id)},
            ) from exc

    async def list_channels(
        self,
        session: AsyncSession,
        channel_type: ChannelType | str | None = None,
    ) -> Sequence[NotificationChannel]:
        """List instances, optionally filtered by type."""
        type_value = ChannelType(channel_type).value if channel_type else None
        return await self._repository.list_all(session, channel_type=type_value)

    async def create_channel(
        self,
        session: AsyncSession,
        payload: NotificationChannelCreate,
    ) -> NotificationChannel:
        """Create an instance; `is_active=True` goes through activation.

        Raises:
            ValidationException: For the in-app type, which takes no configuration
            ActivationConflictError: If immediate activation loses a race
        """
        channel_type = payload.channel_type
        if channel_type is ChannelType.IN_APP:
            raise ValidationException(
                detail="The in-app channel needs no configured instance",
                type="channel-type-not-configurable",
            )

        channel = NotificationChannel(
            name=payload.name,
            channel_type=channel_type.value,
            config=payload.config.model_dump(mode="json", exclude={"channel_type"}),
            is_active=False,
            version=1,
        )
        channel = await self._repository.create(session, channel)
        self.logger.info(
            "Created notification channel",
            extra={"channel_id": str(channel.id), "channel_type": channel.channel_type},
        )

        if payload.is_active:
            channel = await self.activate_channel(session, channel.id)
        return channel

    async def update_channel(
        self,
        session: AsyncSession,
        channel_id: UUID,
        payload: NotificationChannelUpdate,
    ) -> NotificationChannel:
        """Rename or reconfigure an instance, bumping its version.

        Raises:
            ValidationException: If the new config belongs to another channel type
        """
        channel = await self.get_channel(session, channel_id)

        if payload.config is not None:
            if payload.config.channel_type != channel.channel_type:
                raise ValidationException(
                    detail=(
                        f"Config for '{payload.config.channel_type}' cannot be applied "
                        f"to a '{channel.channel_type}' channel"
                    ),
                    type="channel-type-mismatch",
                    extra={"channel_type": channel.channel_type},
                )
            channel.config = payload.config.model_dump(mode="json", exclude={"channel_type"})
        if payload.name is not None:
            channel.name = payload.name

        channel.version += 1
        await session.flush()
        await session.refresh(channel)
        return channel

    async def delete_channel(self, session: AsyncSession, channel_id: UUID) -> None:
        """Delete an instance. Deleting the active one leaves its type unconfigured."""
        channel = await self.get_channel(session, channel_id)
        if channel.is_active:
            self.logger.warning(
                "Deleting active channel",
                extra={"channel_id": str(channel.id), "channel_type": channel.channel_type},
            )
        await self._repository.delete(session, channel)

    async def activate_channel(
        self,
        session: AsyncSession,
        channel_id: UUID,
        expected_version: int | None = None,
    ) -> NotificationChannel:
        """Make `channel_id` the single active instance of its type.

        On conflict the session is rolled back before the error is raised,
        so nothing from the losing attempt is left pending.

        Args:
            session: Database session
            channel_id: Instance to activate
            expected_version: Version the caller last saw (optional)

        Raises:
            NotFoundException: If the instance does not exist
            ActivationConflictError: If a concurrent activation won
        """
        channel = await self.get_channel(session, channel_id)
        await session.refresh(channel)
        channel_type = channel.channel_type

        if expected_version is not None and channel.version != expected_version:
            await self._conflict(session, channel_type, "Channel was modified since it was read")

        if channel.is_active:
            return channel

        try:
            previous = await self._repository.get_active(session, channel_type)
            if previous is not None:
                deactivated = await self._repository.deactivate_if_version(
                    session,
                    previous.id,
                    previous.version,
                )
                if not deactivated:
                    await self._conflict(session, channel_type)

            activated = await self._repository.activate_if_version(session, channel.id, channel.version)
            if not activated:
                await self._conflict(session, channel_type)
            await session.flush()
        except (IntegrityError, OperationalError) as exc:
            await self._conflict(session, channel_type, str(exc.orig) if exc.orig else None)

        await session.refresh(channel)
        channel_activation_total.labels(channel=channel_type, outcome="activated").inc()
        self.logger.info(
            "Activated notification channel",
            extra={
                "channel_id": str(channel.id),
                "channel_type": channel_type,
                "previous_id": str(previous.id) if previous else None,
            },
        )
        return channel

    async def deactivate_channel(
        self,
        session: AsyncSession,
        channel_id: UUID,
        expected_version: int | None = None,
    ) -> NotificationChannel:
        """Leave the channel's type with no active instance.

        Deliveries on that type then fail with `not-configured` until another
        instance is activated. Already inactive instances are returned as-is.

        Raises:
            NotFoundException: If the instance does not exist
            ActivationConflictError: If the row changed since it was read
        """
        channel = await self.get_channel(session, channel_id)
        await session.refresh(channel)
        channel_type = channel.channel_type

        if expected_version is not None and channel.version != expected_version:
            await self._conflict(session, channel_type, "Channel was modified since it was read")

        if not channel.is_active:
            return channel

        try:
            deactivated = await self._repository.deactivate_if_version(session, channel.id, channel.version)
            if not deactivated:
                await self._conflict(session, channel_type)
            await session.flush()
        except (IntegrityError, OperationalError) as exc:
            await self._conflict(session, channel_type, str(exc.orig) if exc.orig else None)

        await session.refresh(channel)
        channel_activation_total.labels(channel=channel_type, outcome="deactivated").inc()
        self.logger.info(
            "Deactivated notification channel",
            extra={"channel_id": str(channel.id), "channel_type": channel_type},
        )
        return channel

    async def _conflict(
        self,
        session: AsyncSession,
        channel_type: str,
        detail: str | None = None,
    ) -> NoReturn:
        await session.rollback()
        channel_activation_total.labels(channel=channel_type, outcome="conflict").inc()
        self.logger.warning(
            "Channel activation conflict",
            extra={"channel_type": channel_type, "detail": detail},
        )
        raise ActivationConflictError(channel_type)


_channel_registry: ChannelRegistry | None = None


def get_channel_registry() -> ChannelRegistry:
    """Get ChannelRegistry singleton instance."""
    global _channel_registry
    if _channel_registry is None:
        _channel_registry = ChannelRegistry()
    return _channel_registry

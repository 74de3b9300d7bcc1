"""Repositories for the notifications feature."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, select, update

from notification_service.core.database.repository import BaseRepository
from notification_service.features.notifications.models import (
    Notification,
    NotificationChannel,
    NotificationDelivery,
    NotificationTemplate,
    UserNotificationPreference,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession


class NotificationTemplateRepository(BaseRepository[NotificationTemplate]):
    """Repository for NotificationTemplate model."""

    def __init__(self) -> None:
        """Initialize with NotificationTemplate model."""
        super().__init__(NotificationTemplate)

    async def get_by_name(
        self,
        session: AsyncSession,
        name: str,
        *,
        active_only: bool = False,
    ) -> NotificationTemplate | None:
        """Get template by its unique name.

        Args:
            session: Database session
            name: Template name (e.g., 'violation_recorded')
            active_only: Ignore deactivated templates

        Returns:
            Template if found, None otherwise
        """
        stmt = select(NotificationTemplate).where(NotificationTemplate.name == name)
        if active_only:
            stmt = stmt.where(NotificationTemplate.is_active.is_(True))
        result = await session.execute(stmt)
        template = result.scalar_one_or_none()

        self._lazy.debug(lambda: f"db.get_template({name=}, {active_only=}) -> {template is not None}")
        return template

    async def list_all(
        self,
        session: AsyncSession,
        *,
        active_only: bool = False,
    ) -> Sequence[NotificationTemplate]:
        """List templates ordered by name."""
        stmt = select(NotificationTemplate).order_by(NotificationTemplate.name)
        if active_only:
            stmt = stmt.where(NotificationTemplate.is_active.is_(True))
        result = await session.execute(stmt)
        return result.scalars().all()

    async def is_referenced(self, session: AsyncSession, name: str) -> bool:
        """Whether any notification was rendered from this template."""
        stmt = select(func.count()).select_from(Notification).where(Notification.template_name == name)
        count = (await session.execute(stmt)).scalar() or 0
        return count > 0


class NotificationChannelRepository(BaseRepository[NotificationChannel]):
    """Repository for NotificationChannel model.

    Activation helpers issue guarded UPDATE statements so the caller can
    detect lost races through affected row counts.
    """

    def __init__(self) -> None:
        """Initialize with NotificationChannel model."""
        super().__init__(NotificationChannel)

    async def get_active(
        self,
        session: AsyncSession,
        channel_type: str,
    ) -> NotificationChannel | None:
        """Get the active instance for a channel type."""
        stmt = select(NotificationChannel).where(
            and_(
                NotificationChannel.channel_type == channel_type,
                NotificationChannel.is_active.is_(True),
            ),
        ).execution_options(populate_existing=True)
        result = await session.execute(stmt)
        channel = result.scalar_one_or_none()

        self._lazy.debug(lambda: f"db.get_active({channel_type=}) -> {channel.id if channel else None}")
        return channel

    async def list_all(
        self,
        session: AsyncSession,
        *,
        channel_type: str | None = None,
    ) -> Sequence[NotificationChannel]:
        """List channel instances, optionally of one type."""
        stmt = select(NotificationChannel).order_by(
            NotificationChannel.channel_type,
            NotificationChannel.created_at,
        )
        if channel_type:
            stmt = stmt.where(NotificationChannel.channel_type == channel_type)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def deactivate_if_version(
        self,
        session: AsyncSession,
        channel_id: UUID,
        version: int,
    ) -> bool:
        """Deactivate a channel only if its version is still `version`.

        Returns:
            True when the row was updated, False when another writer got there first
        """
        stmt = (
            update(NotificationChannel)
            .where(
                and_(
                    NotificationChannel.id == channel_id,
                    NotificationChannel.version == version,
                    NotificationChannel.is_active.is_(True),
                ),
            )
            .values(
                is_active=False,
                version=version + 1,
                updated_at=datetime.now(UTC),
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        updated = (result.rowcount or 0) == 1

        self._lazy.debug(lambda: f"db.deactivate_if_version({channel_id}, {version=}) -> {updated}")
        return updated

    async def activate_if_version(
        self,
        session: AsyncSession,
        channel_id: UUID,
        version: int,
    ) -> bool:
        """Activate a channel only if its version is still `version`.

        Returns:
            True when the row was updated, False when another writer got there first
        """
        stmt = (
            update(NotificationChannel)
            .where(
                and_(
                    NotificationChannel.id == channel_id,
                    NotificationChannel.version == version,
                ),
            )
            .values(
                is_active=True,
                version=version + 1,
                updated_at=datetime.now(UTC),
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        updated = (result.rowcount or 0) == 1

        self._lazy.debug(lambda: f"db.activate_if_version({channel_id}, {version=}) -> {updated}")
        return updated


class UserNotificationPreferenceRepository(BaseRepository[UserNotificationPreference]):
    """Repository for UserNotificationPreference model."""

    def __init__(self) -> None:
        """Initialize with UserNotificationPreference model."""
        super().__init__(UserNotificationPreference)

    async def get_for_user_and_kind(
        self,
        session: AsyncSession,
        user_id: str,
        kind: str,
    ) -> UserNotificationPreference | None:
        """Get preference for a specific user and notification kind.

        Args:
            session: Database session
            user_id: User identifier
            kind: Notification kind

        Returns:
            Preference if found, None otherwise
        """
        stmt = select(UserNotificationPreference).where(
            and_(
                UserNotificationPreference.user_id == user_id,
                UserNotificationPreference.kind == kind,
            ),
        )
        result = await session.execute(stmt)
        pref = result.scalar_one_or_none()

        self._lazy.debug(lambda: f"db.get_preference({user_id=}, {kind=}) -> {pref is not None}")
        return pref

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> Sequence[UserNotificationPreference]:
        """List all preferences for a user."""
        stmt = (
            select(UserNotificationPreference)
            .where(UserNotificationPreference.user_id == user_id)
            .order_by(UserNotificationPreference.kind)
        )
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.list_for_user({user_id=}) -> {len(items)} preferences")
        return items

    async def upsert(
        self,
        session: AsyncSession,
        user_id: str,
        kind: str,
        **values: Any,
    ) -> UserNotificationPreference:
        """Create or update the preference for (user_id, kind).

        Args:
            session: Database session
            user_id: User identifier
            kind: Notification kind
            **values: Fields to set (enabled, channels, quiet hours)

        Returns:
            Created or updated preference
        """
        existing = await self.get_for_user_and_kind(session, user_id, kind)

        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
            await session.flush()
            self._lazy.debug(lambda: f"db.upsert({user_id=}, {kind=}) -> updated")
            return existing

        pref = UserNotificationPreference(user_id=user_id, kind=kind, **values)
        session.add(pref)
        await session.flush()
        self._lazy.debug(lambda: f"db.upsert({user_id=}, {kind=}) -> created")
        return pref


class NotificationRepository(BaseRepository[Notification]):
    """Repository for Notification model."""

    def __init__(self) -> None:
        """Initialize with Notification model."""
        super().__init__(Notification)

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        kind: str | None = None,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[Notification], int]:
        """List notifications for a user with filters and counts.

        Args:
            session: Database session
            user_id: User identifier
            kind: Optional kind filter
            unread_only: Only return unread notifications
            limit: Max results
            offset: Pagination offset

        Returns:
            Tuple of (notifications, total_count)
        """
        stmt = select(Notification).where(Notification.user_id == user_id)

        if kind:
            stmt = stmt.where(Notification.kind == kind)

        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))

        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
        page = await self.search(session, stmt, limit=limit, offset=offset)

        self._lazy.debug(lambda: f"db.list_for_user({user_id=}) -> {len(page.items)}/{page.total} notifications")
        return page.items, page.total

    async def get_unread_count(self, session: AsyncSession, user_id: str) -> int:
        """Get count of unread notifications for a user."""
        stmt = select(func.count()).select_from(Notification).where(
            and_(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            ),
        )
        result = await session.execute(stmt)
        count = result.scalar() or 0

        self._lazy.debug(lambda: f"db.get_unread_count({user_id=}) -> {count}")
        return count

    async def mark_as_read(
        self,
        session: AsyncSession,
        notification: Notification,
    ) -> Notification:
        """Mark a notification as read (idempotent)."""
        if not notification.read:
            notification.read = True
            notification.read_at = datetime.now(UTC)
            await session.flush()
            self._lazy.debug(lambda: f"db.mark_as_read({notification.id}) -> marked")
        return notification

    async def mark_all_as_read(self, session: AsyncSession, user_id: str) -> int:
        """Mark every unread notification of a user as read.

        Returns:
            Number of notifications updated
        """
        stmt = (
            update(Notification)
            .where(
                and_(
                    Notification.user_id == user_id,
                    Notification.read.is_(False),
                ),
            )
            .values(read=True, read_at=datetime.now(UTC))
            .execution_options(synchronize_session="evaluate")
        )
        result = await session.execute(stmt)
        count = result.rowcount or 0

        self._lazy.debug(lambda: f"db.mark_all_as_read({user_id=}) -> {count}")
        return count


class NotificationDeliveryRepository(BaseRepository[NotificationDelivery]):
    """Repository for the append-only delivery log."""

    def __init__(self) -> None:
        """Initialize with NotificationDelivery model."""
        super().__init__(NotificationDelivery)

    async def list_for_notification(
        self,
        session: AsyncSession,
        notification_id: UUID,
    ) -> Sequence[NotificationDelivery]:
        """List all deliveries for a notification.

        Args:
            session: Database session
            notification_id: Notification UUID

        Returns:
            Sequence of deliveries
        """
        stmt = select(NotificationDelivery).where(
            NotificationDelivery.notification_id == notification_id,
        )
        stmt = stmt.order_by(NotificationDelivery.attempted_at.asc(), NotificationDelivery.channel_type)

        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.list_for_notification({notification_id}) -> {len(items)} deliveries")
        return items

    async def list_filtered(
        self,
        session: AsyncSession,
        *,
        status: str | None = None,
        channel_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[NotificationDelivery], int]:
        """List delivery log entries, newest first.

        Used by the admin view and by external retry housekeeping that
        picks up `failed` entries.
        """
        stmt = select(NotificationDelivery)
        if status:
            stmt = stmt.where(NotificationDelivery.status == status)
        if channel_type:
            stmt = stmt.where(NotificationDelivery.channel_type == channel_type)
        stmt = stmt.order_by(NotificationDelivery.attempted_at.desc())

        page = await self.search(session, stmt, limit=limit, offset=offset)
        return page.items, page.total

    async def get_stats_by_status(
        self,
        session: AsyncSession,
        channel_type: str | None = None,
    ) -> dict[str, int]:
        """Get delivery counts grouped by status."""
        stmt = select(
            NotificationDelivery.status,
            func.count(NotificationDelivery.id).label("count"),
        )

        if channel_type:
            stmt = stmt.where(NotificationDelivery.channel_type == channel_type)

        stmt = stmt.group_by(NotificationDelivery.status)

        result = await session.execute(stmt)
        stats = {row.status: row.count for row in result}

        self._lazy.debug(lambda: f"db.get_stats_by_status({channel_type=}) -> {stats}")
        return stats


# Factory functions for dependency injection
_template_repository: NotificationTemplateRepository | None = None
_channel_repository: NotificationChannelRepository | None = None
_preference_repository: UserNotificationPreferenceRepository | None = None
_notification_repository: NotificationRepository | None = None
_delivery_repository: NotificationDeliveryRepository | None = None


def get_notification_template_repository() -> NotificationTemplateRepository:
    """Get NotificationTemplateRepository singleton instance."""
    global _template_repository
    if _template_repository is None:
        _template_repository = NotificationTemplateRepository()
    return _template_repository


def get_notification_channel_repository() -> NotificationChannelRepository:
    """Get NotificationChannelRepository singleton instance."""
    global _channel_repository
    if _channel_repository is None:
        _channel_repository = NotificationChannelRepository()
    return _channel_repository


def get_user_notification_preference_repository() -> UserNotificationPreferenceRepository:
    """Get UserNotificationPreferenceRepository singleton instance."""
    global _preference_repository
    if _preference_repository is None:
        _preference_repository = UserNotificationPreferenceRepository()
    return _preference_repository


def get_notification_repository() -> NotificationRepository:
    """Get NotificationRepository singleton instance."""
    global _notification_repository
    if _notification_repository is None:
        _notification_repository = NotificationRepository()
    return _notification_repository


def get_notification_delivery_repository() -> NotificationDeliveryRepository:
    """Get NotificationDeliveryRepository singleton instance."""
    global _delivery_repository
    if _delivery_repository is None:
        _delivery_repository = NotificationDeliveryRepository()
    return _delivery_repository

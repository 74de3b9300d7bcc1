"""Dispatch engine: turns send requests into notifications and delivery records.

All three send paths share one pipeline:

    resolve recipients -> render -> create notification rows (flush)
    -> plan channels per recipient -> dispatch -> append delivery log

Every error that prevents creation (unknown template, missing variable,
recipient resolution) is raised before the first row is written. Channel
failures are recorded in the delivery log and never raised.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from notification_service.core.services.base import BaseService
from notification_service.features.notifications.channels.dispatcher import (
    ChannelDispatcher,
    DeliveryTask,
    get_channel_dispatcher,
)
from notification_service.features.notifications.enums import (
    ChannelType,
    DeliveryStatus,
    NotificationKind,
)
from notification_service.features.notifications.metrics import (
    notification_created_total,
    notification_delivery_total,
    notification_read_total,
    notification_suppressed_total,
)
from notification_service.features.notifications.models import (
    Notification,
    NotificationDelivery,
    UserNotificationPreference,
)
from notification_service.features.notifications.preferences import (
    PreferenceFilter,
    normalize_channels,
)
from notification_service.features.notifications.recipients import (
    RecipientResolver,
    get_user_directory,
)
from notification_service.features.notifications.repository import (
    NotificationDeliveryRepository,
    NotificationRepository,
    UserNotificationPreferenceRepository,
    get_notification_delivery_repository,
    get_notification_repository,
    get_user_notification_preference_repository,
)
from notification_service.features.notifications.schemas import RecipientSelector
from notification_service.features.notifications.templates.renderer import (
    RenderedContent,
    TemplateRenderer,
    get_template_renderer,
)
from notification_service.features.notifications.templates.service import (
    NotificationTemplateService,
    get_notification_template_service,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.features.notifications.schemas import (
        UserNotificationPreferenceUpdate,
    )


class NotificationService(BaseService):
    """Service for sending notifications and managing their read state.

    Provides:
    - send_direct / send_by_role / send_from_template over one pipeline
    - Per-user preference and quiet-hours filtering
    - Concurrent channel delivery with an append-only delivery log
    - Read state (list, mark read, mark all read) and preferences
    """

    def __init__(
        self,
        repository: NotificationRepository | None = None,
        delivery_repository: NotificationDeliveryRepository | None = None,
        preference_repository: UserNotificationPreferenceRepository | None = None,
        template_service: NotificationTemplateService | None = None,
        renderer: TemplateRenderer | None = None,
        resolver: RecipientResolver | None = None,
        preference_filter: PreferenceFilter | None = None,
        dispatcher: ChannelDispatcher | None = None,
    ) -> None:
        """Initialize with repositories and collaborators.

        Every argument defaults to the process-wide instance.
        """
        super().__init__()
        self._repository = repository or get_notification_repository()
        self._delivery_repository = delivery_repository or get_notification_delivery_repository()
        self._preference_repository = preference_repository or get_user_notification_preference_repository()
        self._template_service = template_service or get_notification_template_service()
        self._renderer = renderer or get_template_renderer()
        self._resolver = resolver or RecipientResolver(get_user_directory())
        self._preference_filter = preference_filter or PreferenceFilter(
            get_user_directory(),
            self._preference_repository,
        )
        self._dispatcher = dispatcher or get_channel_dispatcher()

    # =========================================================================
    # Send operations
    # =========================================================================

    async def send_direct(
        self,
        session: AsyncSession,
        user_id: str,
        kind: NotificationKind | str,
        title: str,
        body: str,
        channels: Iterable[ChannelType | str] | None = None,
        *,
        data: dict[str, Any] | None = None,
    ) -> UUID:
        """Send literal content to one user.

        Returns:
            Id of the created notification
        """
        recipients = sorted(await self._resolver.resolve_direct(user_id))
        content = RenderedContent(title=title, body=body)
        ids = await self._deliver(
            session,
            recipients,
            NotificationKind(kind),
            {user: content for user in recipients},
            normalize_channels(channels),
            source="direct",
            data=data,
        )
        return ids[0]

    async def send_by_role(
        self,
        session: AsyncSession,
        role: str,
        kind: NotificationKind | str,
        title: str,
        body: str,
        channels: Iterable[ChannelType | str] | None = None,
        *,
        data: dict[str, Any] | None = None,
    ) -> list[UUID]:
        """Send literal content to every current holder of `role`.

        Returns:
            Notification ids in recipient order; empty when nobody holds the role

        Raises:
            ResolutionError: If the user directory fails
        """
        recipients = sorted(await self._resolver.resolve_by_role(role))
        if not recipients:
            self.logger.info("No users hold role, nothing sent", extra={"role": role})
            return []

        content = RenderedContent(title=title, body=body)
        return await self._deliver(
            session,
            recipients,
            NotificationKind(kind),
            {user: content for user in recipients},
            normalize_channels(channels),
            source="role",
            data=data,
        )

    async def send_from_template(
        self,
        session: AsyncSession,
        template_name: str,
        recipients: RecipientSelector | str | Sequence[str],
        variables: Mapping[str, Any],
        *,
        channels: Iterable[ChannelType | str] | None = None,
        recipient_variables: Mapping[str, Mapping[str, Any]] | None = None,
        data: dict[str, Any] | None = None,
    ) -> list[UUID]:
        """Render a stored template and send it.

        The shared variable bag is rendered once for the batch. A recipient
        with an entry in `recipient_variables` gets its own render with
        those values merged over the shared bag.

        Args:
            session: Database session
            template_name: Active template name
            recipients: Selector, a single user id, or a list of user ids
            variables: Shared template variables
            channels: Extra channels requested on top of the template defaults
            recipient_variables: Per-recipient variable overrides
            data: Event payload stored on every notification

        Returns:
            Notification ids in recipient order

        Raises:
            UnknownTemplateError: If no active template has this name
            MissingVariableError: If a required variable is absent
            ResolutionError: If recipients cannot be resolved
        """
        template = await self._template_service.get_active_by_name(session, template_name)
        selector = self._to_selector(recipients)
        overrides = dict(recipient_variables or {})

        shared: RenderedContent | None = None
        if not overrides:
            shared = self._renderer.render(template, variables)

        users = await self._resolver.resolve(selector)
        contents: dict[str, RenderedContent] = {}
        for user in users:
            if user in overrides:
                contents[user] = self._renderer.render(template, {**variables, **overrides[user]})
            else:
                if shared is None:
                    shared = self._renderer.render(template, variables)
                contents[user] = shared

        if not users:
            self.logger.info(
                "Template send resolved no recipients",
                extra={"template_name": template_name},
            )
            return []

        requested = normalize_channels([*template.default_channels, *(channels or ())])
        return await self._deliver(
            session,
            users,
            NotificationKind(template.kind),
            contents,
            requested,
            source="template",
            template_name=template.name,
            data=data,
        )

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _deliver(
        self,
        session: AsyncSession,
        recipients: Sequence[str],
        kind: NotificationKind,
        contents: Mapping[str, RenderedContent],
        requested: Sequence[ChannelType],
        *,
        source: str,
        template_name: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> list[UUID]:
        notifications = [
            Notification(
                user_id=user,
                kind=kind.value,
                title=contents[user].title,
                body=contents[user].body,
                template_name=template_name,
                data=data,
                read=False,
            )
            for user in recipients
        ]
        session.add_all(notifications)
        await session.flush()
        notification_created_total.labels(kind=kind.value, source=source).inc(len(notifications))

        deliveries: list[NotificationDelivery] = []
        tasks: list[DeliveryTask] = []
        planned_at = datetime.now(UTC)

        for notification in notifications:
            selection = await self._preference_filter.select_channels(
                session,
                notification.user_id,
                kind,
                requested,
            )
            for channel_type, reason in selection.suppressed:
                deliveries.append(
                    NotificationDelivery(
                        notification_id=notification.id,
                        channel_type=channel_type.value,
                        status=DeliveryStatus.SUPPRESSED.value,
                        reason=reason,
                        attempted_at=planned_at,
                    ),
                )
                notification_suppressed_total.labels(channel=channel_type.value, reason=reason).inc()
            tasks.extend(
                DeliveryTask(
                    notification_id=notification.id,
                    user_id=notification.user_id,
                    channel_type=channel_type,
                    title=notification.title,
                    body=notification.body,
                )
                for channel_type in selection.allowed
            )

        outcomes = await self._dispatcher.dispatch(session, tasks)
        deliveries.extend(
            NotificationDelivery(
                notification_id=outcome.task.notification_id,
                channel_type=outcome.task.channel_type.value,
                channel_id=outcome.channel_id,
                status=outcome.status.value,
                reason=outcome.reason,
                attempted_at=outcome.attempted_at,
                response_time_ms=outcome.response_time_ms,
            )
            for outcome in outcomes
        )
        if deliveries:
            await self._delivery_repository.create_many(session, deliveries)

        for delivery in deliveries:
            notification_delivery_total.labels(channel=delivery.channel_type, status=delivery.status).inc()

        ids = [notification.id for notification in notifications]
        for notification in notifications:
            self.logger.info(
                "Dispatched notification",
                extra={
                    "notification_id": str(notification.id),
                    "user_id": notification.user_id,
                    "kind": kind.value,
                    "source": source,
                    "template_name": template_name,
                    "channels": [
                        f"{d.channel_type}:{d.status}"
                        for d in deliveries
                        if d.notification_id == notification.id
                    ],
                },
            )
        return ids

    @staticmethod
    def _to_selector(recipients: RecipientSelector | str | Sequence[str]) -> RecipientSelector:
        if isinstance(recipients, RecipientSelector):
            return recipients
        if isinstance(recipients, str):
            return RecipientSelector(user_id=recipients)
        return RecipientSelector(user_ids=list(recipients))

    # =========================================================================
    # Read state
    # =========================================================================

    async def list_user_notifications(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        kind: str | None = None,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[Notification], int, int]:
        """List a user's notifications.

        Returns:
            Tuple of (notifications, total matching, unread count)
        """
        notifications, total = await self._repository.list_for_user(
            session,
            user_id,
            kind=kind,
            unread_only=unread_only,
            limit=limit,
            offset=offset,
        )
        unread_count = await self._repository.get_unread_count(session, user_id)
        return notifications, total, unread_count

    async def get_notification(
        self,
        session: AsyncSession,
        notification_id: UUID,
        user_id: str,
    ) -> tuple[Notification, Sequence[NotificationDelivery]] | None:
        """Get a notification owned by `user_id` with its delivery log.

        Returns:
            (notification, deliveries), or None if missing or owned by someone else
        """
        notification = await self._repository.get(session, notification_id)
        if notification is None or notification.user_id != user_id:
            return None
        deliveries = await self._delivery_repository.list_for_notification(session, notification_id)
        return notification, deliveries

    async def mark_as_read(
        self,
        session: AsyncSession,
        notification_id: UUID,
        user_id: str,
    ) -> Notification | None:
        """Mark one notification as read.

        Returns:
            The notification, or None if missing or owned by someone else
        """
        notification = await self._repository.get(session, notification_id)
        if notification is None or notification.user_id != user_id:
            return None

        was_unread = not notification.read
        notification = await self._repository.mark_as_read(session, notification)
        if was_unread:
            notification_read_total.labels(kind=notification.kind).inc()
        return notification

    async def mark_all_as_read(self, session: AsyncSession, user_id: str) -> int:
        """Mark every unread notification of a user as read.

        Returns:
            Number of notifications updated
        """
        count = await self._repository.mark_all_as_read(session, user_id)
        self._lazy.debug(lambda: f"mark_all_as_read({user_id=}) -> {count}")
        return count

    # =========================================================================
    # Preferences
    # =========================================================================

    async def list_preferences(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> Sequence[UserNotificationPreference]:
        """Stored preferences of a user (absent kinds use defaults)."""
        return await self._preference_repository.list_for_user(session, user_id)

    async def get_preference(
        self,
        session: AsyncSession,
        user_id: str,
        kind: NotificationKind,
    ) -> UserNotificationPreference:
        """Stored preference for a kind, or an unsaved default."""
        pref = await self._preference_repository.get_for_user_and_kind(session, user_id, kind.value)
        if pref is None:
            pref = UserNotificationPreference(
                user_id=user_id,
                kind=kind.value,
                enabled=True,
                channels=[ChannelType.IN_APP.value],
                quiet_hours_start=None,
                quiet_hours_end=None,
            )
        return pref

    async def set_preference(
        self,
        session: AsyncSession,
        user_id: str,
        kind: NotificationKind,
        payload: UserNotificationPreferenceUpdate,
    ) -> UserNotificationPreference:
        """Create or replace the preference for one kind."""
        return await self._preference_repository.upsert(
            session,
            user_id,
            kind.value,
            enabled=payload.enabled,
            channels=[c.value for c in normalize_channels(payload.channels)],
            quiet_hours_start=payload.quiet_hours_start,
            quiet_hours_end=payload.quiet_hours_end,
        )

    async def reset_preference(
        self,
        session: AsyncSession,
        user_id: str,
        kind: NotificationKind,
    ) -> bool:
        """Delete a stored preference so defaults apply again.

        Returns:
            True if a stored preference was removed
        """
        pref = await self._preference_repository.get_for_user_and_kind(session, user_id, kind.value)
        if pref is None:
            return False
        await self._preference_repository.delete(session, pref)
        return True


_notification_service: NotificationService | None = None


def get_notification_service() -> NotificationService:
    """Get NotificationService singleton instance."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service

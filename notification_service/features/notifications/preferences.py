"""Preference filtering and quiet-hours evaluation.

Turns the channels a sender asked for into the channels that will
actually be attempted for one recipient, plus the ones recorded as
suppressed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, time
import logging
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.enums import (
    REASON_DISABLED,
    REASON_QUIET_HOURS,
    ChannelType,
)
from notification_service.features.notifications.repository import (
    UserNotificationPreferenceRepository,
    get_user_notification_preference_repository,
)
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.features.notifications.enums import NotificationKind
    from notification_service.features.notifications.recipients import UserDirectory

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

DEFAULT_CHANNELS: tuple[ChannelType, ...] = (ChannelType.IN_APP,)


def is_within_quiet_hours(now: time, start: time, end: time) -> bool:
    """Check membership in the half-open window `[start, end)`.

    The window wraps midnight when `start > end` (22:00-06:00 contains
    23:00 and 02:00). `start == end` means quiet all day.
    """
    current = now.replace(tzinfo=None)
    start = start.replace(tzinfo=None)
    end = end.replace(tzinfo=None)
    if start == end:
        return True
    if start < end:
        return start <= current < end
    return current >= start or current < end


def normalize_channels(channels: Iterable[ChannelType | str] | None) -> list[ChannelType]:
    """De-duplicate while keeping order; empty means in-app only."""
    ordered: list[ChannelType] = []
    for channel in channels or ():
        channel_type = ChannelType(channel)
        if channel_type not in ordered:
            ordered.append(channel_type)
    return ordered or list(DEFAULT_CHANNELS)


@dataclass(slots=True)
class ChannelSelection:
    """Planned channels for one recipient.

    Attributes:
        allowed: Channels to hand to adapters
        suppressed: (channel, reason) pairs recorded without an attempt
    """

    allowed: list[ChannelType] = field(default_factory=list)
    suppressed: list[tuple[ChannelType, str]] = field(default_factory=list)


class PreferenceFilter:
    """Applies per-user preferences and quiet hours to requested channels."""

    def __init__(
        self,
        directory: UserDirectory,
        repository: UserNotificationPreferenceRepository | None = None,
        *,
        default_timezone: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the filter.

        Args:
            directory: Source of recipient time zones
            repository: Preference repository (defaults to singleton)
            default_timezone: Zone used when the recipient's is unknown
            clock: Returns the current aware datetime (defaults to UTC now)
        """
        self._directory = directory
        self._repository = repository or get_user_notification_preference_repository()
        self._default_timezone = default_timezone or get_notification_settings().default_timezone
        self._clock = clock or (lambda: datetime.now(UTC))

    async def select_channels(
        self,
        session: AsyncSession,
        user_id: str,
        kind: NotificationKind,
        requested_channels: Iterable[ChannelType | str] | None,
    ) -> ChannelSelection:
        """Plan which requested channels are attempted for `user_id`."""
        requested = normalize_channels(requested_channels)
        pref = await self._repository.get_for_user_and_kind(session, user_id, kind.value)

        if pref is not None and not pref.enabled:
            return ChannelSelection(
                suppressed=[(channel, REASON_DISABLED) for channel in requested],
            )

        accepted = set(pref.channels) if pref is not None else {c.value for c in DEFAULT_CHANNELS}
        chosen = [channel for channel in requested if channel.value in accepted]
        if not chosen:
            chosen = [ChannelType.IN_APP]

        selection = ChannelSelection(allowed=chosen)
        if (
            pref is None
            or pref.quiet_hours_start is None
            or pref.quiet_hours_end is None
            or not any(channel.is_interruptive for channel in chosen)
        ):
            return selection

        local_now = self._clock().astimezone(await self._zone_for(user_id))
        if is_within_quiet_hours(local_now.timetz(), pref.quiet_hours_start, pref.quiet_hours_end):
            selection.allowed = [c for c in chosen if not c.is_interruptive]
            selection.suppressed = [(c, REASON_QUIET_HOURS) for c in chosen if c.is_interruptive]

        lazy_logger.debug(
            lambda: f"select_channels({user_id=}, {kind.value}) -> allowed={[c.value for c in selection.allowed]}, "
            f"suppressed={[(c.value, r) for c, r in selection.suppressed]}",
        )
        return selection

    async def _zone_for(self, user_id: str) -> ZoneInfo:
        """Recipient zone, falling back to the configured default."""
        try:
            name = await self._directory.timezone_of(user_id)
        except Exception as exc:
            logger.warning(
                "Time zone lookup failed, using default",
                extra={"user_id": user_id, "error": str(exc)},
            )
            name = None

        if name:
            try:
                return ZoneInfo(name)
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning(
                    "Unknown time zone for user, using default",
                    extra={"user_id": user_id, "timezone": name},
                )
        return ZoneInfo(self._default_timezone)

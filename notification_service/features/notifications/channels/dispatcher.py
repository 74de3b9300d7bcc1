"""Concurrent delivery of planned (recipient, channel) pairs.

Adapter calls run as independent asyncio tasks bounded by a semaphore,
each under its own timeout. Database access happens only before the
fan-out (active channel lookup) so the shared AsyncSession is never used
from several tasks at once.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
import logging
import time
from typing import TYPE_CHECKING, Any

from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.channels.base import Failed, Sent
from notification_service.features.notifications.channels.chat import ChatChannelAdapter
from notification_service.features.notifications.channels.email import EmailChannelAdapter
from notification_service.features.notifications.channels.in_app import InAppChannelAdapter
from notification_service.features.notifications.channels.push import PushChannelAdapter
from notification_service.features.notifications.channels.registry import (
    ChannelRegistry,
    get_channel_registry,
)
from notification_service.features.notifications.channels.sms import SmsChannelAdapter
from notification_service.features.notifications.enums import (
    REASON_NOT_CONFIGURED,
    REASON_TIMEOUT,
    ChannelType,
    DeliveryStatus,
)
from notification_service.features.notifications.exceptions import NotConfiguredError
from notification_service.features.notifications.metrics import (
    notification_delivery_duration_seconds,
)
from notification_service.features.notifications.recipients import get_user_directory
from notification_service.features.notifications.schemas import parse_channel_config
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.features.notifications.channels.base import ChannelAdapter
    from notification_service.features.notifications.channels.contacts import ContactDirectory
    from notification_service.features.notifications.models import NotificationChannel

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


@dataclass(frozen=True, slots=True)
class DeliveryTask:
    """One channel attempt for one notification."""

    notification_id: UUID
    user_id: str
    channel_type: ChannelType
    title: str
    body: str


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """Result of a `DeliveryTask`, ready to be written to the delivery log."""

    task: DeliveryTask
    status: DeliveryStatus
    reason: str | None
    channel_id: UUID | None
    attempted_at: datetime
    response_time_ms: int | None = None


class ChannelDispatcher:
    """Runs channel adapters with bounded concurrency and per-call timeouts.

    Outcomes:
        - adapter returns Sent          -> sent
        - adapter returns Failed(r)     -> failed / r
        - adapter exceeds the timeout   -> failed / timeout
        - adapter raises                -> failed / exception text
        - no active channel instance    -> failed / not-configured
    """

    def __init__(
        self,
        adapters: Mapping[ChannelType, ChannelAdapter],
        registry: ChannelRegistry | None = None,
        *,
        max_concurrency: int | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            adapters: Adapter per channel type
            registry: Channel registry (defaults to singleton)
            max_concurrency: Concurrent adapter calls (NOTIFY_MAX_CONCURRENT_DELIVERIES)
            timeout: Seconds per adapter call (NOTIFY_ADAPTER_TIMEOUT_SECONDS)
        """
        settings = get_notification_settings()
        self._adapters = dict(adapters)
        self._registry = registry or get_channel_registry()
        self._max_concurrency = max_concurrency or settings.max_concurrent_deliveries
        self._timeout = timeout or settings.adapter_timeout_seconds

    async def dispatch(
        self,
        session: AsyncSession,
        tasks: Iterable[DeliveryTask],
    ) -> list[DeliveryOutcome]:
        """Deliver every task; outcomes are returned in task order."""
        tasks = list(tasks)
        if not tasks:
            return []

        channels = await self._load_active_channels(session, {task.channel_type for task in tasks})
        semaphore = asyncio.Semaphore(self._max_concurrency)

        outcomes = await asyncio.gather(
            *(self._run(task, channels.get(task.channel_type), semaphore) for task in tasks),
        )

        lazy_logger.debug(
            lambda: f"dispatch({len(tasks)} tasks) -> "
            f"{sum(1 for o in outcomes if o.status is DeliveryStatus.SENT)} sent",
        )
        return list(outcomes)

    async def _load_active_channels(
        self,
        session: AsyncSession,
        channel_types: Iterable[ChannelType],
    ) -> dict[ChannelType, NotificationChannel]:
        channels: dict[ChannelType, NotificationChannel] = {}
        for channel_type in sorted(channel_types, key=lambda c: c.value):
            if channel_type is ChannelType.IN_APP:
                continue
            try:
                channels[channel_type] = await self._registry.get_active_channel(session, channel_type)
            except NotConfiguredError:
                lazy_logger.debug(lambda ct=channel_type: f"No active channel for {ct.value}")
        return channels

    async def _run(
        self,
        task: DeliveryTask,
        channel: NotificationChannel | None,
        semaphore: asyncio.Semaphore,
    ) -> DeliveryOutcome:
        async with semaphore:
            attempted_at = datetime.now(UTC)
            adapter = self._adapters.get(task.channel_type)
            needs_config = task.channel_type is not ChannelType.IN_APP

            if adapter is None or (needs_config and channel is None):
                return self._failed(task, REASON_NOT_CONFIGURED, None, attempted_at, None)

            channel_id = channel.id if channel is not None else None
            start = time.perf_counter()
            try:
                config: Any = parse_channel_config(channel.channel_type, channel.config) if channel else None
                result = await asyncio.wait_for(
                    adapter.deliver(
                        task.user_id,
                        task.title,
                        task.body,
                        config,
                        notification_id=task.notification_id,
                    ),
                    timeout=self._timeout,
                )
            except TimeoutError:
                elapsed_ms = self._observe(task, start)
                return self._failed(task, REASON_TIMEOUT, channel_id, attempted_at, elapsed_ms)
            except Exception as exc:
                elapsed_ms = self._observe(task, start)
                return self._failed(
                    task,
                    str(exc) or type(exc).__name__,
                    channel_id,
                    attempted_at,
                    elapsed_ms,
                )

            elapsed_ms = self._observe(task, start)

            if isinstance(result, Sent):
                return DeliveryOutcome(
                    task=task,
                    status=DeliveryStatus.SENT,
                    reason=None,
                    channel_id=channel_id,
                    attempted_at=attempted_at,
                    response_time_ms=elapsed_ms,
                )
            reason = result.reason if isinstance(result, Failed) else f"unexpected result: {result!r}"
            return self._failed(task, reason, channel_id, attempted_at, elapsed_ms)

    @staticmethod
    def _observe(task: DeliveryTask, start: float) -> int:
        """Record the adapter call duration; returns it in milliseconds."""
        elapsed = time.perf_counter() - start
        notification_delivery_duration_seconds.labels(channel=task.channel_type.value).observe(elapsed)
        return int(elapsed * 1000)

    @staticmethod
    def _failed(
        task: DeliveryTask,
        reason: str,
        channel_id: UUID | None,
        attempted_at: datetime,
        response_time_ms: int | None,
    ) -> DeliveryOutcome:
        logger.warning(
            "Channel delivery failed",
            extra={
                "notification_id": str(task.notification_id),
                "user_id": task.user_id,
                "channel": task.channel_type.value,
                "reason": reason,
            },
        )
        return DeliveryOutcome(
            task=task,
            status=DeliveryStatus.FAILED,
            reason=reason,
            channel_id=channel_id,
            attempted_at=attempted_at,
            response_time_ms=response_time_ms,
        )


def build_default_adapters(contacts: ContactDirectory) -> dict[ChannelType, ChannelAdapter]:
    """Adapters for every supported channel type."""
    adapters: Sequence[ChannelAdapter] = (
        InAppChannelAdapter(),
        EmailChannelAdapter(contacts),
        SmsChannelAdapter(contacts),
        PushChannelAdapter(contacts),
        ChatChannelAdapter(contacts),
    )
    return {adapter.channel_type: adapter for adapter in adapters}


_dispatcher: ChannelDispatcher | None = None


def get_channel_dispatcher() -> ChannelDispatcher:
    """Get ChannelDispatcher singleton wired to the configured user directory."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = ChannelDispatcher(build_default_adapters(get_user_directory()))
    return _dispatcher

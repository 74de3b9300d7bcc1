"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings isolation
    - Database Fixtures: in-memory SQLite engine and session
    - Directory Fixtures: static user directory with roles and contacts
    - Adapter Fixtures: recording channel adapters
    - Service Fixtures: a fully wired NotificationService
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notification_service.core.database.base import Base
from notification_service.core.settings import clear_settings_cache
from notification_service.features.notifications import models  # noqa: F401
from notification_service.features.notifications.channels.dispatcher import ChannelDispatcher
from notification_service.features.notifications.channels.registry import ChannelRegistry
from notification_service.features.notifications.enums import ChannelType
from notification_service.features.notifications.preferences import PreferenceFilter
from notification_service.features.notifications.recipients import (
    RecipientResolver,
    StaticUserDirectory,
)
from notification_service.features.notifications.repository import (
    NotificationChannelRepository,
    NotificationDeliveryRepository,
    NotificationRepository,
    NotificationTemplateRepository,
    UserNotificationPreferenceRepository,
)
from notification_service.features.notifications.service import NotificationService
from notification_service.features.notifications.templates.renderer import TemplateRenderer
from notification_service.features.notifications.templates.service import (
    NotificationTemplateService,
)
from tests.utils import RecordingAdapter

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Ensure tests run without external infrastructure
os.environ.setdefault("DB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("NOTIFY_DEFAULT_TIMEZONE", "UTC")
os.environ.setdefault("LOG_JSON", "false")

# Noon UTC: outside any quiet-hours window used in the tests
FIXED_NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _isolate_settings():
    """Reload settings for every test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Async engine on a fresh in-memory SQLite database with all tables."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Session that is rolled back after the test."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ============================================================================
# Directory Fixtures
# ============================================================================


@pytest.fixture
def directory() -> StaticUserDirectory:
    """Two counsellors, one homeroom adviser, one user without contacts."""
    return StaticUserDirectory(
        roles={
            "guru_bk": ["bk-2", "bk-1"],
            "wali_kelas": ["wali-1"],
            "kepala_sekolah": [],
        },
        timezones={"bk-1": "Asia/Jakarta", "bk-2": "UTC"},
        contacts={
            "bk-1": {"email": "bk1@school.test", "sms": "+6281100000001"},
            "bk-2": {"email": "bk2@school.test", "sms": "+6281100000002"},
            "wali-1": {"email": "wali1@school.test"},
        },
    )


# ============================================================================
# Adapter Fixtures
# ============================================================================


@pytest.fixture
def adapters() -> dict[ChannelType, RecordingAdapter]:
    """One recording adapter per channel type."""
    return {channel_type: RecordingAdapter(channel_type) for channel_type in ChannelType}


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def channel_registry() -> ChannelRegistry:
    return ChannelRegistry(NotificationChannelRepository())


@pytest.fixture
def template_service() -> NotificationTemplateService:
    return NotificationTemplateService(NotificationTemplateRepository(), TemplateRenderer())


@pytest.fixture
def preference_repository() -> UserNotificationPreferenceRepository:
    return UserNotificationPreferenceRepository()


@pytest.fixture
def clock():
    """Mutable clock; tests move time by setting `clock.now`."""

    class Clock:
        now = FIXED_NOW

        def __call__(self) -> datetime:
            return self.now

    return Clock()


@pytest.fixture
def dispatcher(adapters, channel_registry) -> ChannelDispatcher:
    return ChannelDispatcher(adapters, channel_registry, max_concurrency=4, timeout=1.0)


@pytest.fixture
def notification_service(
    directory,
    dispatcher,
    template_service,
    preference_repository,
    clock,
) -> NotificationService:
    """NotificationService wired to the static directory and recording adapters."""
    return NotificationService(
        repository=NotificationRepository(),
        delivery_repository=NotificationDeliveryRepository(),
        preference_repository=preference_repository,
        template_service=template_service,
        renderer=TemplateRenderer(),
        resolver=RecipientResolver(directory),
        preference_filter=PreferenceFilter(
            directory,
            preference_repository,
            default_timezone="UTC",
            clock=clock,
        ),
        dispatcher=dispatcher,
    )

"""Fixtures for HTTP-level tests against the FastAPI application."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from notification_service.app.main import create_app
from notification_service.core.dependencies.database import get_db_session
from notification_service.features.notifications.service import get_notification_service


@pytest.fixture
async def app(session_factory, notification_service):
    """Application wired to the test database and the test NotificationService."""
    application = create_app()

    async def override_session():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db_session] = override_session
    application.dependency_overrides[get_notification_service] = lambda: notification_service
    return application


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


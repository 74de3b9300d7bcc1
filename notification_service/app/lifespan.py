"""Application lifespan management.

Startup: logging, then database tables (when enabled).
Shutdown: close live notification streams, dispose the database engine.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from notification_service.core.database import dispose_engine, init_models
from notification_service.core.settings import get_app_settings, get_notification_settings
from notification_service.infra.logging import setup_logging
from notification_service.infra.realtime import get_connection_manager

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start and stop application services."""
    setup_logging()
    app_settings = get_app_settings()
    notify_settings = get_notification_settings()

    if app_settings.create_tables_on_startup:
        await init_models()

    logger.info(
        "Application started",
        extra={
            "version": app_settings.version,
            "max_concurrent_deliveries": notify_settings.max_concurrent_deliveries,
            "directory": "http" if notify_settings.directory_url else "static",
        },
    )
    try:
        yield
    finally:
        await get_connection_manager().close_all()
        await dispose_engine()
        logger.info("Application stopped")

"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (app, database, logging, notifications), read
from environment variables (and an optional .env file), frozen, and served
through LRU-cached loaders:

    from notification_service.core.settings import get_notification_settings

    settings = get_notification_settings()
    print(settings.adapter_timeout_seconds)
"""

from __future__ import annotations

from .app import AppSettings
from .database import DatabaseSettings
from .loader import (
    clear_settings_cache,
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_notification_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "NotificationSettings",
    "clear_settings_cache",
    "get_app_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_notification_settings",
]

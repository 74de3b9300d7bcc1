"""Logging configuration entrypoints.

`setup_logging()` is idempotent and safe to call from every entrypoint
(application factory, CLI scripts, tests). The root logger gets one console
handler using either the JSON Lines formatter or a plain text formatter,
plus the context-injecting filter.
"""

from __future__ import annotations

import logging
import logging.config
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from notification_service.core.settings import LoggingSettings

_LOGGING_INITIALIZED = False

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    settings_obj = log_settings
    if settings_obj is None:
        from notification_service.core.settings import get_logging_settings

        settings_obj = get_logging_settings()

    configure_logging(
        log_level=settings_obj.level,
        json_logs=settings_obj.json_logs,
        service_name=settings_obj.service_name,
        include_process_info=settings_obj.include_process_info,
    )
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    *,
    json_logs: bool = True,
    service_name: str = "notification-service",
    include_process_info: bool = False,
) -> None:
    """Apply the logging configuration via dictConfig.

    Args:
        log_level: Root logger level.
        json_logs: Use JSONL format instead of plain text.
        service_name: Static `service` field added to JSON records.
        include_process_info: Include process info in JSON records.
    """
    formatter: dict[str, Any]
    if json_logs:
        formatter = {
            "()": "notification_service.infra.logging.formatters.JSONFormatter",
            "static": {"service": service_name},
            "include_process_info": include_process_info,
        }
    else:
        formatter = {"format": PLAIN_FORMAT}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": formatter},
            "filters": {
                "context": {
                    "()": "notification_service.infra.logging.context.ContextInjectingFilter",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["context"],
                    "stream": "ext://sys.stderr",
                },
            },
            "root": {
                "level": log_level.upper(),
                "handlers": ["console"],
            },
        },
    )

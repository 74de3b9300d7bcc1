"""Logging infrastructure.

Provides structured logging with:
- JSONL format for Loki/Elasticsearch ingestion
- Automatic context injection (request_id, notification_id, ...)
- Lazy evaluation for expensive debug messages
- OpenTelemetry trace correlation

Basic usage:
    from notification_service.infra.logging import get_lazy_logger, set_log_context

    set_log_context(request_id="abc-123")
    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Plan: {plan}")  # Only runs if DEBUG enabled
"""

from notification_service.infra.logging.config import configure_logging, setup_logging
from notification_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    set_log_context,
)
from notification_service.infra.logging.formatters import JSONFormatter
from notification_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "set_log_context",
    "setup_logging",
]

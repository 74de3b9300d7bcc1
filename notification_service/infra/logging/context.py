"""Context management for structured logging.

Provides automatic context injection into log records using contextvars,
so identifiers such as the notification id, template name or recipient
are attached to every log line emitted while a dispatch is running.

Each asyncio task gets its own copy of the context, so concurrent
channel deliveries do not leak fields into each other's records.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Set logging context for the current async task.

    Args:
        **kwargs: Key-value pairs to add to logging context
            (e.g. request_id, user_id, notification_id).

    Example:
        ```python
        set_log_context(request_id="abc-123", user_id="guru-7")
        logger.info("Sending notification")  # Includes request_id and user_id
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def clear_log_context() -> None:
    """Clear all logging context for the current async task."""
    _log_context.set({})


class ContextInjectingFilter(logging.Filter):
    """Logging filter that injects the contextvars log context into LogRecords.

    Attached to the root logger by `configure_logging`, making context fields
    available to the JSON formatter without any change at call sites.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject context into log record.

        Args:
            record: The log record to enhance with context.

        Returns:
            True (always allow the record to be logged).
        """
        context = _log_context.get()

        for key, value in context.items():
            # Don't overwrite existing attributes
            if not hasattr(record, key):
                setattr(record, key, value)

        return True

"""Common base for notification services."""

from __future__ import annotations

import logging

from notification_service.infra.logging import get_lazy_logger


class BaseService:
    """Gives every service a named logger pair.

    `self.logger` carries INFO and above; `self._lazy` takes callables for
    DEBUG lines that are costly to build, e.g. per-recipient channel plans.
    """

    def __init__(self) -> None:
        name = self.__class__.__name__
        self.logger = logging.getLogger(name)
        self._lazy = get_lazy_logger(name)

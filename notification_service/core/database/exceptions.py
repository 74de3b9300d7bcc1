"""Repository-level errors, translated to HTTP problems by the services."""

from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base error for repository operations."""


class NotFoundError(RepositoryError):
    """No row matched a primary-key lookup.

    Attributes:
        model_name: Mapped class that was queried
        identifier: Key/value pairs used in the lookup
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]) -> None:
        self.model_name = model_name
        self.identifier = identifier
        keys = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        super().__init__(f"{model_name} not found with {keys}")

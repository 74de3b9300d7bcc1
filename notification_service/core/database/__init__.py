"""Database layer: declarative base, column types, repository and sessions."""

from notification_service.core.database.base import (
    Base,
    UUIDv7TimestampedBase,
    generate_uuid7,
)
from notification_service.core.database.exceptions import NotFoundError, RepositoryError
from notification_service.core.database.repository import BaseRepository, SearchResult
from notification_service.core.database.session import (
    dispose_engine,
    get_async_session,
    get_engine,
    get_session_factory,
    init_models,
)
from notification_service.core.database.types import StringArray

__all__ = [
    "Base",
    "BaseRepository",
    "NotFoundError",
    "RepositoryError",
    "SearchResult",
    "StringArray",
    "UUIDv7TimestampedBase",
    "dispose_engine",
    "generate_uuid7",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_models",
]

"""Shared FastAPI dependencies."""

from notification_service.core.dependencies.auth import (
    AdminDep,
    CallerDep,
    CallerIdentity,
    get_caller,
    require_admin,
)
from notification_service.core.dependencies.database import get_db_session

__all__ = [
    "AdminDep",
    "CallerDep",
    "CallerIdentity",
    "get_caller",
    "get_db_session",
    "require_admin",
]

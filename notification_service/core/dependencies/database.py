"""Database dependencies for FastAPI route handlers.

Two session getters serve different callers:

1. `get_db_session()` (this module) - FastAPI dependency, session
   lifecycle tied to the HTTP request. Handlers commit explicitly.
2. `get_async_session()` (core.database) - framework-agnostic context
   manager for scripts and background jobs.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from notification_service.core.database import get_async_session


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency for database session.

    Yields:
        Database session that is automatically closed after request.

    Example:
        @router.get("/notifications")
        async def list_notifications(session: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with get_async_session() as session:
        yield session

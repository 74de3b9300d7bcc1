"""Recipient resolution (fan-out) and user directory collaborators.

The directory is an external system: role membership, time zones and
contact addresses are read from it, never stored here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.enums import ChannelType
from notification_service.features.notifications.exceptions import ResolutionError
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from notification_service.features.notifications.schemas import RecipientSelector

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


class UserDirectory(Protocol):
    """Read-only view of users, roles and time zones."""

    async def users_with_role(self, role: str) -> Iterable[str]:
        """User ids currently holding `role` (active assignments only)."""
        ...

    async def timezone_of(self, user_id: str) -> str | None:
        """IANA zone name for a user, or None when unknown."""
        ...


# =============================================================================
# Directory implementations
# =============================================================================


class StaticUserDirectory:
    """In-memory directory for development and tests.

    Example:
        directory = StaticUserDirectory(
            roles={"guru_bk": ["u1", "u2"]},
            timezones={"u1": "Asia/Jakarta"},
            contacts={"u1": {"email": "u1@school.test"}},
        )
    """

    def __init__(
        self,
        roles: Mapping[str, Iterable[str]] | None = None,
        timezones: Mapping[str, str] | None = None,
        contacts: Mapping[str, Mapping[str, str]] | None = None,
    ) -> None:
        self._roles = {role: list(users) for role, users in (roles or {}).items()}
        self._timezones = dict(timezones or {})
        self._contacts = {user: dict(c) for user, c in (contacts or {}).items()}

    async def users_with_role(self, role: str) -> list[str]:
        return list(self._roles.get(role, []))

    async def timezone_of(self, user_id: str) -> str | None:
        return self._timezones.get(user_id)

    async def contact_for(self, user_id: str, channel_type: ChannelType) -> str | None:
        return self._contacts.get(user_id, {}).get(ChannelType(channel_type).value)


class HttpUserDirectory:
    """User directory backed by an HTTP service.

    Endpoints (relative to `base_url`):
        GET /roles/{role}/users     -> {"user_ids": ["...", ...]}
        GET /users/{user_id}        -> {"timezone": "Asia/Jakarta", "contacts": {"email": "..."}}

    A 404 for a user means "unknown user": no time zone, no contacts.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize directory client.

        Args:
            base_url: Directory service root URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def users_with_role(self, role: str) -> list[str]:
        async with self._client() as client:
            response = await client.get(f"/roles/{role}/users")
        response.raise_for_status()
        payload = response.json()
        user_ids = payload.get("user_ids", []) if isinstance(payload, dict) else payload
        return [str(user_id) for user_id in user_ids]

    async def _user(self, user_id: str) -> dict[str, Any] | None:
        async with self._client() as client:
            response = await client.get(f"/users/{user_id}")
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return response.json()

    async def timezone_of(self, user_id: str) -> str | None:
        user = await self._user(user_id)
        return user.get("timezone") if user else None

    async def contact_for(self, user_id: str, channel_type: ChannelType) -> str | None:
        user = await self._user(user_id)
        if not user:
            return None
        return (user.get("contacts") or {}).get(ChannelType(channel_type).value)


# =============================================================================
# Resolver
# =============================================================================


class RecipientResolver:
    """Expands recipient selectors into concrete user ids."""

    def __init__(self, directory: UserDirectory) -> None:
        self._directory = directory

    async def resolve_direct(self, user_id: str) -> set[str]:
        """A direct recipient resolves to itself."""
        return {user_id}

    async def resolve_by_role(self, role: str) -> set[str]:
        """Every user currently holding `role`.

        Returns an empty set when nobody holds the role.

        Raises:
            ResolutionError: If the directory lookup fails
        """
        try:
            users = await self._directory.users_with_role(role)
            resolved = {str(user_id) for user_id in users}
        except Exception as exc:
            logger.warning(
                "Role resolution failed",
                extra={"role": role, "error": str(exc)},
            )
            raise ResolutionError(f"Could not resolve users for role '{role}': {exc}", role=role) from exc

        lazy_logger.debug(lambda: f"resolve_by_role({role=}) -> {len(resolved)} users")
        return resolved

    async def resolve(self, selector: RecipientSelector) -> list[str]:
        """Resolve a selector into a sorted, de-duplicated list of user ids."""
        if selector.user_id is not None:
            recipients = await self.resolve_direct(selector.user_id)
        elif selector.role is not None:
            recipients = await self.resolve_by_role(selector.role)
        else:
            recipients = {user_id for user_id in selector.user_ids or [] if user_id}
        return sorted(recipients)


_user_directory: StaticUserDirectory | HttpUserDirectory | None = None


def get_user_directory() -> StaticUserDirectory | HttpUserDirectory:
    """Get the configured user directory singleton.

    Uses `HttpUserDirectory` when NOTIFY_DIRECTORY_URL is set, otherwise an
    empty `StaticUserDirectory`.
    """
    global _user_directory
    if _user_directory is None:
        settings = get_notification_settings()
        if settings.directory_url is not None:
            _user_directory = HttpUserDirectory(
                str(settings.directory_url),
                timeout=settings.directory_timeout_seconds,
            )
        else:
            logger.warning("NOTIFY_DIRECTORY_URL not set, using empty static user directory")
            _user_directory = StaticUserDirectory()
    return _user_directory

"""Caller identity from gateway headers.

Authentication happens upstream; the gateway forwards the authenticated
user id and role in `X-User-Id` and `X-User-Role`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header

from notification_service.core.exceptions import ForbiddenException, UnauthorizedException

ADMIN_ROLE = "admin"


@dataclass(frozen=True, slots=True)
class CallerIdentity:
    """Authenticated caller as reported by the gateway."""

    user_id: str
    role: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


async def get_caller(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> CallerIdentity:
    """Build the caller identity from gateway headers.

    Raises:
        UnauthorizedException: If X-User-Id is missing
    """
    if not x_user_id:
        raise UnauthorizedException(
            detail="Missing X-User-Id header",
            type="missing-identity",
        )
    return CallerIdentity(user_id=x_user_id, role=x_user_role or None)


CallerDep = Annotated[CallerIdentity, Depends(get_caller)]


async def require_admin(caller: CallerDep) -> CallerIdentity:
    """Allow only callers with the admin role.

    Raises:
        ForbiddenException: For any other role
    """
    if not caller.is_admin:
        raise ForbiddenException(
            detail="Administrator role required",
            type="forbidden",
            extra={"required_role": ADMIN_ROLE, "user_role": caller.role},
        )
    return caller


AdminDep = Annotated[CallerIdentity, Depends(require_admin)]

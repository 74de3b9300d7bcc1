"""Application exceptions rendered as RFC 7807 problem details.

Subclasses fix the HTTP status, the title and the default problem `type`;
call sites supply the human-readable `detail` and any `extra` members.
"""

from __future__ import annotations

from typing import Any, ClassVar

STATUS_TITLES: dict[int, str] = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


def status_title(status_code: int) -> str:
    """Short title for an HTTP status code."""
    return STATUS_TITLES.get(status_code, "Error")


class AppException(Exception):
    """Base application exception.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Problem type identifier.
        title: Short summary of the problem type.
        instance: URI reference for this occurrence, defaults to the request path.
        extra: Additional members merged into the problem body.

    Example:
        raise AppException(
            status_code=404,
            detail="Template 'violation_recorded' not found",
            type="template-not-found",
            extra={"template_name": "violation_recorded"},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or status_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)


class _StatusException(AppException):
    """AppException whose status, title and default type come from the class."""

    status: ClassVar[int]
    default_type: ClassVar[str]
    default_title: ClassVar[str | None] = None

    def __init__(
        self,
        detail: str,
        type: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=self.status,
            detail=detail,
            type=type or self.default_type,
            title=self.default_title,
            instance=instance,
            extra=extra,
        )


class NotFoundException(_StatusException):
    """A requested resource does not exist."""

    status = 404
    default_type = "not-found"


class ValidationException(_StatusException):
    """Input is well-formed but semantically invalid."""

    status = 422
    default_type = "validation-error"
    default_title = "Validation Error"


class UnauthorizedException(_StatusException):
    """The caller identity is missing."""

    status = 401
    default_type = "unauthorized"


class ForbiddenException(_StatusException):
    """The caller lacks the role the operation requires."""

    status = 403
    default_type = "forbidden"


class ConflictException(_StatusException):
    """The operation conflicts with the current state of a resource.

    Example:
        raise ConflictException(
            detail="Template 'violation_recorded' already exists",
            type="template-exists",
            extra={"field": "name"},
        )
    """

    status = 409
    default_type = "conflict"


class ServiceUnavailableException(_StatusException):
    """A collaborator such as the user directory is temporarily unavailable."""

    status = 503
    default_type = "service-unavailable"

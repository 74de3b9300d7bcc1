"""Notification dispatch errors.

Every error derives from the RFC 7807 `AppException` hierarchy so the
application exception handler can render it as a problem detail.
Adapter failures are values (`Failed`), never exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from notification_service.core.exceptions import (
    ConflictException,
    NotFoundException,
    ServiceUnavailableException,
    ValidationException,
)

if TYPE_CHECKING:
    from collections.abc import Sequence


class UnknownTemplateError(NotFoundException):
    """Raised when no active template exists with the requested name."""

    def __init__(self, template_name: str) -> None:
        self.template_name = template_name
        super().__init__(
            detail=f"Notification template '{template_name}' not found",
            type="template-not-found",
            extra={"template_name": template_name},
        )


class MissingVariableError(ValidationException):
    """Raised when rendering lacks one or more required variables.

    Attributes:
        missing: Missing names, in the template's declared order.
    """

    def __init__(self, missing: Sequence[str], template_name: str | None = None) -> None:
        self.missing = list(missing)
        self.template_name = template_name
        names = ", ".join(self.missing)
        super().__init__(
            detail=f"Missing template variables: {names}",
            type="missing-variable",
            extra={"missing": self.missing, "template_name": template_name},
        )


class ResolutionError(ServiceUnavailableException):
    """Raised when the user directory cannot resolve recipients."""

    def __init__(self, detail: str, *, role: str | None = None) -> None:
        self.role = role
        super().__init__(
            detail=detail,
            type="recipient-resolution-failed",
            extra={"role": role} if role else None,
        )


class NotConfiguredError(NotFoundException):
    """Raised when a channel type has no active configured instance."""

    def __init__(self, channel_type: str) -> None:
        self.channel_type = channel_type
        super().__init__(
            detail=f"No active channel configured for '{channel_type}'",
            type="channel-not-configured",
            extra={"channel_type": channel_type},
        )


class ActivationConflictError(ConflictException):
    """Raised when a concurrent activation for the same channel type won."""

    def __init__(self, channel_type: str, detail: str | None = None) -> None:
        self.channel_type = channel_type
        super().__init__(
            detail=detail or f"Concurrent activation of '{channel_type}' channel lost the race",
            type="channel-activation-conflict",
            extra={"channel_type": channel_type},
        )


class TemplateInUseError(ConflictException):
    """Raised when deleting a template that notifications still reference."""

    def __init__(self, template_name: str) -> None:
        self.template_name = template_name
        super().__init__(
            detail=f"Template '{template_name}' is referenced by existing notifications",
            type="template-in-use",
            extra={"template_name": template_name},
        )


class UndeclaredPlaceholderError(ValidationException):
    """Raised when a template pattern uses a placeholder it does not declare."""

    def __init__(self, undeclared: Sequence[str]) -> None:
        self.undeclared = list(undeclared)
        super().__init__(
            detail=f"Placeholders not declared in required_variables: {', '.join(self.undeclared)}",
            type="undeclared-placeholder",
            extra={"undeclared": self.undeclared},
        )

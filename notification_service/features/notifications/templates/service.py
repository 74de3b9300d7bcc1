"""Service layer for notification template management (the template store)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from notification_service.core.database import NotFoundError
from notification_service.core.exceptions import ConflictException, NotFoundException
from notification_service.core.services.base import BaseService
from notification_service.features.notifications.exceptions import (
    TemplateInUseError,
    UndeclaredPlaceholderError,
    UnknownTemplateError,
)
from notification_service.features.notifications.models import NotificationTemplate
from notification_service.features.notifications.repository import (
    NotificationTemplateRepository,
    get_notification_template_repository,
)
from notification_service.features.notifications.templates.renderer import (
    RenderedContent,
    TemplateRenderer,
    get_template_renderer,
    placeholders,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.features.notifications.schemas import (
        NotificationTemplateCreate,
        NotificationTemplateUpdate,
    )


def undeclared_placeholders(
    title_pattern: str,
    body_pattern: str,
    required_variables: Sequence[str],
) -> list[str]:
    """Placeholders referenced by the patterns but missing from the declaration."""
    declared = set(required_variables)
    found: list[str] = []
    for name in placeholders(title_pattern) + placeholders(body_pattern):
        if name not in declared and name not in found:
            found.append(name)
    return found


class NotificationTemplateService(BaseService):
    """Service for notification template CRUD and rendering.

    Provides:
    - Template CRUD with placeholder validation and version bumps
    - Lookup of active templates by name for the dispatch engine
    - Preview rendering for administrators
    """

    def __init__(
        self,
        repository: NotificationTemplateRepository | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        """Initialize with repository and renderer.

        Args:
            repository: Optional repository (defaults to singleton)
            renderer: Optional renderer (defaults to singleton)
        """
        super().__init__()
        self._repository = repository or get_notification_template_repository()
        self._renderer = renderer or get_template_renderer()

    async def get_active_by_name(
        self,
        session: AsyncSession,
        name: str,
    ) -> NotificationTemplate:
        """Get an active template by name.

        Raises:
            UnknownTemplateError: If no active template has this name
        """
        template = await self._repository.get_by_name(session, name, active_only=True)
        if template is None:
            raise UnknownTemplateError(name)
        return template

    async def get_template(self, session: AsyncSession, template_id: UUID) -> NotificationTemplate:
        """Get a template by id.

        Raises:
            NotFoundException: If the template does not exist
        """
        try:
            return await self._repository.get_or_raise(session, template_id)
        except NotFoundError as exc:
            raise NotFoundException(
                detail=f"Notification template {template_id} not found",
                type="template-not-found",
                extra={"template_id": str(template_id)},
            ) from exc

    async def list_templates(
        self,
        session: AsyncSession,
        *,
        active_only: bool = False,
    ) -> Sequence[NotificationTemplate]:
        """List templates ordered by name."""
        return await self._repository.list_all(session, active_only=active_only)

    async def create_template(
        self,
        session: AsyncSession,
        payload: NotificationTemplateCreate,
    ) -> NotificationTemplate:
        """Create a template.

        Raises:
            UndeclaredPlaceholderError: If a pattern uses an undeclared placeholder
            ConflictException: If the name is already taken
        """
        self._check_placeholders(payload.title_pattern, payload.body_pattern, payload.required_variables)

        if await self._repository.get_by_name(session, payload.name) is not None:
            raise ConflictException(
                detail=f"Template '{payload.name}' already exists",
                type="template-exists",
                extra={"field": "name", "value": payload.name},
            )

        template = NotificationTemplate(
            name=payload.name,
            title_pattern=payload.title_pattern,
            body_pattern=payload.body_pattern,
            kind=payload.kind.value,
            default_channels=[c.value for c in payload.default_channels],
            required_variables=list(payload.required_variables),
            description=payload.description,
            is_active=payload.is_active,
            version=1,
        )
        template = await self._repository.create(session, template)

        self.logger.info(
            "Created notification template",
            extra={"template_name": template.name, "template_id": str(template.id)},
        )
        return template

    async def update_template(
        self,
        session: AsyncSession,
        template_id: UUID,
        payload: NotificationTemplateUpdate,
    ) -> NotificationTemplate:
        """Apply a partial update and bump the version.

        Already rendered notifications are left untouched.
        """
        template = await self.get_template(session, template_id)
        changes: dict[str, Any] = payload.model_dump(exclude_unset=True)

        title_pattern = changes.get("title_pattern") or template.title_pattern
        body_pattern = changes.get("body_pattern") or template.body_pattern
        required = changes.get("required_variables")
        if required is None:
            required = template.required_variables
        self._check_placeholders(title_pattern, body_pattern, required)

        for key, value in changes.items():
            if value is None and key != "description":
                continue
            if key == "kind":
                value = value.value
            elif key == "default_channels":
                value = [c.value for c in value]
            setattr(template, key, value)

        template.version += 1
        await session.flush()
        await session.refresh(template)

        self.logger.info(
            "Updated notification template",
            extra={"template_name": template.name, "version": template.version},
        )
        return template

    async def delete_template(self, session: AsyncSession, template_id: UUID) -> None:
        """Delete a template that no notification references.

        Raises:
            TemplateInUseError: If notifications were rendered from it
        """
        template = await self.get_template(session, template_id)
        if await self._repository.is_referenced(session, template.name):
            raise TemplateInUseError(template.name)
        await self._repository.delete(session, template)

    async def preview(
        self,
        session: AsyncSession,
        template_id: UUID,
        variables: dict[str, Any],
    ) -> RenderedContent:
        """Render a template without creating anything."""
        template = await self.get_template(session, template_id)
        return self._renderer.render(template, variables)

    @staticmethod
    def _check_placeholders(
        title_pattern: str,
        body_pattern: str,
        required_variables: Sequence[str],
    ) -> None:
        undeclared = undeclared_placeholders(title_pattern, body_pattern, required_variables)
        if undeclared:
            raise UndeclaredPlaceholderError(undeclared)


_template_service: NotificationTemplateService | None = None


def get_notification_template_service() -> NotificationTemplateService:
    """Get NotificationTemplateService singleton instance."""
    global _template_service
    if _template_service is None:
        _template_service = NotificationTemplateService()
    return _template_service

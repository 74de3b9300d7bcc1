"""Notification templates: `{{name}}` rendering and the template store."""

from notification_service.features.notifications.templates.renderer import (
    RenderedContent,
    TemplateRenderer,
    format_value,
    get_template_renderer,
    placeholders,
)
from notification_service.features.notifications.templates.service import (
    NotificationTemplateService,
    get_notification_template_service,
)

__all__ = [
    "NotificationTemplateService",
    "RenderedContent",
    "TemplateRenderer",
    "format_value",
    "get_notification_template_service",
    "get_template_renderer",
    "placeholders",
]

"""Placeholder rendering for notification templates.

Patterns use `{{name}}` tokens (inner whitespace allowed). There are no
filters, expressions or control flow: a token is replaced by the string
form of the matching variable and nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
import math
import re
from typing import TYPE_CHECKING, Any, Protocol

from notification_service.features.notifications.exceptions import MissingVariableError
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

_lazy = get_lazy_logger(__name__)


class RenderableTemplate(Protocol):
    """Anything carrying patterns and declared variables."""

    name: str
    title_pattern: str
    body_pattern: str
    required_variables: Sequence[str]


@dataclass(frozen=True, slots=True)
class RenderedContent:
    """Title and body with every placeholder substituted."""

    title: str
    body: str


def placeholders(pattern: str) -> list[str]:
    """List placeholder names in order of first appearance."""
    seen: dict[str, None] = {}
    for match in PLACEHOLDER_RE.finditer(pattern):
        seen.setdefault(match.group(1), None)
    return list(seen)


def format_value(value: Any) -> str:
    """Convert a variable value to its rendered text.

    Numbers are written in positional notation, never with an exponent.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, float):
        # nan and inf have no positional form and keep their repr
        if not math.isfinite(value):
            return repr(value)
        return format(Decimal(repr(value)), "f")
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def substitute(pattern: str, variables: Mapping[str, Any]) -> str:
    """Replace every placeholder with its formatted variable value."""
    return PLACEHOLDER_RE.sub(lambda m: format_value(variables[m.group(1)]), pattern)


class TemplateRenderer:
    """Renders templates after checking that all required variables are present."""

    def render(
        self,
        template: RenderableTemplate,
        variables: Mapping[str, Any],
    ) -> RenderedContent:
        """Render title and body.

        Extra variables are ignored.

        Raises:
            MissingVariableError: Listing every absent variable in declared order.
        """
        missing = self.missing_variables(template, variables)
        if missing:
            raise MissingVariableError(missing, template_name=template.name)

        rendered = RenderedContent(
            title=substitute(template.title_pattern, variables),
            body=substitute(template.body_pattern, variables),
        )
        _lazy.debug(lambda: f"render({template.name}) -> {len(rendered.body)} body chars")
        return rendered

    @staticmethod
    def missing_variables(
        template: RenderableTemplate,
        variables: Mapping[str, Any],
    ) -> list[str]:
        """Names the template needs but `variables` lacks.

        Declared names come first in declared order, followed by any
        referenced but undeclared placeholder.
        """
        needed = list(template.required_variables)
        for pattern in (template.title_pattern, template.body_pattern):
            for name in placeholders(pattern):
                if name not in needed:
                    needed.append(name)
        return [name for name in needed if name not in variables]


_renderer: TemplateRenderer | None = None


def get_template_renderer() -> TemplateRenderer:
    """Get TemplateRenderer singleton instance."""
    global _renderer
    if _renderer is None:
        _renderer = TemplateRenderer()
    return _renderer

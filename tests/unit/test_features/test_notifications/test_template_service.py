"""Tests for the template store."""

from __future__ import annotations

import pytest

from notification_service.core.exceptions import ConflictException, NotFoundException
from notification_service.core.database import generate_uuid7
from notification_service.features.notifications.enums import ChannelType, NotificationKind
from notification_service.features.notifications.exceptions import (
    MissingVariableError,
    TemplateInUseError,
    UndeclaredPlaceholderError,
    UnknownTemplateError,
)
from notification_service.features.notifications.schemas import (
    NotificationTemplateCreate,
    NotificationTemplateUpdate,
)
from notification_service.features.notifications.templates.service import undeclared_placeholders


def payload(**overrides) -> NotificationTemplateCreate:
    data = {
        "name": "achievement_recorded",
        "title_pattern": "Prestasi: {{student_name}}",
        "body_pattern": "{{student_name}} meraih {{achievement}}.",
        "kind": NotificationKind.SUCCESS,
        "required_variables": ["student_name", "achievement"],
    }
    data.update(overrides)
    return NotificationTemplateCreate(**data)


def test_undeclared_placeholders_lists_each_name_once() -> None:
    assert undeclared_placeholders("{{a}} {{x}}", "{{x}} {{y}}", ["a"]) == ["x", "y"]
    assert undeclared_placeholders("{{a}}", "{{a}}", ["a", "unused"]) == []


@pytest.mark.asyncio
async def test_create_and_lookup_by_name(db_session, template_service) -> None:
    created = await template_service.create_template(db_session, payload())

    found = await template_service.get_active_by_name(db_session, "achievement_recorded")

    assert found.id == created.id
    assert found.version == 1
    assert found.kind == "success"
    assert found.default_channels == ["in_app"]
    assert found.required_variables == ["student_name", "achievement"]


@pytest.mark.asyncio
async def test_create_rejects_undeclared_placeholder(db_session, template_service) -> None:
    with pytest.raises(UndeclaredPlaceholderError) as exc_info:
        await template_service.create_template(db_session, payload(required_variables=["student_name"]))

    assert exc_info.value.undeclared == ["achievement"]


@pytest.mark.asyncio
async def test_create_rejects_duplicate_name(db_session, template_service) -> None:
    await template_service.create_template(db_session, payload())

    with pytest.raises(ConflictException):
        await template_service.create_template(db_session, payload())


def test_duplicate_required_variables_are_invalid() -> None:
    with pytest.raises(ValueError):
        payload(required_variables=["student_name", "student_name", "achievement"])


@pytest.mark.asyncio
async def test_update_bumps_version_and_keeps_other_fields(db_session, template_service) -> None:
    created = await template_service.create_template(db_session, payload())

    updated = await template_service.update_template(
        db_session,
        created.id,
        NotificationTemplateUpdate(
            body_pattern="Selamat! {{student_name}} meraih {{achievement}}.",
            default_channels=[ChannelType.IN_APP, ChannelType.EMAIL],
        ),
    )

    assert updated.version == 2
    assert updated.title_pattern == "Prestasi: {{student_name}}"
    assert updated.body_pattern.startswith("Selamat!")
    assert updated.default_channels == ["in_app", "email"]


@pytest.mark.asyncio
async def test_update_rejects_pattern_with_undeclared_placeholder(db_session, template_service) -> None:
    created = await template_service.create_template(db_session, payload())

    with pytest.raises(UndeclaredPlaceholderError):
        await template_service.update_template(
            db_session,
            created.id,
            NotificationTemplateUpdate(title_pattern="{{counsellor_name}}"),
        )


@pytest.mark.asyncio
async def test_deactivated_template_is_unknown(db_session, template_service) -> None:
    created = await template_service.create_template(db_session, payload())
    await template_service.update_template(db_session, created.id, NotificationTemplateUpdate(is_active=False))

    with pytest.raises(UnknownTemplateError):
        await template_service.get_active_by_name(db_session, "achievement_recorded")


@pytest.mark.asyncio
async def test_delete_refuses_referenced_template(db_session, template_service, notification_service) -> None:
    created = await template_service.create_template(db_session, payload())
    await notification_service.send_from_template(
        db_session,
        "achievement_recorded",
        "u1",
        {"student_name": "Ani", "achievement": "Juara 1 OSN"},
    )

    with pytest.raises(TemplateInUseError):
        await template_service.delete_template(db_session, created.id)


@pytest.mark.asyncio
async def test_delete_unreferenced_template(db_session, template_service) -> None:
    created = await template_service.create_template(db_session, payload())

    await template_service.delete_template(db_session, created.id)

    with pytest.raises(NotFoundException):
        await template_service.get_template(db_session, created.id)


@pytest.mark.asyncio
async def test_preview_renders_without_side_effects(db_session, template_service) -> None:
    created = await template_service.create_template(db_session, payload())

    rendered = await template_service.preview(
        db_session, created.id, {"student_name": "Ani", "achievement": "Juara 1"},
    )

    assert rendered.title == "Prestasi: Ani"
    assert rendered.body == "Ani meraih Juara 1."
    with pytest.raises(MissingVariableError):
        await template_service.preview(db_session, created.id, {})


@pytest.mark.asyncio
async def test_get_unknown_template_id(db_session, template_service) -> None:
    with pytest.raises(NotFoundException):
        await template_service.get_template(db_session, generate_uuid7())

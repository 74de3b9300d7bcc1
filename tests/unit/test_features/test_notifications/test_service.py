"""End-to-end tests for the dispatch pipeline in NotificationService."""

from __future__ import annotations

from datetime import UTC, datetime, time

import pytest
from sqlalchemy import func, select

from notification_service.features.notifications.channels.dispatcher import ChannelDispatcher
from notification_service.features.notifications.channels.in_app import InAppChannelAdapter
from notification_service.features.notifications.enums import (
    REASON_DISABLED,
    REASON_QUIET_HOURS,
    ChannelType,
    NotificationKind,
)
from notification_service.features.notifications.exceptions import (
    MissingVariableError,
    ResolutionError,
    UnknownTemplateError,
)
from notification_service.features.notifications.models import Notification, NotificationDelivery
from notification_service.features.notifications.preferences import PreferenceFilter
from notification_service.features.notifications.recipients import RecipientResolver
from notification_service.features.notifications.repository import (
    NotificationDeliveryRepository,
    NotificationRepository,
)
from notification_service.features.notifications.schemas import (
    EmailChannelConfig,
    NotificationChannelCreate,
    NotificationTemplateCreate,
    RecipientSelector,
    UserNotificationPreferenceUpdate,
)
from notification_service.features.notifications.service import NotificationService
from notification_service.features.notifications.templates.renderer import TemplateRenderer
from notification_service.infra.realtime import ConnectionManager
from tests.utils import FakeWebSocket

VIOLATION_VARIABLES = {
    "student_name": "Budi Santoso",
    "class_name": "8A",
    "violation_type": "Terlambat",
    "points": 5,
}


async def create_violation_template(session, template_service):
    return await template_service.create_template(
        session,
        NotificationTemplateCreate(
            name="violation_recorded",
            title_pattern="Pelanggaran: {{student_name}}",
            body_pattern="{{student_name}} ({{class_name}}) tercatat {{violation_type}}, {{points}} poin.",
            kind=NotificationKind.WARNING,
            default_channels=[ChannelType.IN_APP, ChannelType.EMAIL],
            required_variables=["student_name", "class_name", "violation_type", "points"],
        ),
    )


async def activate_email(session, registry):
    return await registry.create_channel(
        session,
        NotificationChannelCreate(
            name="School SMTP",
            config=EmailChannelConfig(smtp_host="smtp.school.test"),
            is_active=True,
        ),
    )


async def count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def deliveries_by_channel(session, notification_id) -> dict[str, tuple[str, str | None]]:
    rows = await NotificationDeliveryRepository().list_for_notification(session, notification_id)
    return {row.channel_type: (row.status, row.reason) for row in rows}


# ============================================================================
# Template sends
# ============================================================================


@pytest.mark.asyncio
async def test_violation_fans_out_to_role_with_independent_preferences(
    db_session, notification_service, template_service, channel_registry, preference_repository, adapters,
) -> None:
    await create_violation_template(db_session, template_service)
    await activate_email(db_session, channel_registry)
    await preference_repository.upsert(
        db_session, "bk-1", "warning", enabled=True, channels=["in_app", "email"],
    )

    ids = await notification_service.send_from_template(
        db_session,
        "violation_recorded",
        RecipientSelector(role="guru_bk"),
        VIOLATION_VARIABLES,
    )

    assert len(ids) == 2
    notifications = [await db_session.get(Notification, nid) for nid in ids]
    assert [n.user_id for n in notifications] == ["bk-1", "bk-2"]
    for notification in notifications:
        assert notification.kind == "warning"
        assert notification.title == "Pelanggaran: Budi Santoso"
        assert notification.body == "Budi Santoso (8A) tercatat Terlambat, 5 poin."
        assert notification.template_name == "violation_recorded"
        assert notification.read is False

    assert await deliveries_by_channel(db_session, ids[0]) == {
        "in_app": ("sent", None),
        "email": ("sent", None),
    }
    assert await deliveries_by_channel(db_session, ids[1]) == {"in_app": ("sent", None)}
    assert [call[0] for call in adapters[ChannelType.EMAIL].calls] == ["bk-1"]


@pytest.mark.asyncio
async def test_disabled_preference_still_creates_notification(
    db_session, notification_service, template_service, preference_repository,
) -> None:
    await create_violation_template(db_session, template_service)
    await preference_repository.upsert(db_session, "wali-1", "warning", enabled=False, channels=["in_app"])

    ids = await notification_service.send_from_template(
        db_session, "violation_recorded", "wali-1", VIOLATION_VARIABLES,
    )

    assert len(ids) == 1
    assert await db_session.get(Notification, ids[0]) is not None
    assert await deliveries_by_channel(db_session, ids[0]) == {
        "in_app": ("suppressed", REASON_DISABLED),
        "email": ("suppressed", REASON_DISABLED),
    }


@pytest.mark.asyncio
async def test_quiet_hours_suppress_email_but_not_in_app(
    db_session, notification_service, template_service, channel_registry, preference_repository, clock,
) -> None:
    await create_violation_template(db_session, template_service)
    await activate_email(db_session, channel_registry)
    await preference_repository.upsert(
        db_session,
        "bk-1",
        "warning",
        enabled=True,
        channels=["in_app", "email"],
        quiet_hours_start=time(22, 0),
        quiet_hours_end=time(6, 0),
    )
    clock.now = datetime(2025, 3, 10, 16, 0, tzinfo=UTC)  # 23:00 in Asia/Jakarta

    ids = await notification_service.send_from_template(
        db_session, "violation_recorded", "bk-1", VIOLATION_VARIABLES,
    )

    assert await deliveries_by_channel(db_session, ids[0]) == {
        "in_app": ("sent", None),
        "email": ("suppressed", REASON_QUIET_HOURS),
    }


@pytest.mark.asyncio
async def test_missing_variable_creates_nothing(db_session, notification_service, template_service) -> None:
    await create_violation_template(db_session, template_service)

    with pytest.raises(MissingVariableError) as exc_info:
        await notification_service.send_from_template(
            db_session,
            "violation_recorded",
            RecipientSelector(role="guru_bk"),
            {"student_name": "Budi"},
        )

    assert exc_info.value.missing == ["class_name", "violation_type", "points"]
    assert await count(db_session, Notification) == 0
    assert await count(db_session, NotificationDelivery) == 0


@pytest.mark.asyncio
async def test_missing_per_recipient_variable_creates_nothing(
    db_session, notification_service, template_service,
) -> None:
    await template_service.create_template(
        db_session,
        NotificationTemplateCreate(
            name="report_ready",
            title_pattern="Rapor {{student_name}}",
            body_pattern="Halo {{parent_name}}",
            required_variables=["student_name", "parent_name"],
        ),
    )

    with pytest.raises(MissingVariableError):
        await notification_service.send_from_template(
            db_session,
            "report_ready",
            ["p1", "p2"],
            {"student_name": "Ani"},
            recipient_variables={"p1": {"parent_name": "Bu Sari"}},
        )

    assert await count(db_session, Notification) == 0


@pytest.mark.asyncio
async def test_recipient_variables_override_shared_bag(
    db_session, notification_service, template_service,
) -> None:
    await template_service.create_template(
        db_session,
        NotificationTemplateCreate(
            name="report_ready",
            title_pattern="Rapor {{student_name}}",
            body_pattern="Halo {{parent_name}}",
            required_variables=["student_name", "parent_name"],
        ),
    )

    ids = await notification_service.send_from_template(
        db_session,
        "report_ready",
        ["p2", "p1"],
        {"student_name": "Ani", "parent_name": "Bapak/Ibu"},
        recipient_variables={"p1": {"parent_name": "Bu Sari"}},
    )

    first, second = [await db_session.get(Notification, nid) for nid in ids]
    assert (first.user_id, first.body) == ("p1", "Halo Bu Sari")
    assert (second.user_id, second.body) == ("p2", "Halo Bapak/Ibu")


@pytest.mark.asyncio
async def test_unknown_template_raises(db_session, notification_service) -> None:
    with pytest.raises(UnknownTemplateError):
        await notification_service.send_from_template(db_session, "nope", "u1", {})

    assert await count(db_session, Notification) == 0


@pytest.mark.asyncio
async def test_inactive_template_cannot_be_sent(db_session, notification_service, template_service) -> None:
    await template_service.create_template(
        db_session,
        NotificationTemplateCreate(
            name="retired",
            title_pattern="Old",
            body_pattern="Old",
            is_active=False,
        ),
    )

    with pytest.raises(UnknownTemplateError):
        await notification_service.send_from_template(db_session, "retired", "u1", {})


@pytest.mark.asyncio
async def test_resolution_failure_creates_nothing(
    db_session, notification_service, template_service, preference_repository, dispatcher,
) -> None:
    class BrokenDirectory:
        async def users_with_role(self, role):
            raise TimeoutError("directory timed out")

        async def timezone_of(self, user_id):
            return None

    await create_violation_template(db_session, template_service)
    service = NotificationService(
        preference_repository=preference_repository,
        template_service=template_service,
        resolver=RecipientResolver(BrokenDirectory()),
        preference_filter=PreferenceFilter(BrokenDirectory(), preference_repository, default_timezone="UTC"),
        dispatcher=dispatcher,
    )

    with pytest.raises(ResolutionError):
        await service.send_from_template(
            db_session, "violation_recorded", RecipientSelector(role="guru_bk"), VIOLATION_VARIABLES,
        )

    assert await count(db_session, Notification) == 0


# ============================================================================
# Literal sends
# ============================================================================


@pytest.mark.asyncio
async def test_send_direct_defaults_to_in_app(db_session, notification_service, adapters) -> None:
    notification_id = await notification_service.send_direct(
        db_session, "wali-1", NotificationKind.INFO, "Rapat", "Rapat guru pukul 13.00",
    )

    notification = await db_session.get(Notification, notification_id)
    assert notification.title == "Rapat"
    assert notification.template_name is None
    assert await deliveries_by_channel(db_session, notification_id) == {"in_app": ("sent", None)}
    assert adapters[ChannelType.IN_APP].calls[0][:3] == ("wali-1", "Rapat", "Rapat guru pukul 13.00")


@pytest.mark.asyncio
async def test_unwanted_channel_is_dropped_silently(
    db_session, notification_service, preference_repository, adapters,
) -> None:
    await preference_repository.upsert(db_session, "bk-1", "info", enabled=True, channels=["email"])

    notification_id = await notification_service.send_direct(
        db_session, "bk-1", "info", "Halo", "Isi", [ChannelType.SMS],
    )

    assert await deliveries_by_channel(db_session, notification_id) == {"in_app": ("sent", None)}
    assert adapters[ChannelType.SMS].calls == []


@pytest.mark.asyncio
async def test_unconfigured_channel_is_logged_as_failed(
    db_session, notification_service, preference_repository,
) -> None:
    await preference_repository.upsert(db_session, "bk-1", "info", enabled=True, channels=["in_app", "sms"])

    notification_id = await notification_service.send_direct(
        db_session, "bk-1", "info", "Halo", "Isi", ["in_app", "sms"],
    )

    assert await deliveries_by_channel(db_session, notification_id) == {
        "in_app": ("sent", None),
        "sms": ("failed", "not-configured"),
    }


@pytest.mark.asyncio
async def test_send_by_role_without_holders_returns_empty(db_session, notification_service) -> None:
    ids = await notification_service.send_by_role(
        db_session, "kepala_sekolah", NotificationKind.INFO, "Info", "Isi",
    )

    assert ids == []
    assert await count(db_session, Notification) == 0


@pytest.mark.asyncio
async def test_send_by_role_creates_one_notification_per_holder(db_session, notification_service) -> None:
    ids = await notification_service.send_by_role(
        db_session, "guru_bk", NotificationKind.INFO, "Info", "Isi", data={"event": "meeting"},
    )

    notifications = [await db_session.get(Notification, nid) for nid in ids]
    assert [n.user_id for n in notifications] == ["bk-1", "bk-2"]
    assert all(n.data == {"event": "meeting"} for n in notifications)


# ============================================================================
# Read state and preferences
# ============================================================================


@pytest.mark.asyncio
async def test_read_state_is_per_user(db_session, notification_service) -> None:
    mine = await notification_service.send_direct(db_session, "u1", "info", "One", "1")
    await notification_service.send_direct(db_session, "u1", "info", "Two", "2")
    theirs = await notification_service.send_direct(db_session, "u2", "info", "Other", "x")

    assert await notification_service.mark_as_read(db_session, theirs, "u1") is None

    read = await notification_service.mark_as_read(db_session, mine, "u1")
    assert read.read is True
    assert read.read_at is not None

    again = await notification_service.mark_as_read(db_session, mine, "u1")
    assert again.read_at == read.read_at

    items, total, unread = await notification_service.list_user_notifications(db_session, "u1")
    assert total == 2
    assert unread == 1
    assert {n.user_id for n in items} == {"u1"}

    assert await notification_service.mark_all_as_read(db_session, "u1") == 1
    assert await notification_service.mark_all_as_read(db_session, "u1") == 0
    _, _, unread_other = await notification_service.list_user_notifications(db_session, "u2")
    assert unread_other == 1


@pytest.mark.asyncio
async def test_list_filters_unread_and_kind(db_session, notification_service) -> None:
    first = await notification_service.send_direct(db_session, "u1", "info", "One", "1")
    await notification_service.send_direct(db_session, "u1", "error", "Two", "2")
    await notification_service.mark_as_read(db_session, first, "u1")

    unread_items, unread_total, _ = await notification_service.list_user_notifications(
        db_session, "u1", unread_only=True,
    )
    error_items, _, _ = await notification_service.list_user_notifications(db_session, "u1", kind="error")

    assert unread_total == 1
    assert unread_items[0].title == "Two"
    assert [n.kind for n in error_items] == ["error"]


@pytest.mark.asyncio
async def test_get_notification_hides_other_users(db_session, notification_service) -> None:
    notification_id = await notification_service.send_direct(db_session, "u1", "info", "One", "1")

    found = await notification_service.get_notification(db_session, notification_id, "u1")
    hidden = await notification_service.get_notification(db_session, notification_id, "u2")

    assert found is not None
    notification, deliveries = found
    assert notification.id == notification_id
    assert [d.channel_type for d in deliveries] == ["in_app"]
    assert hidden is None


@pytest.mark.asyncio
async def test_preference_lifecycle(db_session, notification_service) -> None:
    default = await notification_service.get_preference(db_session, "u1", NotificationKind.WARNING)
    assert default.enabled is True
    assert default.channels == ["in_app"]

    saved = await notification_service.set_preference(
        db_session,
        "u1",
        NotificationKind.WARNING,
        UserNotificationPreferenceUpdate(
            channels=[ChannelType.EMAIL, ChannelType.EMAIL, ChannelType.IN_APP],
            quiet_hours_start=time(21, 0),
            quiet_hours_end=time(5, 0),
        ),
    )
    assert saved.channels == ["email", "in_app"]
    assert [p.kind for p in await notification_service.list_preferences(db_session, "u1")] == ["warning"]

    assert await notification_service.reset_preference(db_session, "u1", NotificationKind.WARNING) is True
    assert await notification_service.reset_preference(db_session, "u1", NotificationKind.WARNING) is False
    assert await notification_service.list_preferences(db_session, "u1") == []


@pytest.mark.asyncio
async def test_send_direct_reaches_open_stream(
    db_session,
    directory,
    adapters,
    channel_registry,
    template_service,
    preference_repository,
    clock,
) -> None:
    manager = ConnectionManager(max_connections=10)
    socket = FakeWebSocket()
    await manager.connect(socket, user_id="wali-1")
    live_adapters = {**adapters, ChannelType.IN_APP: InAppChannelAdapter(manager)}
    service = NotificationService(
        repository=NotificationRepository(),
        delivery_repository=NotificationDeliveryRepository(),
        preference_repository=preference_repository,
        template_service=template_service,
        renderer=TemplateRenderer(),
        resolver=RecipientResolver(directory),
        preference_filter=PreferenceFilter(
            directory,
            preference_repository,
            default_timezone="UTC",
            clock=clock,
        ),
        dispatcher=ChannelDispatcher(live_adapters, channel_registry, timeout=1.0),
    )

    notification_id = await service.send_direct(
        db_session, "wali-1", NotificationKind.INFO, "Rapat", "Rapat guru pukul 13.00",
    )

    assert len(socket.sent) == 1
    message = socket.sent[0]
    assert message["type"] == "notification"
    assert message["data"]["id"] == str(notification_id)
    assert (message["data"]["title"], message["data"]["body"]) == ("Rapat", "Rapat guru pukul 13.00")
    assert await deliveries_by_channel(db_session, notification_id) == {"in_app": ("sent", None)}

"""Tests for channel configuration and activation."""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notification_service.core.database.base import Base
from notification_service.core.exceptions import NotFoundException, ValidationException
from notification_service.features.notifications.channels.registry import ChannelRegistry
from notification_service.features.notifications.enums import ChannelType
from notification_service.features.notifications.exceptions import (
    ActivationConflictError,
    NotConfiguredError,
)
from notification_service.features.notifications.models import NotificationChannel
from notification_service.features.notifications.repository import NotificationChannelRepository
from notification_service.features.notifications.schemas import (
    EmailChannelConfig,
    NotificationChannelCreate,
    NotificationChannelUpdate,
    SmsChannelConfig,
)


def email_payload(name: str, *, is_active: bool = False) -> NotificationChannelCreate:
    return NotificationChannelCreate(
        name=name,
        config=EmailChannelConfig(smtp_host="smtp.school.test", password="secret"),
        is_active=is_active,
    )


async def active_email_ids(session: AsyncSession) -> list:
    result = await session.execute(
        select(NotificationChannel.id).where(
            NotificationChannel.channel_type == "email",
            NotificationChannel.is_active.is_(True),
        ),
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_no_active_channel_raises_not_configured(db_session, channel_registry) -> None:
    await channel_registry.create_channel(db_session, email_payload("Inactive SMTP"))

    with pytest.raises(NotConfiguredError) as exc_info:
        await channel_registry.get_active_channel(db_session, ChannelType.EMAIL)

    assert exc_info.value.channel_type == "email"


@pytest.mark.asyncio
async def test_create_stores_config_without_discriminator(db_session, channel_registry) -> None:
    channel = await channel_registry.create_channel(db_session, email_payload("School SMTP"))

    assert channel.channel_type == "email"
    assert channel.config["smtp_host"] == "smtp.school.test"
    assert "channel_type" not in channel.config
    assert channel.is_active is False
    assert channel.version == 1


@pytest.mark.asyncio
async def test_create_active_makes_it_the_active_instance(db_session, channel_registry) -> None:
    channel = await channel_registry.create_channel(db_session, email_payload("School SMTP", is_active=True))

    active = await channel_registry.get_active_channel(db_session, "email")

    assert active.id == channel.id
    assert channel.is_active is True


@pytest.mark.asyncio
async def test_activation_swaps_the_active_instance(db_session, channel_registry) -> None:
    first = await channel_registry.create_channel(db_session, email_payload("Primary", is_active=True))
    second = await channel_registry.create_channel(db_session, email_payload("Backup"))

    activated = await channel_registry.activate_channel(db_session, second.id)
    await db_session.refresh(first)

    assert activated.is_active is True
    assert first.is_active is False
    assert await active_email_ids(db_session) == [second.id]


@pytest.mark.asyncio
async def test_activating_active_channel_is_a_no_op(db_session, channel_registry) -> None:
    channel = await channel_registry.create_channel(db_session, email_payload("Primary", is_active=True))
    version = channel.version

    again = await channel_registry.activate_channel(db_session, channel.id)

    assert again.is_active is True
    assert again.version == version


@pytest.mark.asyncio
async def test_stale_expected_version_is_a_conflict(db_session, channel_registry) -> None:
    channel = await channel_registry.create_channel(db_session, email_payload("Primary"))
    await db_session.commit()

    with pytest.raises(ActivationConflictError):
        await channel_registry.activate_channel(db_session, channel.id, expected_version=channel.version + 5)

    assert await active_email_ids(db_session) == []


@pytest.mark.asyncio
async def test_types_activate_independently(db_session, channel_registry) -> None:
    email = await channel_registry.create_channel(db_session, email_payload("SMTP", is_active=True))
    sms = await channel_registry.create_channel(
        db_session,
        NotificationChannelCreate(
            name="Gateway",
            config=SmsChannelConfig(api_url="https://sms.test/send", api_key="k"),
            is_active=True,
        ),
    )

    assert (await channel_registry.get_active_channel(db_session, "email")).id == email.id
    assert (await channel_registry.get_active_channel(db_session, "sms")).id == sms.id


@pytest.mark.asyncio
async def test_update_rejects_config_of_another_type(db_session, channel_registry) -> None:
    channel = await channel_registry.create_channel(db_session, email_payload("SMTP"))

    with pytest.raises(ValidationException):
        await channel_registry.update_channel(
            db_session,
            channel.id,
            NotificationChannelUpdate(config=SmsChannelConfig(api_url="https://sms.test", api_key="k")),
        )


@pytest.mark.asyncio
async def test_update_bumps_version(db_session, channel_registry) -> None:
    channel = await channel_registry.create_channel(db_session, email_payload("SMTP"))

    updated = await channel_registry.update_channel(
        db_session,
        channel.id,
        NotificationChannelUpdate(name="Renamed", config=EmailChannelConfig(smtp_host="mail.test")),
    )

    assert updated.name == "Renamed"
    assert updated.config["smtp_host"] == "mail.test"
    assert updated.version == 2


@pytest.mark.asyncio
async def test_get_missing_channel_raises_not_found(db_session, channel_registry) -> None:
    from notification_service.core.database import generate_uuid7

    with pytest.raises(NotFoundException):
        await channel_registry.get_channel(db_session, generate_uuid7())


@pytest.mark.asyncio
async def test_concurrent_activations_leave_exactly_one_active(tmp_path) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'channels.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    registry = ChannelRegistry(NotificationChannelRepository())

    try:
        async with factory() as session:
            original = await registry.create_channel(session, email_payload("A", is_active=True))
            contenders = [
                await registry.create_channel(session, email_payload(name)) for name in ("B", "C")
            ]
            await session.commit()

        async def activate(channel_id):
            async with factory() as session:
                channel = await registry.activate_channel(session, channel_id)
                await session.commit()
                return channel.id

        results = await asyncio.gather(
            *(activate(channel.id) for channel in contenders),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, BaseException)]
        losers = [r for r in results if isinstance(r, BaseException)]
        assert winners
        assert all(isinstance(error, ActivationConflictError) for error in losers)

        async with factory() as session:
            active = await active_email_ids(session)
            assert len(active) == 1
            assert active[0] != original.id
            assert active[0] in {channel.id for channel in contenders}
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_list_channels_filters_by_type(db_session, channel_registry) -> None:
    await channel_registry.create_channel(db_session, email_payload("SMTP"))
    await channel_registry.create_channel(
        db_session,
        NotificationChannelCreate(
            name="Gateway",
            config=SmsChannelConfig(api_url="https://sms.test/send", api_key="k"),
        ),
    )

    everything = await channel_registry.list_channels(db_session)
    sms_only = await channel_registry.list_channels(db_session, ChannelType.SMS)

    assert {channel.channel_type for channel in everything} == {"email", "sms"}
    assert [channel.name for channel in sms_only] == ["Gateway"]


@pytest.mark.asyncio
async def test_deleting_active_channel_leaves_type_unconfigured(db_session, channel_registry) -> None:
    channel = await channel_registry.create_channel(db_session, email_payload("SMTP", is_active=True))

    await channel_registry.delete_channel(db_session, channel.id)

    with pytest.raises(NotConfiguredError):
        await channel_registry.get_active_channel(db_session, ChannelType.EMAIL)
    with pytest.raises(NotFoundException):
        await channel_registry.get_channel(db_session, channel.id)


@pytest.mark.asyncio
async def test_deactivation_leaves_type_unconfigured(db_session, channel_registry) -> None:
    channel = await channel_registry.create_channel(db_session, email_payload("SMTP", is_active=True))
    version = channel.version

    deactivated = await channel_registry.deactivate_channel(db_session, channel.id, expected_version=version)

    assert deactivated.is_active is False
    assert deactivated.version == version + 1
    assert await active_email_ids(db_session) == []
    with pytest.raises(NotConfiguredError):
        await channel_registry.get_active_channel(db_session, ChannelType.EMAIL)


@pytest.mark.asyncio
async def test_deactivating_inactive_channel_is_a_no_op(db_session, channel_registry) -> None:
    channel = await channel_registry.create_channel(db_session, email_payload("SMTP"))

    again = await channel_registry.deactivate_channel(db_session, channel.id)

    assert again.is_active is False
    assert again.version == 1


@pytest.mark.asyncio
async def test_deactivation_with_stale_version_is_a_conflict(db_session, channel_registry) -> None:
    channel = await channel_registry.create_channel(db_session, email_payload("SMTP", is_active=True))
    await db_session.commit()

    with pytest.raises(ActivationConflictError):
        await channel_registry.deactivate_channel(db_session, channel.id, expected_version=channel.version - 1)

    assert await active_email_ids(db_session) == [channel.id]

"""Tests for the notification stream connection manager."""

from __future__ import annotations

import pytest

from notification_service.infra.realtime import ConnectionManager
from tests.utils import FakeWebSocket


@pytest.mark.asyncio
async def test_send_to_user_reaches_only_that_users_sockets() -> None:
    manager = ConnectionManager(max_connections=10)
    first, second, other = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
    await manager.connect(first, user_id="bk-1")
    await manager.connect(second, user_id="bk-1")
    await manager.connect(other, user_id="wali-1")

    delivered = await manager.send_to_user("bk-1", {"type": "notification"})

    assert delivered == 2
    assert first.accepted and second.accepted
    assert first.sent == second.sent == [{"type": "notification"}]
    assert other.sent == []


@pytest.mark.asyncio
async def test_user_without_stream_gets_nothing() -> None:
    manager = ConnectionManager(max_connections=10)

    assert await manager.send_to_user("bk-1", {"type": "notification"}) == 0


@pytest.mark.asyncio
async def test_broken_socket_is_dropped() -> None:
    manager = ConnectionManager(max_connections=10)
    broken = FakeWebSocket(broken=True)
    await manager.connect(broken, user_id="bk-1")

    delivered = await manager.send_to_user("bk-1", {"type": "notification"})

    assert delivered == 0
    assert broken.closed
    assert manager.connection_count == 0


@pytest.mark.asyncio
async def test_connection_limit_refuses_before_accept() -> None:
    manager = ConnectionManager(max_connections=1)
    await manager.connect(FakeWebSocket(), user_id="bk-1")
    refused = FakeWebSocket()

    with pytest.raises(ConnectionRefusedError):
        await manager.connect(refused, user_id="bk-2")

    assert refused.accepted is False
    assert manager.user_connection_count("bk-2") == 0


@pytest.mark.asyncio
async def test_disconnect_and_close_all() -> None:
    manager = ConnectionManager(max_connections=10)
    socket = FakeWebSocket()
    connection_id = await manager.connect(socket, user_id="bk-1")
    await manager.connect(FakeWebSocket(), user_id="bk-2")

    await manager.disconnect(connection_id)
    await manager.disconnect(connection_id)

    assert socket.closed
    assert manager.user_connection_count("bk-1") == 0

    await manager.close_all()
    assert manager.connection_count == 0

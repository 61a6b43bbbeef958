"""
WebSocket连接管理测试
Connection manager tests for room change notifications
"""

import asyncio
import json
import pytest
from typing import List
from unittest.mock import AsyncMock, patch
from hypothesis import given, strategies as st, settings

from app.websocket.connection_manager import ConnectionManager, room_channel


class MockWebSocket:
    """Mock WebSocket for testing"""

    def __init__(self, fail_on_send: bool = False):
        self.messages_sent: List[str] = []
        self.closed = False
        self.close_code = None
        self.close_reason = None
        self.accepted = False
        self.fail_on_send = fail_on_send

    async def accept(self):
        self.accepted = True

    async def close(self, code: int = 1000, reason: str = ""):
        self.closed = True
        self.close_code = code
        self.close_reason = reason

    async def send_text(self, data: str):
        if self.closed or self.fail_on_send:
            raise Exception("WebSocket is closed")
        self.messages_sent.append(data)


player_id_strategy = st.text(
    min_size=1, max_size=20, alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd"))
)
table_strategy = st.sampled_from(["rooms", "players", "rounds", "submissions"])


class TestConnect:
    """连接注册测试"""

    @pytest.mark.asyncio
    async def test_connect_registers_socket(self):
        manager = ConnectionManager(max_connections=10)
        ws = MockWebSocket()

        assert await manager.connect("room-1", "p1", ws) is True
        assert ws.accepted is True
        assert manager.room_connections["room-1"]["p1"] is ws
        assert manager.connection_count == 1

    @pytest.mark.asyncio
    async def test_reconnect_replaces_old_socket(self):
        manager = ConnectionManager(max_connections=10)
        old, new = MockWebSocket(), MockWebSocket()

        await manager.connect("room-1", "p1", old)
        await manager.connect("room-1", "p1", new)

        assert old.closed is True
        assert old.close_code == 1000
        assert manager.room_connections["room-1"]["p1"] is new
        assert manager.connection_count == 1

    @pytest.mark.asyncio
    async def test_connection_limit(self):
        manager = ConnectionManager(max_connections=1)
        await manager.connect("room-1", "p1", MockWebSocket())

        rejected = MockWebSocket()
        assert await manager.connect("room-1", "p2", rejected) is False
        assert rejected.accepted is False
        assert manager.connection_count == 1


class TestDisconnect:
    """断开连接测试"""

    @pytest.mark.asyncio
    async def test_disconnect_removes_empty_room(self):
        manager = ConnectionManager(max_connections=10)
        ws = MockWebSocket()
        await manager.connect("room-1", "p1", ws)

        manager.disconnect("room-1", "p1", ws)

        assert "room-1" not in manager.room_connections
        assert "p1" not in manager.connection_metadata

    @pytest.mark.asyncio
    async def test_stale_socket_does_not_evict_replacement(self):
        manager = ConnectionManager(max_connections=10)
        old, new = MockWebSocket(), MockWebSocket()
        await manager.connect("room-1", "p1", old)
        await manager.connect("room-1", "p1", new)

        # The old handler's finally block runs after the replacement connected
        manager.disconnect("room-1", "p1", old)

        assert manager.room_connections["room-1"]["p1"] is new

    def test_disconnect_unknown_is_noop(self):
        manager = ConnectionManager(max_connections=10)
        manager.disconnect("missing", "nobody")
        assert manager.connection_count == 0


class TestBroadcast:
    """房间广播测试"""

    @pytest.mark.asyncio
    async def test_broadcast_only_reaches_room(self):
        manager = ConnectionManager(max_connections=10)
        inside, outside = MockWebSocket(), MockWebSocket()
        await manager.connect("room-1", "p1", inside)
        await manager.connect("room-2", "p2", outside)

        sent = await manager.broadcast_to_room("room-1", {"type": "ping"})

        assert sent == 1
        assert len(inside.messages_sent) == 1
        assert outside.messages_sent == []

    @pytest.mark.asyncio
    async def test_failed_socket_is_dropped(self):
        manager = ConnectionManager(max_connections=10)
        healthy, broken = MockWebSocket(), MockWebSocket(fail_on_send=True)
        await manager.connect("room-1", "p1", healthy)
        await manager.connect("room-1", "p2", broken)

        sent = await manager.broadcast_to_room("room-1", {"type": "ping"})

        assert sent == 1
        assert set(manager.room_connections["room-1"]) == {"p1"}

    @pytest.mark.asyncio
    async def test_notify_room_changed_message_shape(self):
        manager = ConnectionManager(max_connections=10)
        ws = MockWebSocket()
        await manager.connect("room-1", "p1", ws)

        with patch(
            "app.websocket.connection_manager.redis_manager.publish_message",
            new=AsyncMock(return_value=1),
        ) as publish:
            await manager.notify_room_changed("room-1", "rounds")

        message = json.loads(ws.messages_sent[0])
        assert message["type"] == "room_changed"
        assert message["data"] == {"room_id": "room-1", "table": "rounds"}
        assert "timestamp" in message
        publish.assert_awaited_once()
        assert publish.await_args.args[0] == room_channel("room-1")

    @pytest.mark.asyncio
    async def test_notify_survives_redis_failure(self):
        manager = ConnectionManager(max_connections=10)
        ws = MockWebSocket()
        await manager.connect("room-1", "p1", ws)

        with patch(
            "app.websocket.connection_manager.redis_manager.publish_message",
            new=AsyncMock(side_effect=RuntimeError("Redis not initialized")),
        ):
            await manager.notify_room_changed("room-1", "players")

        assert len(ws.messages_sent) == 1


@given(
    player_ids=st.lists(player_id_strategy, min_size=1, max_size=8, unique=True),
    table=table_strategy,
)
@settings(max_examples=50, deadline=None)
def test_every_connected_player_receives_change_notice(player_ids, table):
    """
    房间内的每个连接都收到变更通知，且只收到一次
    """

    async def scenario():
        manager = ConnectionManager(max_connections=100)
        sockets = {pid: MockWebSocket() for pid in player_ids}
        for pid, ws in sockets.items():
            await manager.connect("room-x", pid, ws)

        with patch(
            "app.websocket.connection_manager.redis_manager.publish_message",
            new=AsyncMock(return_value=0),
        ):
            await manager.notify_room_changed("room-x", table)
        return sockets

    sockets = asyncio.run(scenario())

    for ws in sockets.values():
        assert len(ws.messages_sent) == 1
        assert json.loads(ws.messages_sent[0])["data"]["table"] == table

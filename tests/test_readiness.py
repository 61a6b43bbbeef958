"""
Readiness and auto-start tests
准备状态与自动开始测试
"""

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from app.models.room import Room, RoomStatus
from app.models.player import Player
from app.models.round import Round, RoundPhase
from app.services.room import RoomService
from app.services.player import PlayerService
from app.services.round import RoundService


async def fresh_players(db_session, room_id):
    stmt = (
        select(Player)
        .where(Player.room_id == room_id)
        .execution_options(populate_existing=True)
    )
    return (await db_session.execute(stmt)).scalars().all()


async def rounds_of(db_session, room_id):
    stmt = select(Round).where(Round.room_id == room_id)
    return (await db_session.execute(stmt)).scalars().all()


@pytest.fixture
async def lobby(db_session):
    """Room with a host and one guest"""
    service = RoomService(db_session)
    host = await service.create_room("Alice")
    guest = await service.join_room("Bob", host.join_code)
    return host, guest


class TestSetReady:
    """准备状态测试"""

    @pytest.mark.asyncio
    async def test_toggle_when_ready_omitted(self, db_session, prompt_source, lobby):
        host, _ = lobby
        service = PlayerService(db_session, prompt_source)

        first = await service.set_ready(host.join_code, host.player_id)
        assert first.ready is True
        assert first.auto_started is False

        second = await service.set_ready(host.join_code, host.player_id)
        assert second.ready is False

    @pytest.mark.asyncio
    async def test_explicit_value_is_idempotent(self, db_session, prompt_source, lobby):
        host, _ = lobby
        service = PlayerService(db_session, prompt_source)

        await service.set_ready(host.join_code, host.player_id, True)
        again = await service.set_ready(host.join_code, host.player_id, True)
        assert again.ready is True

    @pytest.mark.asyncio
    async def test_unknown_player(self, db_session, prompt_source, lobby):
        host, _ = lobby
        with pytest.raises(HTTPException) as exc_info:
            await PlayerService(db_session, prompt_source).set_ready(host.join_code, "nobody", True)
        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "Player not found."

    @pytest.mark.asyncio
    async def test_inactive_player_rejected(self, db_session, prompt_source, lobby):
        host, guest = lobby
        player = await db_session.get(Player, guest.player_id)
        player.is_active = False
        await db_session.commit()

        with pytest.raises(HTTPException) as exc_info:
            await PlayerService(db_session, prompt_source).set_ready(host.join_code, guest.player_id, True)
        assert exc_info.value.detail == "Player is not active."

    @pytest.mark.asyncio
    async def test_ended_room_rejected(self, db_session, prompt_source, lobby):
        host, _ = lobby
        room = await db_session.get(Room, host.room_id)
        room.status = RoomStatus.ENDED
        await db_session.commit()

        with pytest.raises(HTTPException) as exc_info:
            await PlayerService(db_session, prompt_source).set_ready(host.join_code, host.player_id, True)
        assert exc_info.value.detail == "Game has ended."


class TestAutoStart:
    """全员准备自动开始测试"""

    @pytest.mark.asyncio
    async def test_last_ready_player_starts_round_one(self, db_session, prompt_source, lobby):
        host, guest = lobby
        service = PlayerService(db_session, prompt_source)

        first = await service.set_ready(host.join_code, host.player_id, True)
        assert first.auto_started is False

        second = await service.set_ready(host.join_code, guest.player_id, True)
        assert second.auto_started is True
        assert second.round.round_number == 1
        assert second.round.phase == RoundPhase.PROMPT
        assert second.round.prompt_text
        assert len(prompt_source.calls) == 1

        room = await db_session.get(Room, host.room_id, populate_existing=True)
        assert room.status == RoomStatus.IN_GAME
        assert all(p.is_ready is False for p in await fresh_players(db_session, host.room_id))
        assert len(await rounds_of(db_session, host.room_id)) == 1

    @pytest.mark.asyncio
    async def test_inactive_players_are_ignored(self, db_session, prompt_source, lobby):
        host, guest = lobby
        player = await db_session.get(Player, guest.player_id)
        player.is_active = False
        await db_session.commit()

        result = await PlayerService(db_session, prompt_source).set_ready(host.join_code, host.player_id, True)
        assert result.auto_started is True

    @pytest.mark.asyncio
    async def test_no_second_auto_start_once_in_game(self, db_session, prompt_source, lobby):
        host, guest = lobby
        service = PlayerService(db_session, prompt_source)
        await service.set_ready(host.join_code, host.player_id, True)
        await service.set_ready(host.join_code, guest.player_id, True)

        # Everyone readies again mid-game
        await service.set_ready(host.join_code, host.player_id, True)
        result = await service.set_ready(host.join_code, guest.player_id, True)

        assert result.auto_started is False
        assert len(await rounds_of(db_session, host.room_id)) == 1

    @pytest.mark.asyncio
    async def test_losing_the_lobby_swap_creates_nothing(self, db_session, prompt_source, lobby):
        host, guest = lobby
        service = PlayerService(db_session, prompt_source)
        await service.set_ready(host.join_code, host.player_id, True)

        # Another caller already moved the room out of LOBBY
        room = await db_session.get(Room, host.room_id)
        assert await service._swap_room_status(room.id, RoomStatus.LOBBY, RoomStatus.IN_GAME)
        await db_session.commit()

        new_round = await service._auto_start(room)
        assert new_round is None
        assert await rounds_of(db_session, host.room_id) == []

    @pytest.mark.asyncio
    async def test_auto_start_uses_room_tone(self, db_session, prompt_source, lobby):
        host, guest = lobby
        await RoomService(db_session).update_settings(host.join_code, host.player_id, False)

        service = PlayerService(db_session, prompt_source)
        await service.set_ready(host.join_code, host.player_id, True)
        await service.set_ready(host.join_code, guest.player_id, True)

        assert prompt_source.calls == [False]

    @pytest.mark.asyncio
    async def test_manual_start_after_auto_start_is_round_two(self, db_session, prompt_source, lobby):
        host, guest = lobby
        service = PlayerService(db_session, prompt_source)
        await service.set_ready(host.join_code, host.player_id, True)
        await service.set_ready(host.join_code, guest.player_id, True)

        next_round = await RoundService(db_session, prompt_source).start_round(host.join_code, host.player_id)
        assert next_round.round_number == 2

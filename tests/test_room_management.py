"""
Room management functionality tests
房间管理功能测试
"""

import pytest
from unittest.mock import patch
from fastapi import HTTPException
from sqlalchemy import select

from app.core.config import settings
from app.models.room import Room, RoomStatus
from app.models.player import Player
from app.models.round import Round, RoundPhase
from app.models.submission import Submission
from app.services.room import RoomService
from app.services.round import RoundService
from app.services.join_code import JOIN_CODE_ALPHABET


async def players_of(db_session, room_id):
    result = await db_session.execute(select(Player).where(Player.room_id == room_id))
    return result.scalars().all()


class TestCreateRoom:
    """创建房间测试"""

    @pytest.mark.asyncio
    async def test_create_room_makes_host(self, db_session):
        result = await RoomService(db_session).create_room("Alice")

        assert result.is_host is True
        assert len(result.join_code) == 4
        assert all(ch in JOIN_CODE_ALPHABET for ch in result.join_code)

        room = await db_session.get(Room, result.room_id)
        assert room.status == RoomStatus.LOBBY
        assert room.max_players == 8
        assert room.total_rounds == 3
        assert room.round_seconds == 45
        assert room.is_family_friendly is True

        players = await players_of(db_session, result.room_id)
        assert len(players) == 1
        assert players[0].id == result.player_id
        assert players[0].display_name == "Alice"
        assert players[0].is_host is True
        assert players[0].is_ready is False

    @pytest.mark.asyncio
    async def test_create_room_requires_name(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            await RoomService(db_session).create_room("")
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Name is required."

    @pytest.mark.asyncio
    async def test_join_code_collision_retries_with_fresh_code(self, db_session):
        service = RoomService(db_session)
        with patch("app.services.room.generate_join_code", return_value="ABCD"):
            first = await service.create_room("Alice")
        assert first.join_code == "ABCD"

        with patch("app.services.room.generate_join_code", side_effect=["ABCD", "ABCD", "WXYZ"]) as gen:
            second = await service.create_room("Bob")
        assert second.join_code == "WXYZ"
        assert gen.call_count == 3

    @pytest.mark.asyncio
    async def test_join_code_exhaustion(self, db_session):
        service = RoomService(db_session)
        with patch("app.services.room.generate_join_code", return_value="ABCD"):
            await service.create_room("Alice")
            with pytest.raises(HTTPException) as exc_info:
                await service.create_room("Bob")

        assert exc_info.value.status_code == 500
        assert exc_info.value.detail == "Failed to generate a unique join code. Try again."
        rooms = (await db_session.execute(select(Room))).scalars().all()
        assert len(rooms) == 1


class TestJoinRoom:
    """加入房间测试"""

    @pytest.mark.asyncio
    async def test_join_room(self, db_session):
        service = RoomService(db_session)
        host = await service.create_room("Alice")

        joined = await service.join_room("Bob", host.join_code)

        assert joined.is_host is False
        assert joined.room_id == host.room_id
        assert joined.join_code == host.join_code
        assert len(await players_of(db_session, host.room_id)) == 2

    @pytest.mark.asyncio
    async def test_join_unknown_room(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            await RoomService(db_session).join_room("Bob", "QQQQ")
        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "Room not found."

    @pytest.mark.asyncio
    async def test_join_requires_fields(self, db_session):
        service = RoomService(db_session)
        with pytest.raises(HTTPException) as exc_info:
            await service.join_room("", "ABCD")
        assert exc_info.value.detail == "Name is required."

        with pytest.raises(HTTPException) as exc_info:
            await service.join_room("Bob", "")
        assert exc_info.value.detail == "Join code is required."

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected_case_sensitively(self, db_session):
        service = RoomService(db_session)
        host = await service.create_room("Alice")

        with pytest.raises(HTTPException) as exc_info:
            await service.join_room("Alice", host.join_code)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "That name is already taken in this room."

        # Different case is a different name
        joined = await service.join_room("alice", host.join_code)
        assert joined.is_host is False

    @pytest.mark.asyncio
    async def test_room_full(self, db_session):
        service = RoomService(db_session)
        host = await service.create_room("P0")
        for i in range(1, settings.DEFAULT_MAX_PLAYERS):
            await service.join_room(f"P{i}", host.join_code)

        with pytest.raises(HTTPException) as exc_info:
            await service.join_room("Late", host.join_code)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Room is full."

    @pytest.mark.asyncio
    async def test_inactive_players_do_not_count_toward_capacity(self, db_session):
        service = RoomService(db_session)
        host = await service.create_room("P0")
        for i in range(1, settings.DEFAULT_MAX_PLAYERS):
            await service.join_room(f"P{i}", host.join_code)

        player = (await players_of(db_session, host.room_id))[-1]
        player.is_active = False
        await db_session.commit()

        joined = await service.join_room("Late", host.join_code)
        assert joined.room_id == host.room_id

    @pytest.mark.asyncio
    async def test_cannot_join_ended_room(self, db_session):
        service = RoomService(db_session)
        host = await service.create_room("Alice")
        room = await db_session.get(Room, host.room_id)
        room.status = RoomStatus.ENDED
        await db_session.commit()

        with pytest.raises(HTTPException) as exc_info:
            await service.join_room("Bob", host.join_code)
        assert exc_info.value.detail == "This game has ended."


class TestRoomSettings:
    """房间设置测试"""

    @pytest.mark.asyncio
    async def test_host_updates_family_friendly(self, db_session):
        service = RoomService(db_session)
        host = await service.create_room("Alice")

        await service.update_settings(host.join_code, host.player_id, False)

        room = await db_session.get(Room, host.room_id, populate_existing=True)
        assert room.is_family_friendly is False

    @pytest.mark.asyncio
    async def test_non_host_rejected(self, db_session):
        service = RoomService(db_session)
        host = await service.create_room("Alice")
        guest = await service.join_room("Bob", host.join_code)

        with pytest.raises(HTTPException) as exc_info:
            await service.update_settings(host.join_code, guest.player_id, False)
        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Host only."

    @pytest.mark.asyncio
    async def test_settings_locked_outside_lobby(self, db_session):
        service = RoomService(db_session)
        host = await service.create_room("Alice")
        room = await db_session.get(Room, host.room_id)
        room.status = RoomStatus.IN_GAME
        await db_session.commit()

        with pytest.raises(HTTPException) as exc_info:
            await service.update_settings(host.join_code, host.player_id, False)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Settings can only change in the lobby."

    @pytest.mark.asyncio
    async def test_missing_ids(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            await RoomService(db_session).update_settings("", "", True)
        assert exc_info.value.detail == "Missing joinCode or playerId."


class TestRoomState:
    """房间状态快照测试"""

    @pytest.mark.asyncio
    async def test_snapshot_lists_players_in_join_order(self, db_session):
        service = RoomService(db_session)
        host = await service.create_room("Alice")
        await service.join_room("Bob", host.join_code)

        state = await service.get_room_state(host.join_code)

        assert state.room.join_code == host.join_code
        assert [p.display_name for p in state.players] == ["Alice", "Bob"]
        assert state.round is None
        assert state.submissions == []

    @pytest.mark.asyncio
    async def test_submissions_hidden_until_reveal(self, db_session, prompt_source):
        service = RoomService(db_session)
        host = await service.create_room("Alice")
        rounds = RoundService(db_session, prompt_source)
        await rounds.start_round(host.join_code, host.player_id)
        latest = await rounds.get_latest_round(host.room_id)
        latest.phase = RoundPhase.GENERATING
        db_session.add(Submission(
            id="sub-1", room_id=host.room_id, round_id=latest.id,
            player_id=host.player_id, prompt_input="a cat astronaut",
        ))
        await db_session.commit()

        state = await service.get_room_state(host.join_code)
        assert state.round.phase == RoundPhase.GENERATING
        assert state.submissions == []

        latest.phase = RoundPhase.REVEAL
        await db_session.commit()

        state = await service.get_room_state(host.join_code)
        assert [s.prompt_input for s in state.submissions] == ["a cat astronaut"]


class TestRematch:
    """再来一局测试"""

    @pytest.mark.asyncio
    async def test_rematch_resets_room(self, db_session, prompt_source):
        service = RoomService(db_session)
        host = await service.create_room("Alice")
        guest = await service.join_room("Bob", host.join_code)
        rounds = RoundService(db_session, prompt_source)
        await rounds.start_round(host.join_code, host.player_id)

        room = await db_session.get(Room, host.room_id)
        room.status = RoomStatus.ENDED
        for player in await players_of(db_session, host.room_id):
            player.is_ready = True
        await db_session.commit()

        await service.rematch(host.join_code, host.player_id)

        room = await db_session.get(Room, host.room_id, populate_existing=True)
        assert room.status == RoomStatus.LOBBY
        assert room.ended_at is None
        remaining_rounds = (await db_session.execute(
            select(Round).where(Round.room_id == host.room_id)
        )).scalars().all()
        assert remaining_rounds == []
        players = (await db_session.execute(
            select(Player).where(Player.room_id == host.room_id).execution_options(populate_existing=True)
        )).scalars().all()
        assert len(players) == 2
        assert all(p.is_ready is False for p in players)

        # A fresh game starts again from round 1
        new_round = await rounds.start_round(host.join_code, host.player_id)
        assert new_round.round_number == 1
        assert guest.player_id in {p.id for p in players}

    @pytest.mark.asyncio
    async def test_rematch_host_only(self, db_session, prompt_source):
        service = RoomService(db_session)
        host = await service.create_room("Alice")
        guest = await service.join_room("Bob", host.join_code)
        started = await RoundService(db_session, prompt_source).start_round(host.join_code, host.player_id)

        room = await db_session.get(Room, host.room_id)
        room.status = RoomStatus.ENDED
        bob = await db_session.get(Player, guest.player_id)
        bob.is_ready = True
        await db_session.commit()

        with pytest.raises(HTTPException) as exc_info:
            await service.rematch(host.join_code, guest.player_id)
        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Host only."

        # Nothing was reset
        room = await db_session.get(Room, host.room_id, populate_existing=True)
        assert room.status == RoomStatus.ENDED
        assert await db_session.get(Round, started.id, populate_existing=True) is not None
        ready = {
            p.id: p.is_ready
            for p in (await db_session.execute(
                select(Player).where(Player.room_id == host.room_id).execution_options(populate_existing=True)
            )).scalars().all()
        }
        assert ready == {host.player_id: False, guest.player_id: True}

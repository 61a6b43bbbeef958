"""
Shared room-scoped service helpers
房间相关服务的公共查询与条件更新
"""

import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from fastapi import HTTPException, status

from app.models.room import Room, RoomStatus
from app.models.player import Player
from app.models.round import Round
from app.websocket.connection_manager import connection_manager

logger = logging.getLogger(__name__)


class RoomScopedService:
    """Base class for services addressed by (joinCode, playerId)"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _require_ids(join_code: str, player_id: str) -> None:
        if not join_code or not player_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing joinCode or playerId."
            )

    async def find_room(self, join_code: str) -> Optional[Room]:
        stmt = select(Room).where(Room.join_code == join_code)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_room(self, join_code: str) -> Room:
        room = await self.find_room(join_code)
        if not room:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Room not found."
            )
        return room

    async def find_player(self, room_id: str, player_id: str) -> Optional[Player]:
        stmt = select(Player).where(Player.id == player_id, Player.room_id == room_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_player(self, room_id: str, player_id: str) -> Player:
        player = await self.find_player(room_id, player_id)
        if not player:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Player not found."
            )
        return player

    async def get_latest_round(self, room_id: str) -> Optional[Round]:
        """Highest round_number of the room, the only round handlers act on"""
        stmt = (
            select(Round)
            .where(Round.room_id == room_id)
            .order_by(Round.round_number.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _swap_room_status(
        self, room_id: str, expected: RoomStatus, target: RoomStatus, **values
    ) -> bool:
        """UPDATE rooms SET status = target WHERE id = :id AND status = expected"""
        stmt = (
            update(Room)
            .where(Room.id == room_id, Room.status == expected)
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        swapped = result.rowcount == 1
        if not swapped:
            logger.debug(f"[ROOM] Status swap {expected.value}->{target.value} lost for room {room_id}")
        return swapped

    async def _notify(self, room_id: str, *tables: str) -> None:
        for table in tables:
            await connection_manager.notify_room_changed(room_id, table)

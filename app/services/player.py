"""
Player readiness service
玩家准备状态服务 - 全员准备后自动开始第一回合
"""

import logging
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from app.models.room import Room, RoomStatus
from app.models.player import Player
from app.models.round import Round
from app.schemas.player import ReadyResponse
from app.schemas.round import RoundResponse
from app.services.base import RoomScopedService
from app.services.llm import PromptGenerator
from app.services.round import RoundService

logger = logging.getLogger(__name__)


class PlayerService(RoomScopedService):
    """玩家状态服务"""

    def __init__(self, db: AsyncSession, prompt_source: Optional[PromptGenerator] = None):
        super().__init__(db)
        self.round_service = RoundService(db, prompt_source)

    async def _all_active_ready(self, room_id: str) -> bool:
        stmt = (
            select(Player.is_ready)
            .where(Player.room_id == room_id, Player.is_active.is_(True))
        )
        flags = (await self.db.execute(stmt)).scalars().all()
        return bool(flags) and all(flags)

    async def _auto_start(self, room: Room) -> Optional[Round]:
        """
        Only the caller that swaps the room out of LOBBY creates round 1;
        everyone else sees a lost swap and returns without a round.
        """
        room_id = room.id
        prompt_text = await self.round_service.prompt_source.get_prompt_text(room.is_family_friendly)

        if not await self._swap_room_status(room_id, RoomStatus.LOBBY, RoomStatus.IN_GAME):
            await self.db.rollback()
            return None

        logger.info(f"[READY] All players ready in room {room_id}, starting game")
        return await self.round_service.create_round(room, prompt_text=prompt_text)

    async def set_ready(
        self, join_code: str, player_id: str, ready: Optional[bool] = None
    ) -> ReadyResponse:
        """设置或切换准备状态"""
        self._require_ids(join_code, player_id)

        room = await self._get_room(join_code)
        if room.status == RoomStatus.ENDED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Game has ended."
            )

        player = await self._get_player(room.id, player_id)
        if not player.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Player is not active."
            )

        new_ready = (not player.is_ready) if ready is None else bool(ready)
        player.is_ready = new_ready
        room_id, room_status = room.id, room.status
        await self.db.commit()

        logger.info(f"[READY] Player {player_id} ready={new_ready} in room {join_code}")
        await self._notify(room_id, "players")

        if new_ready and room_status == RoomStatus.LOBBY and await self._all_active_ready(room_id):
            new_round = await self._auto_start(room)
            if new_round is not None:
                return ReadyResponse(
                    ok=True,
                    auto_started=True,
                    ready=new_ready,
                    round=RoundResponse.model_validate(new_round),
                )

        return ReadyResponse(ok=True, auto_started=False, ready=new_ready)

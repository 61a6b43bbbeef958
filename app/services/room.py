"""
Room management service
房间管理服务 - 创建、加入、设置、状态快照与再来一局
"""

import uuid
import logging
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException, status

from app.core.config import settings
from app.models.room import Room, RoomStatus
from app.models.player import Player
from app.models.round import Round, RoundPhase
from app.models.submission import Submission, Vote, Score
from app.schemas.room import (
    RoomJoinResponse, RoomInfo, PlayerInfo, RoomStateResponse
)
from app.schemas.round import RoundResponse
from app.schemas.submission import SubmissionResponse
from app.services.base import RoomScopedService
from app.services.join_code import generate_join_code
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

# Submissions stay hidden until the round is revealed
VISIBLE_SUBMISSION_PHASES = (RoundPhase.REVEAL, RoundPhase.VOTING, RoundPhase.RESULTS)


class RoomService(RoomScopedService):
    """房间管理服务类"""

    def __init__(self, db: AsyncSession):
        super().__init__(db)

    @staticmethod
    def _validate_display_name(name: str) -> None:
        if not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Name is required."
            )
        if len(name) > settings.MAX_DISPLAY_NAME_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Name must be at most {settings.MAX_DISPLAY_NAME_LENGTH} characters."
            )

    async def _join_code_taken(self, join_code: str) -> bool:
        stmt = select(func.count()).select_from(Room).where(Room.join_code == join_code)
        result = await self.db.execute(stmt)
        return result.scalar() > 0

    async def create_room(self, name: str) -> RoomJoinResponse:
        """
        创建房间并把创建者加入为房主
        加入码冲突时重新生成，最多尝试 JOIN_CODE_MAX_ATTEMPTS 次
        """
        self._validate_display_name(name)

        for attempt in range(1, settings.JOIN_CODE_MAX_ATTEMPTS + 1):
            join_code = generate_join_code()
            if await self._join_code_taken(join_code):
                logger.info(f"[ROOM] Join code {join_code} already in use (attempt {attempt})")
                continue

            room_id = str(uuid.uuid4())
            self.db.add(Room(
                id=room_id,
                join_code=join_code,
                status=RoomStatus.LOBBY,
                max_players=settings.DEFAULT_MAX_PLAYERS,
                is_family_friendly=settings.DEFAULT_FAMILY_FRIENDLY,
                total_rounds=settings.DEFAULT_TOTAL_ROUNDS,
                round_seconds=settings.DEFAULT_ROUND_SECONDS,
            ))
            try:
                await self.db.flush()
            except IntegrityError:
                # Lost a race for the same code between the check and the insert
                await self.db.rollback()
                logger.info(f"[ROOM] Join code {join_code} collided on insert (attempt {attempt})")
                continue

            player_id = str(uuid.uuid4())
            self.db.add(Player(
                id=player_id,
                room_id=room_id,
                display_name=name,
                is_host=True,
                is_ready=False,
                is_active=True,
            ))
            await self.db.commit()

            logger.info(f"[ROOM] Room {join_code} created by {name}")
            return RoomJoinResponse(
                room_id=room_id, join_code=join_code, player_id=player_id, is_host=True
            )

        logger.error("[ROOM] Could not allocate a unique join code")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate a unique join code. Try again."
        )

    async def join_room(self, name: str, join_code: str) -> RoomJoinResponse:
        """加入房间"""
        self._validate_display_name(name)
        if not join_code:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Join code is required."
            )

        room = await self._get_room(join_code)
        if room.status == RoomStatus.ENDED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="This game has ended."
            )

        count_stmt = select(func.count()).select_from(Player).where(
            Player.room_id == room.id, Player.is_active.is_(True)
        )
        active_count = (await self.db.execute(count_stmt)).scalar()
        if active_count >= room.max_players:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Room is full."
            )

        taken_stmt = select(Player.id).where(
            Player.room_id == room.id, Player.display_name == name
        )
        if (await self.db.execute(taken_stmt)).first() is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="That name is already taken in this room."
            )

        room_id = room.id
        player_id = str(uuid.uuid4())
        self.db.add(Player(
            id=player_id,
            room_id=room_id,
            display_name=name,
            is_host=False,
            is_ready=False,
            is_active=True,
        ))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="That name is already taken in this room."
            )

        logger.info(f"[ROOM] {name} joined room {join_code}")
        await self._notify(room_id, "players")
        return RoomJoinResponse(
            room_id=room_id, join_code=join_code, player_id=player_id, is_host=False
        )

    async def update_settings(
        self, join_code: str, player_id: str, is_family_friendly: bool
    ) -> None:
        """房主在大厅阶段修改房间设置"""
        self._require_ids(join_code, player_id)

        room = await self._get_room(join_code)
        if room.status != RoomStatus.LOBBY:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Settings can only change in the lobby."
            )

        player = await self.find_player(room.id, player_id)
        if not player or not player.is_host:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Host only."
            )

        room.is_family_friendly = bool(is_family_friendly)
        room.updated_at = utcnow()
        room_id = room.id
        await self.db.commit()

        logger.info(f"[ROOM] Room {join_code} family friendly = {bool(is_family_friendly)}")
        await self._notify(room_id, "rooms")

    async def get_room_state(self, join_code: str) -> RoomStateResponse:
        """房间完整快照: 房间、玩家、最新回合与(揭晓后的)提交"""
        if not join_code:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Join code is required."
            )
        room = await self._get_room(join_code)

        players_stmt = (
            select(Player)
            .where(Player.room_id == room.id)
            .order_by(Player.joined_at.asc())
        )
        players = (await self.db.execute(players_stmt)).scalars().all()

        latest = await self.get_latest_round(room.id)
        submissions: List[SubmissionResponse] = []
        if latest and latest.phase in VISIBLE_SUBMISSION_PHASES:
            submissions_stmt = (
                select(Submission)
                .where(Submission.round_id == latest.id)
                .order_by(Submission.created_at.asc())
            )
            rows = (await self.db.execute(submissions_stmt)).scalars().all()
            submissions = [SubmissionResponse.model_validate(s) for s in rows]

        return RoomStateResponse(
            room=RoomInfo.model_validate(room),
            players=[PlayerInfo.model_validate(p) for p in players],
            round=RoundResponse.model_validate(latest) if latest else None,
            submissions=submissions,
        )

    async def rematch(self, join_code: str, player_id: str) -> None:
        """
        再来一局: 清空本房间的投票、提交、积分和回合，
        房间回到大厅，所有玩家取消准备
        """
        self._require_ids(join_code, player_id)

        room = await self._get_room(join_code)
        player = await self.find_player(room.id, player_id)
        if not player or not player.is_host:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Host only."
            )

        room_id = room.id
        # Children before parents
        await self.db.execute(delete(Vote).where(Vote.room_id == room_id))
        await self.db.execute(delete(Submission).where(Submission.room_id == room_id))
        await self.db.execute(delete(Score).where(Score.room_id == room_id))
        await self.db.execute(delete(Round).where(Round.room_id == room_id))
        await self.db.execute(
            update(Room)
            .where(Room.id == room_id)
            .values(status=RoomStatus.LOBBY, ended_at=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(Player)
            .where(Player.room_id == room_id)
            .values(is_ready=False)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        logger.info(f"[ROOM] Room {join_code} reset for a rematch")
        await self._notify(room_id, "rounds", "rooms", "players")

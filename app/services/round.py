"""
Round phase service
回合阶段服务 - 开始回合、重新生成提示词、阶段推进

Room.status:  LOBBY -> IN_GAME -> ENDED -> (rematch) LOBBY
Round.phase:  PROMPT -> GENERATING -> REVEAL -> RESULTS

每一次阶段转换都是一条条件更新 (WHERE phase = 预期阶段)。
影响行数为 0 表示其他调用者已经完成了转换，视为成功。
"""

import uuid
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from app.core.config import settings
from app.models.room import Room, RoomStatus
from app.models.player import Player
from app.models.round import Round, RoundPhase
from app.schemas.round import RoundResponse, AdvanceResponse
from app.services.base import RoomScopedService
from app.services.llm import PromptGenerator, prompt_generator
from app.utils.clock import utcnow, seconds_from_now

logger = logging.getLogger(__name__)

# Phases whose deadline moves the round forward without the host
TIMED_PHASES = (RoundPhase.PROMPT, RoundPhase.GENERATING)


class RoundService(RoomScopedService):
    """回合管理服务"""

    def __init__(self, db: AsyncSession, prompt_source: Optional[PromptGenerator] = None):
        super().__init__(db)
        self.prompt_source = prompt_source or prompt_generator

    async def _require_active_host(self, room: Room, player_id: str, action: str) -> Player:
        player = await self._get_player(room.id, player_id)
        if not player.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Player is not active."
            )
        if not player.is_host:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Only the host can {action}."
            )
        return player

    @staticmethod
    def _reject_if_ended(room: Room) -> None:
        if room.status == RoomStatus.ENDED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Game has ended."
            )

    async def create_round(self, room: Room, prompt_text: Optional[str] = None) -> Round:
        """
        Enter PROMPT for round N+1: new prompt, short reveal deadline,
        room IN_GAME and every player's readiness cleared.
        """
        if prompt_text is None:
            prompt_text = await self.prompt_source.get_prompt_text(room.is_family_friendly)

        room_id = room.id
        latest = await self.get_latest_round(room_id)
        next_number = (latest.round_number if latest else 0) + 1

        new_round = Round(
            id=str(uuid.uuid4()),
            room_id=room_id,
            round_number=next_number,
            phase=RoundPhase.PROMPT,
            prompt_text=prompt_text,
            phase_ends_at=seconds_from_now(settings.PROMPT_REVEAL_SECONDS),
        )
        self.db.add(new_round)

        await self.db.execute(
            update(Room)
            .where(Room.id == room_id)
            .values(status=RoomStatus.IN_GAME, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(Player)
            .where(Player.room_id == room_id)
            .values(is_ready=False)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(new_round)
        await self.db.refresh(room)

        logger.info(f"[ROUND] Room {room_id} entered round {next_number}: {prompt_text}")
        await self._notify(room_id, "rounds", "rooms", "players")
        return new_round

    async def start_round(self, join_code: str, player_id: str) -> RoundResponse:
        """Host-only manual start of the next round"""
        self._require_ids(join_code, player_id)

        room = await self._get_room(join_code)
        self._reject_if_ended(room)
        await self._require_active_host(room, player_id, "start a round")

        latest = await self.get_latest_round(room.id)
        next_number = (latest.round_number if latest else 0) + 1
        total_rounds = room.total_rounds or settings.DEFAULT_TOTAL_ROUNDS
        if next_number > total_rounds:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Maximum number of rounds reached."
            )

        new_round = await self.create_round(room)
        return RoundResponse.model_validate(new_round)

    async def reroll_prompt(self, join_code: str, player_id: str) -> RoundResponse:
        """Host-only: replace the latest round's prompt while it is still in PROMPT"""
        self._require_ids(join_code, player_id)

        room = await self._get_room(join_code)
        self._reject_if_ended(room)
        await self._require_active_host(room, player_id, "reroll the prompt")

        latest = await self.get_latest_round(room.id)
        if not latest:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No round exists yet. Start a round first."
            )
        if latest.phase != RoundPhase.PROMPT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You can only reroll during the PROMPT phase."
            )

        room_id, round_id = room.id, latest.id
        prompt_text = await self.prompt_source.get_prompt_text(room.is_family_friendly)

        result = await self.db.execute(
            update(Round)
            .where(Round.id == round_id, Round.phase == RoundPhase.PROMPT)
            .values(prompt_text=prompt_text)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Advanced out of PROMPT while the new prompt was generated
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You can only reroll during the PROMPT phase."
            )

        await self.db.commit()
        updated = await self.db.get(Round, round_id, populate_existing=True)

        logger.info(f"[ROUND] Prompt rerolled for room {room_id}: {prompt_text}")
        await self._notify(room_id, "rounds")
        return RoundResponse.model_validate(updated)

    async def transition_phase(
        self, round_id: str, expected: RoundPhase, target: RoundPhase, **values
    ) -> Optional[Round]:
        """
        Compare-and-swap on rounds.phase.
        Returns the updated round, or None when the row was no longer in `expected`.
        Does not commit.
        """
        stmt = (
            update(Round)
            .where(Round.id == round_id, Round.phase == expected)
            .values(phase=target, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            logger.debug(f"[ADVANCE] {expected.value}->{target.value} already applied for round {round_id}")
            return None
        return await self.db.get(Round, round_id, populate_existing=True)

    async def _advance_round(self, room: Room, current: Round) -> Optional[Round]:
        """Apply the single transition out of `current.phase`, if any"""
        room_id, round_id, round_number = room.id, current.id, current.round_number
        total_rounds = room.total_rounds or settings.DEFAULT_TOTAL_ROUNDS
        game_over = False

        if current.phase == RoundPhase.PROMPT:
            seconds = room.round_seconds or settings.DEFAULT_ROUND_SECONDS
            updated = await self.transition_phase(
                round_id, RoundPhase.PROMPT, RoundPhase.GENERATING,
                phase_ends_at=seconds_from_now(seconds),
            )
        elif current.phase == RoundPhase.GENERATING:
            updated = await self.transition_phase(
                round_id, RoundPhase.GENERATING, RoundPhase.REVEAL, phase_ends_at=None,
            )
        elif current.phase == RoundPhase.REVEAL:
            updated = await self.transition_phase(
                round_id, RoundPhase.REVEAL, RoundPhase.RESULTS, phase_ends_at=None,
            )
            if updated is not None and round_number >= total_rounds:
                game_over = await self._swap_room_status(
                    room_id, RoomStatus.IN_GAME, RoomStatus.ENDED, ended_at=utcnow(), updated_at=utcnow(),
                )
        else:
            # RESULTS (and the unused VOTING) have no outgoing transition
            return None

        await self.db.commit()

        if updated is None:
            return None

        logger.info(f"[ADVANCE] Room {room_id} round {round_number} -> {updated.phase.value}")
        await self._notify(room_id, "rounds")
        if game_over:
            logger.info(f"[ADVANCE] Room {room_id} finished after round {round_number}")
            await self._notify(room_id, "rooms")
        return updated

    async def advance_phase(
        self, join_code: str, player_id: str, from_phase: Optional[RoundPhase] = None
    ) -> AdvanceResponse:
        """
        Move the latest round one phase forward. Any active player may call this;
        concurrent callers collapse onto a single transition.
        """
        self._require_ids(join_code, player_id)

        room = await self._get_room(join_code)
        if room.status != RoomStatus.IN_GAME:
            return AdvanceResponse(ok=True)

        player = await self.find_player(room.id, player_id)
        if not player or not player.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Player not active."
            )

        latest = await self.get_latest_round(room.id)
        if not latest:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No round to advance."
            )

        if from_phase is not None and latest.phase != from_phase:
            # Stale timer: the phase it was scheduled for is already gone
            return AdvanceResponse(ok=True, phase=latest.phase, updated=None)

        round_id = latest.id
        updated = await self._advance_round(room, latest)
        if updated is not None:
            return AdvanceResponse(ok=True, phase=updated.phase, updated=RoundResponse.model_validate(updated))

        current = await self.db.get(Round, round_id, populate_existing=True)
        return AdvanceResponse(ok=True, phase=current.phase if current else None, updated=None)

    async def advance_expired_rounds(self, now: Optional[datetime] = None) -> int:
        """Advance every in-game room whose latest timed phase is past its deadline"""
        now = now or utcnow()

        latest_numbers = (
            select(Round.room_id, func.max(Round.round_number).label("max_number"))
            .group_by(Round.room_id)
            .subquery()
        )
        stmt = (
            select(Round, Room)
            .join(
                latest_numbers,
                and_(
                    Round.room_id == latest_numbers.c.room_id,
                    Round.round_number == latest_numbers.c.max_number,
                ),
            )
            .join(Room, Room.id == Round.room_id)
            .where(
                Room.status == RoomStatus.IN_GAME,
                Round.phase.in_(TIMED_PHASES),
                Round.phase_ends_at.is_not(None),
                Round.phase_ends_at <= now,
            )
            .execution_options(populate_existing=True)
        )
        rows = (await self.db.execute(stmt)).all()
        await self.db.commit()

        advanced = 0
        for expired_round, room in rows:
            if await self._advance_round(room, expired_round) is not None:
                advanced += 1

        if advanced:
            logger.info(f"[SWEEPER] Advanced {advanced} expired round(s)")
        return advanced

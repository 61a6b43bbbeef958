"""
Submission service
提交服务 - 每位玩家每回合一条提交，重复提交覆盖旧内容
"""

import uuid
import logging
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException, status

from app.core.config import settings
from app.models.room import RoomStatus
from app.models.round import RoundPhase
from app.models.submission import Submission
from app.schemas.submission import SubmissionResult
from app.services.base import RoomScopedService
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


class SubmissionService(RoomScopedService):
    """提交管理服务"""

    async def _find_submission(self, round_id: str, player_id: str):
        stmt = select(Submission).where(
            Submission.round_id == round_id, Submission.player_id == player_id
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def submit(self, join_code: str, player_id: str, prompt_input: str) -> SubmissionResult:
        """
        Upsert the caller's prompt input for the latest round.
        Only accepted while that round is GENERATING.
        """
        self._require_ids(join_code, player_id)
        if not prompt_input:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Prompt input required."
            )
        if len(prompt_input) > settings.MAX_PROMPT_INPUT_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Prompt input must be at most {settings.MAX_PROMPT_INPUT_LENGTH} characters."
            )

        room = await self._get_room(join_code)
        if room.status != RoomStatus.IN_GAME:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Game not active."
            )
        await self._get_player(room.id, player_id)

        latest = await self.get_latest_round(room.id)
        if not latest:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No active round."
            )
        if latest.phase != RoundPhase.GENERATING:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Submissions allowed only during GENERATING."
            )

        room_id, round_id = room.id, latest.id
        existing = await self._find_submission(round_id, player_id)
        if existing:
            existing.prompt_input = prompt_input
            existing.updated_at = utcnow()
            submission_id = existing.id
            await self.db.commit()
        else:
            submission_id = str(uuid.uuid4())
            self.db.add(Submission(
                id=submission_id,
                room_id=room_id,
                round_id=round_id,
                player_id=player_id,
                prompt_input=prompt_input,
            ))
            try:
                await self.db.commit()
            except IntegrityError:
                # A concurrent first submission from the same player won the insert
                await self.db.rollback()
                existing = await self._find_submission(round_id, player_id)
                if existing is None:
                    raise
                existing.prompt_input = prompt_input
                existing.updated_at = utcnow()
                submission_id = existing.id
                await self.db.commit()

        logger.info(f"[SUBMIT] Player {player_id} submitted for round {round_id}")
        await self._notify(room_id, "submissions")
        return SubmissionResult(ok=True, submission_id=submission_id)

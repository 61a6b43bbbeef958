"""
Round API endpoints
回合API端点 - 开始、重新生成提示词、推进阶段
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import get_db
from app.services.llm import PromptGenerator, get_prompt_generator
from app.services.round import RoundService
from app.schemas.common import PlayerActionRequest
from app.schemas.round import AdvanceRequest, AdvanceResponse, RoundEnvelope

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_round_service(
    db: AsyncSession = Depends(get_db),
    prompt_source: PromptGenerator = Depends(get_prompt_generator),
) -> RoundService:
    """获取回合服务依赖"""
    return RoundService(db, prompt_source)


async def _store_failure(round_service: RoundService, action: str, e: SQLAlchemyError) -> HTTPException:
    await round_service.db.rollback()
    logger.error(f"[ROUND] {action} failed: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(e)
    )


@router.post("/start", response_model=RoundEnvelope)
async def start_round(
    action: PlayerActionRequest,
    round_service: RoundService = Depends(get_round_service)
):
    """房主开始下一回合"""
    try:
        new_round = await round_service.start_round(action.join_code, action.player_id)
        return RoundEnvelope(round=new_round)
    except SQLAlchemyError as e:
        raise await _store_failure(round_service, "start round", e)


@router.post("/reroll", response_model=RoundEnvelope)
async def reroll_prompt(
    action: PlayerActionRequest,
    round_service: RoundService = Depends(get_round_service)
):
    """房主在 PROMPT 阶段重新生成提示词"""
    try:
        updated = await round_service.reroll_prompt(action.join_code, action.player_id)
        return RoundEnvelope(round=updated)
    except SQLAlchemyError as e:
        raise await _store_failure(round_service, "reroll prompt", e)


@router.post("/advance", response_model=AdvanceResponse)
async def advance_phase(
    advance_data: AdvanceRequest,
    round_service: RoundService = Depends(get_round_service)
):
    """
    推进最新回合的阶段

    多个客户端的计时器可能同时调用；只有一个调用者完成转换，
    其余调用返回 updated = null
    """
    try:
        return await round_service.advance_phase(
            advance_data.join_code, advance_data.player_id, advance_data.from_phase
        )
    except SQLAlchemyError as e:
        raise await _store_failure(round_service, "advance phase", e)

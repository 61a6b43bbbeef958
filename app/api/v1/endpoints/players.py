"""
Player readiness API endpoints
玩家准备状态API端点
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import get_db
from app.services.llm import PromptGenerator, get_prompt_generator
from app.services.player import PlayerService
from app.schemas.player import ReadyRequest, ReadyResponse

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_player_service(
    db: AsyncSession = Depends(get_db),
    prompt_source: PromptGenerator = Depends(get_prompt_generator),
) -> PlayerService:
    """获取玩家服务依赖"""
    return PlayerService(db, prompt_source)


@router.post("/ready", response_model=ReadyResponse)
async def set_ready(
    ready_data: ReadyRequest,
    player_service: PlayerService = Depends(get_player_service)
):
    """
    设置或切换准备状态；大厅中所有在线玩家都准备后自动开始第一回合

    - **joinCode**: 房间加入码
    - **playerId**: 玩家ID
    - **ready**: 目标状态，省略时切换
    """
    try:
        return await player_service.set_ready(
            ready_data.join_code, ready_data.player_id, ready_data.ready
        )
    except SQLAlchemyError as e:
        await player_service.db.rollback()
        logger.error(f"[READY] Store failure: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

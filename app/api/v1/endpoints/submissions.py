"""
Submission API endpoints
提交API端点
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import get_db
from app.services.submission import SubmissionService
from app.schemas.submission import SubmissionCreate, SubmissionResult

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_submission_service(db: AsyncSession = Depends(get_db)) -> SubmissionService:
    """获取提交服务依赖"""
    return SubmissionService(db)


@router.post("/create", response_model=SubmissionResult)
async def create_submission(
    submission_data: SubmissionCreate,
    submission_service: SubmissionService = Depends(get_submission_service)
):
    """
    提交本回合的提示词输入（GENERATING 阶段），重复提交覆盖

    - **joinCode**: 房间加入码
    - **playerId**: 玩家ID
    - **promptInput**: 提示词输入
    """
    try:
        return await submission_service.submit(
            submission_data.join_code,
            submission_data.player_id,
            submission_data.prompt_input,
        )
    except SQLAlchemyError as e:
        await submission_service.db.rollback()
        logger.error(f"[SUBMIT] Store failure: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

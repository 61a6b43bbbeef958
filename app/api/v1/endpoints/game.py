"""
Game API endpoints
游戏API端点 - 再来一局
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1.endpoints.rooms import get_room_service
from app.services.room import RoomService
from app.schemas.common import PlayerActionRequest
from app.schemas.common import OkResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/rematch", response_model=OkResponse)
async def rematch(
    action: PlayerActionRequest,
    room_service: RoomService = Depends(get_room_service)
):
    """房主重置房间：清空回合与提交，回到大厅"""
    try:
        await room_service.rematch(action.join_code, action.player_id)
        return OkResponse()
    except SQLAlchemyError as e:
        await room_service.db.rollback()
        logger.error(f"[REMATCH] Store failure: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

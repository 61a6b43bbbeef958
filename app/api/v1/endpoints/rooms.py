"""
Room management API endpoints
房间管理API端点
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import get_db
from app.services.room import RoomService
from app.schemas.room import (
    RoomCreate, RoomJoinRequest, RoomJoinResponse,
    RoomSettingsUpdate, RoomStateResponse
)
from app.schemas.common import OkResponse
from app.services.join_code import normalize_join_code

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_room_service(db: AsyncSession = Depends(get_db)) -> RoomService:
    """获取房间服务依赖"""
    return RoomService(db)


async def _store_failure(room_service: RoomService, action: str, e: SQLAlchemyError) -> HTTPException:
    await room_service.db.rollback()
    logger.error(f"[ROOM] {action} failed: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(e)
    )


@router.post("/create", response_model=RoomJoinResponse)
async def create_room(
    room_data: RoomCreate,
    room_service: RoomService = Depends(get_room_service)
):
    """
    创建新房间，创建者成为房主

    - **name**: 显示名称
    """
    try:
        return await room_service.create_room(room_data.name)
    except SQLAlchemyError as e:
        raise await _store_failure(room_service, "create room", e)


@router.post("/join", response_model=RoomJoinResponse)
async def join_room(
    join_data: RoomJoinRequest,
    room_service: RoomService = Depends(get_room_service)
):
    """
    通过加入码加入房间

    - **name**: 显示名称，房间内唯一
    - **joinCode**: 房间加入码（不区分大小写）
    """
    try:
        return await room_service.join_room(join_data.name, join_data.join_code)
    except SQLAlchemyError as e:
        raise await _store_failure(room_service, "join room", e)


@router.post("/settings", response_model=OkResponse)
async def update_room_settings(
    settings_data: RoomSettingsUpdate,
    room_service: RoomService = Depends(get_room_service)
):
    """房主在大厅阶段修改房间设置"""
    try:
        await room_service.update_settings(
            settings_data.join_code,
            settings_data.player_id,
            settings_data.is_family_friendly,
        )
        return OkResponse()
    except SQLAlchemyError as e:
        raise await _store_failure(room_service, "update settings", e)


@router.get("/{join_code}", response_model=RoomStateResponse)
async def get_room_state(
    join_code: str,
    room_service: RoomService = Depends(get_room_service)
):
    """获取房间完整状态（房间、玩家、最新回合、揭晓后的提交）"""
    try:
        return await room_service.get_room_state(normalize_join_code(join_code))
    except SQLAlchemyError as e:
        raise await _store_failure(room_service, "load room", e)

"""
WebSocket endpoints
WebSocket连接端点 - 房间变更通知
"""

import json
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.services.room import RoomService
from app.services.join_code import normalize_join_code
from app.websocket.connection_manager import connection_manager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.websocket("/{join_code}")
async def websocket_room_endpoint(
    websocket: WebSocket,
    join_code: str,
    player_id: str = Query(default=""),
    db: AsyncSession = Depends(get_db),
):
    """
    房间WebSocket连接端点
    连接成功后先发送一次完整房间状态，之后每次数据变更推送 room_changed
    """
    join_code = normalize_join_code(join_code)
    player_id = player_id.strip()
    logger.info(f"[WS] Connection attempt for room {join_code} by player {player_id}")

    room_service = RoomService(db)
    try:
        room = await room_service.find_room(join_code)
        player = await room_service.find_player(room.id, player_id) if room and player_id else None
        if not room or not player:
            logger.warning(f"[WS] Rejected player {player_id!r} for room {join_code}")
            await websocket.close(code=4004, reason="Room or player not found")
            return
        room_id = room.id
        snapshot = await room_service.get_room_state(join_code)
    finally:
        # Do not hold a pooled connection for the socket's lifetime
        await db.close()

    connected = await connection_manager.connect(room_id, player_id, websocket)
    if not connected:
        await websocket.close(code=4002, reason="Connection limit reached")
        return

    try:
        await connection_manager.send_personal_message(websocket, {
            "type": "room_state",
            "data": snapshot.model_dump(mode="json"),
        })

        # 消息处理循环
        while True:
            data = await websocket.receive_text()
            try:
                message_data = json.loads(data)
            except json.JSONDecodeError:
                await connection_manager.send_personal_message(websocket, {
                    "type": "error",
                    "data": {"message": "Invalid JSON format"}
                })
                continue

            if not isinstance(message_data, dict) or "type" not in message_data:
                await connection_manager.send_personal_message(websocket, {
                    "type": "error",
                    "data": {"message": "Invalid message format"}
                })
                continue

            if message_data["type"] == "ping":
                await connection_manager.send_personal_message(websocket, {"type": "pong"})
            else:
                await connection_manager.send_personal_message(websocket, {
                    "type": "error",
                    "data": {"message": f"Unknown message type: {message_data['type']}"}
                })

    except WebSocketDisconnect:
        logger.info(f"[WS] Player {player_id} left room {join_code}")
    finally:
        # 只清理连接，不修改玩家的 is_active
        connection_manager.disconnect(room_id, player_id, websocket)

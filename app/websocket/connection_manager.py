"""
WebSocket连接管理器
管理玩家WebSocket连接和房间广播 - 数据变更后通知客户端重新拉取房间状态
"""

import json
import logging
from typing import Dict, Optional, Any
from datetime import datetime
from fastapi import WebSocket

from app.core.config import settings
from app.core.redis_client import redis_manager
from app.schemas.common import WebSocketMessage

logger = logging.getLogger(__name__)


def room_channel(room_id: str) -> str:
    """Redis pub/sub channel carrying a room's change notifications"""
    return f"room:{room_id}:events"


class ConnectionManager:
    """
    WebSocket连接管理器
    room_id -> {player_id: WebSocket}
    """

    def __init__(self, max_connections: Optional[int] = None):
        self.room_connections: Dict[str, Dict[str, WebSocket]] = {}
        self.connection_metadata: Dict[str, Dict[str, Any]] = {}
        self.max_connections = max_connections or settings.MAX_WEBSOCKET_CONNECTIONS

    @property
    def connection_count(self) -> int:
        return sum(len(players) for players in self.room_connections.values())

    async def connect(self, room_id: str, player_id: str, websocket: WebSocket) -> bool:
        """Accept the socket and register it under the room"""
        if self.connection_count >= self.max_connections:
            logger.warning(f"[WS] Connection limit reached, rejecting player {player_id}")
            return False

        await websocket.accept()

        # 同一玩家的旧连接被新连接替换
        previous = self.room_connections.get(room_id, {}).get(player_id)
        if previous is not None:
            await self._close_quietly(previous, "New connection established")

        self.room_connections.setdefault(room_id, {})[player_id] = websocket
        self.connection_metadata[player_id] = {
            "connected_at": datetime.now(),
            "room_id": room_id,
        }

        logger.info(f"[WS] Player {player_id} connected to room {room_id}")
        return True

    def disconnect(self, room_id: str, player_id: str, websocket: Optional[WebSocket] = None) -> None:
        """Forget a socket; a stale socket never evicts its replacement"""
        players = self.room_connections.get(room_id)
        if not players:
            return

        current = players.get(player_id)
        if current is None or (websocket is not None and current is not websocket):
            return

        del players[player_id]
        self.connection_metadata.pop(player_id, None)
        if not players:
            del self.room_connections[room_id]

        logger.info(f"[WS] Player {player_id} disconnected from room {room_id}")

    async def send_personal_message(self, websocket: WebSocket, message: Dict[str, Any]) -> bool:
        try:
            await websocket.send_text(json.dumps(message, default=str))
            return True
        except Exception as e:
            logger.warning(f"[WS] Failed to send message: {e}")
            return False

    async def broadcast_to_room(self, room_id: str, message: Dict[str, Any]) -> int:
        """Send to every socket in the room, dropping sockets that fail"""
        players = dict(self.room_connections.get(room_id, {}))
        sent = 0
        for player_id, websocket in players.items():
            if await self.send_personal_message(websocket, message):
                sent += 1
            else:
                self.disconnect(room_id, player_id, websocket)
        return sent

    async def notify_room_changed(self, room_id: str, table: str) -> None:
        """
        Tell subscribers that rows of `table` changed for this room.
        Clients re-fetch the full room state on every notification.
        """
        message = WebSocketMessage(
            type="room_changed",
            data={"room_id": room_id, "table": table},
        ).model_dump(mode="json")
        await self.broadcast_to_room(room_id, message)

        try:
            await redis_manager.publish_message(room_channel(room_id), message)
        except Exception as e:
            logger.debug(f"[WS] Redis publish skipped for room {room_id}: {e}")

    async def _close_quietly(self, websocket: WebSocket, reason: str) -> None:
        try:
            await websocket.close(code=1000, reason=reason)
        except RuntimeError:
            # 连接可能已经关闭
            pass


# Global connection manager instance
connection_manager = ConnectionManager()

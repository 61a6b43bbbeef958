"""
Room Pydantic schemas
房间数据验证和序列化模型
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from enum import Enum

from app.schemas.round import RoundResponse
from app.schemas.submission import SubmissionResponse
from app.schemas.common import PlayerActionRequest, UTCDateTime, clean_join_code, clean_text


class RoomStatus(str, Enum):
    """房间状态枚举"""
    LOBBY = "LOBBY"
    IN_GAME = "IN_GAME"
    ENDED = "ENDED"


class RoomCreate(BaseModel):
    """创建房间请求模型"""
    name: str = Field(default="", description="房主显示名称")

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v):
        return clean_text(v)


class RoomJoinRequest(BaseModel):
    """加入房间请求"""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default="", description="玩家显示名称")
    join_code: str = Field(default="", alias="joinCode", description="房间加入码")

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v):
        return clean_text(v)

    @field_validator("join_code", mode="before")
    @classmethod
    def normalize_join_code(cls, v):
        return clean_join_code(v)


class RoomJoinResponse(BaseModel):
    """创建/加入房间响应"""
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(..., serialization_alias="roomId")
    join_code: str = Field(..., serialization_alias="joinCode")
    player_id: str = Field(..., serialization_alias="playerId")
    is_host: bool = Field(..., serialization_alias="isHost")


class RoomSettingsUpdate(PlayerActionRequest):
    """房间设置更新请求（仅房主，仅大厅阶段）"""
    is_family_friendly: bool = Field(default=False, alias="isFamilyFriendly")


class PlayerInfo(BaseModel):
    """玩家信息"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: str
    is_host: bool = False
    is_ready: bool = False
    is_active: bool = True


class RoomInfo(BaseModel):
    """房间信息"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    join_code: str
    status: RoomStatus
    max_players: int
    is_family_friendly: bool
    total_rounds: int
    round_seconds: int
    created_at: Optional[UTCDateTime] = None
    ended_at: Optional[UTCDateTime] = None


class RoomStateResponse(BaseModel):
    """房间完整状态快照，客户端收到变更通知后重新拉取"""
    room: RoomInfo
    players: List[PlayerInfo] = Field(default_factory=list)
    round: Optional[RoundResponse] = None
    submissions: List[SubmissionResponse] = Field(default_factory=list)

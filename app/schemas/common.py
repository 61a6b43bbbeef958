"""
Common Pydantic schemas
通用数据验证和序列化模型
"""

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, Optional, Any, Dict
from datetime import datetime, timezone

from app.utils.clock import as_utc

# Timestamps leave the API as UTC with an explicit offset; clients schedule phase timers from them
UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]


class OkResponse(BaseModel):
    """简单成功响应"""
    ok: bool = True


class ErrorResponse(BaseModel):
    """错误响应模型"""
    error: str = Field(..., description="错误信息")


class WebSocketMessage(BaseModel):
    """WebSocket消息模型"""
    type: str = Field(..., description="消息类型")
    data: Optional[Dict[str, Any]] = Field(None, description="消息数据")
    timestamp: UTCDateTime = Field(default_factory=lambda: datetime.now(timezone.utc))


def clean_text(v):
    """Trim incoming text, treating null as empty"""
    return (v or "").strip() if isinstance(v, str) or v is None else v


def clean_join_code(v):
    """Trim and upper-case a join code"""
    return (v or "").strip().upper() if isinstance(v, str) or v is None else v


class PlayerActionRequest(BaseModel):
    """Base body for every operation addressed to a room by a player"""
    model_config = ConfigDict(populate_by_name=True)

    join_code: str = Field(default="", alias="joinCode", description="房间加入码")
    player_id: str = Field(default="", alias="playerId", description="玩家ID")

    @field_validator("join_code", mode="before")
    @classmethod
    def normalize_join_code(cls, v):
        return clean_join_code(v)

    @field_validator("player_id", mode="before")
    @classmethod
    def normalize_player_id(cls, v):
        return clean_text(v)

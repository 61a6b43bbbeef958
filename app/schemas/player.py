"""
Player Pydantic schemas
玩家准备状态请求与响应
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from app.schemas.common import PlayerActionRequest
from app.schemas.round import RoundResponse


class ReadyRequest(PlayerActionRequest):
    """设置/切换准备状态; ready 省略时切换当前值"""
    ready: Optional[bool] = None


class ReadyResponse(BaseModel):
    """准备状态响应"""
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    auto_started: bool = Field(default=False, serialization_alias="autoStarted")
    ready: bool
    round: Optional[RoundResponse] = None

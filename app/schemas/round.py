"""
Round Pydantic schemas
回合数据验证和序列化模型
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from enum import Enum

from app.schemas.common import PlayerActionRequest, UTCDateTime


class RoundPhase(str, Enum):
    """回合阶段枚举"""
    PROMPT = "PROMPT"
    GENERATING = "GENERATING"
    REVEAL = "REVEAL"
    VOTING = "VOTING"  # 保留在状态空间中，没有任何转换进入该阶段
    RESULTS = "RESULTS"


class RoundResponse(BaseModel):
    """回合响应"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    room_id: str
    round_number: int
    phase: RoundPhase
    prompt_text: str
    phase_ends_at: Optional[UTCDateTime] = None
    created_at: Optional[UTCDateTime] = None


class AdvanceRequest(PlayerActionRequest):
    """推进阶段请求"""
    # Phase the caller's timer was scheduled for; a mismatch makes the call a no-op
    from_phase: Optional[RoundPhase] = Field(default=None, alias="fromPhase")


class RoundEnvelope(BaseModel):
    """{round} 响应"""
    round: RoundResponse


class AdvanceResponse(BaseModel):
    """推进阶段响应; updated 为 None 表示其他调用者已完成该转换"""
    ok: bool = True
    phase: Optional[RoundPhase] = None
    updated: Optional[RoundResponse] = None

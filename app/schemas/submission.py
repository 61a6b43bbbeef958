"""
Submission Pydantic schemas
提交数据验证和序列化模型
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional

from app.schemas.common import PlayerActionRequest, UTCDateTime, clean_text


class SubmissionCreate(PlayerActionRequest):
    """提交请求"""
    prompt_input: str = Field(default="", alias="promptInput")

    @field_validator("prompt_input", mode="before")
    @classmethod
    def strip_prompt(cls, v):
        return clean_text(v)


class SubmissionResponse(BaseModel):
    """提交信息"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    round_id: str
    player_id: str
    prompt_input: str
    updated_at: Optional[UTCDateTime] = None


class SubmissionResult(BaseModel):
    """提交结果"""
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    submission_id: str = Field(..., serialization_alias="submissionId")

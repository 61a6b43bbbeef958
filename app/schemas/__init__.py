# Pydantic schemas
from .common import OkResponse, ErrorResponse, WebSocketMessage, PlayerActionRequest, UTCDateTime
from .round import RoundPhase, RoundResponse, RoundEnvelope, AdvanceRequest, AdvanceResponse
from .submission import SubmissionCreate, SubmissionResponse, SubmissionResult
from .room import (
    RoomStatus, RoomCreate, RoomJoinRequest, RoomJoinResponse,
    RoomSettingsUpdate, PlayerInfo, RoomInfo, RoomStateResponse
)
from .player import ReadyRequest, ReadyResponse

__all__ = [
    "OkResponse", "ErrorResponse", "WebSocketMessage", "PlayerActionRequest", "UTCDateTime",
    "RoundPhase", "RoundResponse", "RoundEnvelope", "AdvanceRequest", "AdvanceResponse",
    "SubmissionCreate", "SubmissionResponse", "SubmissionResult",
    "RoomStatus", "RoomCreate", "RoomJoinRequest", "RoomJoinResponse",
    "RoomSettingsUpdate", "PlayerInfo", "RoomInfo", "RoomStateResponse",
    "ReadyRequest", "ReadyResponse",
]

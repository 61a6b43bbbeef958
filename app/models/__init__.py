# Database models
from .room import Room, RoomStatus
from .player import Player
from .round import Round, RoundPhase
from .submission import Submission, Vote, Score

__all__ = [
    "Room", "RoomStatus",
    "Player",
    "Round", "RoundPhase",
    "Submission", "Vote", "Score",
]

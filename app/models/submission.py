"""
Submission, vote and score models
提交、投票与积分数据模型
"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, UniqueConstraint
from app.core.database import Base
from app.utils.clock import utcnow


class Submission(Base):
    """A player's prompt input for a round; one row per (round, player)"""

    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("round_id", "player_id", name="uq_submissions_round_player"),
    )

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    round_id = Column(String(36), ForeignKey("rounds.id"), nullable=False)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False)

    prompt_input = Column(Text, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Submission(id={self.id}, round_id={self.round_id}, player_id={self.player_id})>"


class Vote(Base):
    """Vote rows; cleared on rematch, nothing writes them yet"""

    __tablename__ = "votes"

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    round_id = Column(String(36), ForeignKey("rounds.id"), nullable=False)
    voter_id = Column(String(36), ForeignKey("players.id"), nullable=False)
    submission_id = Column(String(36), ForeignKey("submissions.id"), nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)


class Score(Base):
    """Per-player score rows; cleared on rematch, nothing writes them yet"""

    __tablename__ = "scores"

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False)
    points = Column(Integer, default=0, nullable=False)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

"""
Round model
回合数据模型
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey, Text, UniqueConstraint
from app.core.database import Base
from app.schemas.round import RoundPhase
from app.utils.clock import utcnow


class Round(Base):
    """One timed cycle inside a room; handlers always act on the highest round_number"""

    __tablename__ = "rounds"
    __table_args__ = (
        UniqueConstraint("room_id", "round_number", name="uq_rounds_room_round_number"),
    )

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)

    phase = Column(Enum(RoundPhase), default=RoundPhase.PROMPT, nullable=False)
    prompt_text = Column(Text, nullable=False)
    phase_ends_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Round(id={self.id}, room_id={self.room_id}, number={self.round_number}, phase={self.phase})>"

"""
Room model
房间数据模型
"""

from sqlalchemy import Column, String, Integer, DateTime, Boolean, Enum
from app.core.database import Base
from app.schemas.room import RoomStatus
from app.utils.clock import utcnow


class Room(Base):
    """Room model: one game session addressed by a short join code"""

    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, index=True)
    join_code = Column(String(8), unique=True, index=True, nullable=False)
    status = Column(Enum(RoomStatus), default=RoomStatus.LOBBY, nullable=False)

    # Room configuration
    max_players = Column(Integer, default=8, nullable=False)
    is_family_friendly = Column(Boolean, default=True, nullable=False)
    total_rounds = Column(Integer, default=3, nullable=False)
    round_seconds = Column(Integer, default=45, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Room(id={self.id}, join_code={self.join_code}, status={self.status})>"

"""
Player model
玩家数据模型
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects import mysql
from app.core.database import Base
from app.utils.clock import utcnow


class Player(Base):
    """Player inside a room; display names are unique per room (case-sensitive)"""

    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("room_id", "display_name", name="uq_players_room_display_name"),
    )

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    # Binary collation on MySQL keeps the uniqueness check case-sensitive
    display_name = Column(
        String(64).with_variant(mysql.VARCHAR(64, collation="utf8mb4_bin"), "mysql"),
        nullable=False,
    )

    is_host = Column(Boolean, default=False, nullable=False)
    is_ready = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    joined_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Player(id={self.id}, room_id={self.room_id}, display_name={self.display_name})>"

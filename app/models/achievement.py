"""Achievement model with one row per (user, type)"""

from sqlalchemy import JSON, BigInteger, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.config.database import Base


class Achievement(Base):
    """Unlocked milestone mapped to `achievements` table."""

    __tablename__ = "achievements"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("users.id"), nullable=False)
    type = Column(String(50), nullable=False)
    achieved_at = Column(DateTime(timezone=True), nullable=False)

    # Snapshot captured at award time, never updated afterwards.
    details = Column("metadata", JSON, nullable=False, default=dict)

    user = relationship("User", backref="achievements")

    __table_args__ = (
        UniqueConstraint("user_id", "type", name="uk_achievements_user_type"),
    )

    def __repr__(self):
        return f"<Achievement {self.user_id}:{self.type}>"

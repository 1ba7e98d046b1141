"""Per-user merged PR statistics, overwritten on every refresh"""

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import backref, relationship

from app.config.database import Base


class UserPRStats(Base):
    """Aggregated impact counters mapped to `user_pr_stats` table."""

    __tablename__ = "user_pr_stats"

    user_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("users.id"), primary_key=True)

    low_impact_prs = Column(Integer, nullable=False, default=0)
    medium_impact_prs = Column(Integer, nullable=False, default=0)
    high_impact_prs = Column(Integer, nullable=False, default=0)
    total_merged_prs = Column(Integer, nullable=False, default=0)

    last_updated = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", backref=backref("pr_stats", uselist=False))

    def __repr__(self):
        return f"<UserPRStats {self.user_id}: {self.total_merged_prs} merged>"

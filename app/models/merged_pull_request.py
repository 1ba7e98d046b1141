"""Classified merged pull requests kept for profile views"""

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.config.database import Base


class MergedPullRequest(Base):
    """Merged PR snapshot mapped to `merged_pull_requests` table.

    Rows for a user are replaced wholesale on each refresh.
    """

    __tablename__ = "merged_pull_requests"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(1000), nullable=False)
    url = Column(String(1000), nullable=False)
    repo_full_name = Column(String(500), nullable=False)  # e.g., "pallets/flask"
    stars = Column(Integer, nullable=False, default=0)
    impact = Column(String(10), nullable=False)  # VARCHAR in DB, not enum
    merged_at = Column(DateTime(timezone=True))

    user = relationship("User", backref="merged_pull_requests")

    def __repr__(self):
        return f"<MergedPullRequest {self.repo_full_name}: {self.title[:50]}>"

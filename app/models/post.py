"""Short status posts shown in the community feed"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from app.config.database import Base

POST_MAX_LENGTH = 500


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Post(Base):
    """Feed post mapped to `posts` table."""

    __tablename__ = "posts"
    __table_args__ = (
        Index("ix_posts_user_created", "user_id", "created_at"),
    )

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("users.id"), nullable=False)

    content = Column(String(POST_MAX_LENGTH), nullable=False)

    # Engagement counters, not written by the feed itself yet
    likes = Column(Integer, nullable=False, default=0)
    comments = Column(Integer, nullable=False, default=0)
    shares = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    user = relationship("User", backref="posts")

    def __repr__(self):
        return f"<Post {self.id} by {self.user_id}>"

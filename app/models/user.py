"""User model for developers tracked on the leaderboard"""

from sqlalchemy import Column, BigInteger, Integer, String, Boolean, DateTime
from datetime import UTC, datetime
from app.config.database import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class User(Base):
    """
    Developer account linked to a GitHub login

    The GitHub access token is stored for the PR source and must never be
    logged or returned by read views.
    """
    __tablename__ = "users"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    # Identity
    name = Column(String(200), nullable=False)
    username = Column(String(100), nullable=False, unique=True, index=True)  # GitHub login, lowercase
    email = Column(String(320), nullable=False, unique=True)
    avatar_url = Column(String(1000))
    github_token = Column(String(500))
    is_verified = Column(Boolean, nullable=False, default=False)

    # Profile, editable by the user
    bio = Column(String(1000))
    location = Column(String(200))
    company = Column(String(200))
    website = Column(String(500))
    github_url = Column(String(500))

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<User {self.username}>"

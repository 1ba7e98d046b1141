"""Community feed: post validation, pagination and storage."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
import logging
import math
from typing import Any, Optional

from sqlalchemy import func, select

from app.models.post import POST_MAX_LENGTH, Post
from app.models.user import User
from app.services.mergeflow.errors import InvalidInputError

logger = logging.getLogger(__name__)

FEED_PAGE_SIZE = 20
USER_FEED_PAGE_SIZE = 10
PLACEHOLDER_AVATAR = "/placeholder.svg"


def clean_post_content(content: Any) -> str:
    """Trimmed post text; rejects empty posts and posts over the length limit."""
    if not isinstance(content, str) or not content.strip():
        raise InvalidInputError("Post content is required")
    if len(content) > POST_MAX_LENGTH:
        raise InvalidInputError(f"Post content cannot exceed {POST_MAX_LENGTH} characters")
    return content.strip()


def _positive_int(raw: Any, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


@dataclass(frozen=True, slots=True)
class PageRequest:
    page: int
    limit: int

    @classmethod
    def parse(cls, page: Any = None, limit: Any = None, *, default_limit: int = FEED_PAGE_SIZE) -> "PageRequest":
        """Missing, non-numeric or non-positive values fall back to the defaults."""
        return cls(page=_positive_int(page, 1), limit=_positive_int(limit, default_limit))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def pagination(self, total: int) -> dict[str, Any]:
        total_pages = math.ceil(total / self.limit)
        return {
            "currentPage": self.page,
            "totalPages": total_pages,
            "totalPosts": total,
            "hasNext": self.page < total_pages,
            "hasPrev": self.page > 1,
        }


def post_to_dict(post: Post, author: User) -> dict[str, Any]:
    created_at = post.created_at
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    return {
        "id": str(post.id),
        "userId": str(post.user_id),
        "content": post.content,
        "createdAt": created_at.isoformat() if created_at else None,
        "likes": post.likes or 0,
        "comments": post.comments or 0,
        "shares": post.shares or 0,
        "user": {
            "name": author.name,
            "avatar": author.avatar_url or PLACEHOLDER_AVATAR,
            "username": author.username,
        },
    }


class SQLAlchemyPostStore:
    """Reads and writes feed posts; every listing is newest first."""

    def __init__(self, session: Any) -> None:
        self._session = session

    def add(self, user_id: Any, content: str, *, now: Optional[datetime] = None) -> Post:
        post = Post(
            user_id=user_id,
            content=content,
            likes=0,
            comments=0,
            shares=0,
            created_at=now or datetime.now(UTC),
        )
        self._session.add(post)
        self._session.flush()
        return post

    def page(self, request: PageRequest, *, user_id: Any = None) -> tuple[list[tuple[Post, User]], int]:
        """One page of (post, author) rows plus the total matching post count."""
        stmt = select(Post, User).join(User, User.id == Post.user_id)
        count_stmt = select(func.count(Post.id))
        if user_id is not None:
            stmt = stmt.where(Post.user_id == user_id)
            count_stmt = count_stmt.where(Post.user_id == user_id)

        stmt = stmt.order_by(Post.created_at.desc(), Post.id.desc()).offset(request.offset).limit(request.limit)
        rows = [(post, author) for post, author in self._session.execute(stmt).all()]
        total = int(self._session.execute(count_stmt).scalar() or 0)
        return rows, total

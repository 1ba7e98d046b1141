"""Database models"""

from app.models.achievement import Achievement
from app.models.merged_pull_request import MergedPullRequest
from app.models.post import Post
from app.models.user import User
from app.models.user_pr_stats import UserPRStats

__all__ = [
    "Achievement",
    "MergedPullRequest",
    "Post",
    "User",
    "UserPRStats",
]

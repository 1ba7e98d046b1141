"""Score calculation and stable leaderboard ranking"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Optional, Sequence

from app.services.mergeflow.stats_aggregator import UserStats

logger = logging.getLogger(__name__)

HIGH_IMPACT_POINTS = 10
MEDIUM_IMPACT_POINTS = 5
LOW_IMPACT_POINTS = 2


@dataclass(frozen=True, slots=True)
class UserStanding:
    """A user as supplied by the user directory, in its natural order."""

    user_id: Any
    username: str
    name: str = ""
    avatar_url: Optional[str] = None
    is_verified: bool = False
    stats: Optional[UserStats] = None


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    user_id: Any
    username: str
    name: str
    avatar_url: Optional[str]
    is_verified: bool
    score: int
    rank: int
    stats: UserStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": str(self.user_id),
            "username": self.username,
            "name": self.name,
            "avatar": self.avatar_url,
            "isVerified": self.is_verified,
            "score": self.score,
            "rank": self.rank,
            "prsCount": self.stats.total_merged_prs,
            "highImpactPRs": self.stats.high_impact_prs,
            "mediumImpactPRs": self.stats.medium_impact_prs,
            "lowImpactPRs": self.stats.low_impact_prs,
            "lastUpdated": self.stats.last_updated.isoformat() if self.stats.last_updated else None,
        }


def calculate_score(stats: Optional[UserStats]) -> int:
    """
    Weighted impact score

    High impact PRs count 10, medium 5, low 2. Users without stats score 0.
    """
    if stats is None:
        return 0
    return (
        stats.high_impact_prs * HIGH_IMPACT_POINTS
        + stats.medium_impact_prs * MEDIUM_IMPACT_POINTS
        + stats.low_impact_prs * LOW_IMPACT_POINTS
    )


def compute_leaderboard(standings: Sequence[UserStanding]) -> list[LeaderboardEntry]:
    """
    Rank every user by score

    The sort is stable, so equal scores keep their input order and receive
    distinct consecutive ranks (1, 2, 3, ...).

    Args:
        standings: Users in the directory's natural order

    Returns:
        Entries ordered by rank
    """
    scored = [(standing, calculate_score(standing.stats)) for standing in standings]
    scored.sort(key=lambda item: item[1], reverse=True)

    entries = [
        LeaderboardEntry(
            user_id=standing.user_id,
            username=standing.username,
            name=standing.name,
            avatar_url=standing.avatar_url,
            is_verified=standing.is_verified,
            score=score,
            rank=index,
            stats=standing.stats or UserStats.empty(),
        )
        for index, (standing, score) in enumerate(scored, start=1)
    ]

    logger.debug(f"Computed leaderboard for {len(entries)} users")
    return entries


def find_rank(leaderboard: Sequence[LeaderboardEntry], username: str) -> int:
    """Rank of a user on the board; users not on it rank just after the last entry."""
    wanted = (username or "").casefold()
    for entry in leaderboard:
        if entry.username.casefold() == wanted:
            return entry.rank
    return len(leaderboard) + 1

"""Classify a user's merged PRs and fold them into impact counters."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime
import logging
from typing import Iterable, Optional

from app.services.mergeflow.impact_classifier import ImpactTier, RepositorySnapshot, classify_impact

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PullRequestRef:
    """Merged pull request as returned by the PR source, before classification."""

    title: str
    url: str
    merged_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class PullRequestRecord:
    """Immutable snapshot of a classified merged PR."""

    title: str
    url: str
    repo_full_name: str
    stars: int
    private: bool
    owner_login: str
    merged_at: Optional[datetime]
    impact: ImpactTier


@dataclass(frozen=True, slots=True)
class UserStats:
    """Per-user impact counters; `total` always equals low + medium + high."""

    low_impact_prs: int
    medium_impact_prs: int
    high_impact_prs: int
    total_merged_prs: int
    last_updated: Optional[datetime] = None

    @classmethod
    def from_counts(
        cls,
        *,
        low: int = 0,
        medium: int = 0,
        high: int = 0,
        last_updated: Optional[datetime] = None,
    ) -> "UserStats":
        return cls(
            low_impact_prs=low,
            medium_impact_prs=medium,
            high_impact_prs=high,
            total_merged_prs=low + medium + high,
            last_updated=last_updated,
        )

    @classmethod
    def empty(cls) -> "UserStats":
        return cls.from_counts()

    def count_for(self, tier: ImpactTier) -> int:
        return {
            ImpactTier.LOW: self.low_impact_prs,
            ImpactTier.MEDIUM: self.medium_impact_prs,
            ImpactTier.HIGH: self.high_impact_prs,
        }[tier]


PullRequestPair = tuple[PullRequestRef, RepositorySnapshot]


def classify_pull_requests(user_login: str, pairs: Iterable[PullRequestPair]) -> list[PullRequestRecord]:
    """Attach an impact tier to every counted PR, dropping excluded ones."""

    records: list[PullRequestRecord] = []
    skipped = 0
    for pull_request, repository in pairs:
        impact = classify_impact(repository, user_login)
        if impact is None:
            skipped += 1
            continue
        records.append(
            PullRequestRecord(
                title=pull_request.title,
                url=pull_request.url,
                repo_full_name=repository.full_name,
                stars=repository.stars,
                private=repository.private,
                owner_login=repository.owner_login,
                merged_at=pull_request.merged_at,
                impact=impact,
            )
        )

    if skipped:
        logger.debug(f"Excluded {skipped} private or self-owned PRs for '{user_login}'")
    return records


def aggregate_stats(records: Iterable[PullRequestRecord], *, now: Optional[datetime] = None) -> UserStats:
    """Full recomputation over the given records; prior stats are never merged in."""

    counts = Counter(record.impact for record in records)
    return UserStats.from_counts(
        low=counts[ImpactTier.LOW],
        medium=counts[ImpactTier.MEDIUM],
        high=counts[ImpactTier.HIGH],
        last_updated=now or datetime.now(UTC),
    )


def classify_and_aggregate(
    user_login: str,
    pairs: Iterable[PullRequestPair],
    *,
    now: Optional[datetime] = None,
) -> UserStats:
    return aggregate_stats(classify_pull_requests(user_login, pairs), now=now)

"""Impact tier classification for merged pull requests."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ImpactTier(str, Enum):
    """Impact of a merged PR, derived from the target repository's stars."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Inclusive bounds: [0, 99] low, [100, 500] medium, [501, inf) high.
MEDIUM_IMPACT_MIN_STARS = 100
HIGH_IMPACT_MIN_STARS = 501


@dataclass(frozen=True, slots=True)
class RepositorySnapshot:
    """Repository metadata as seen when the PR list was fetched."""

    full_name: str
    stars: int
    private: bool
    owner_login: str


def tier_for_stars(stars: int) -> ImpactTier:
    if stars >= HIGH_IMPACT_MIN_STARS:
        return ImpactTier.HIGH
    if stars >= MEDIUM_IMPACT_MIN_STARS:
        return ImpactTier.MEDIUM
    return ImpactTier.LOW


def is_excluded(repository: RepositorySnapshot, user_login: str) -> bool:
    """Private repositories and self-owned repositories never count."""

    if repository.private:
        return True
    return (repository.owner_login or "").casefold() == (user_login or "").casefold()


def classify_impact(repository: RepositorySnapshot, user_login: str) -> ImpactTier | None:
    """Return the impact tier, or None when the repository is excluded."""

    if is_excluded(repository, user_login):
        return None
    return tier_for_stars(repository.stars)

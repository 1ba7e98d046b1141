"""Threshold-based, idempotent achievement awarding."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
import logging
from typing import Any, Iterable, Optional, Protocol, Sequence

from app.config.settings import EngineConfig
from app.services.mergeflow.errors import AchievementStorageError, InvalidInputError
from app.services.mergeflow.impact_classifier import ImpactTier
from app.services.mergeflow.stats_aggregator import UserStats

logger = logging.getLogger(__name__)


class AchievementType(str, Enum):
    """Milestones a user can unlock once."""

    LOW_PR_10 = "low_pr_10"
    MEDIUM_PR_5 = "medium_pr_5"
    HIGH_PR_1 = "high_pr_1"
    FIRST_CONTRIBUTION = "first_contribution"


@dataclass(frozen=True, slots=True)
class AchievementMetadata:
    """Counts that triggered the award, frozen at award time."""

    pr_count: int
    impact_type: str
    pr_urls: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "prCount": self.pr_count,
            "impactType": self.impact_type,
            "prUrls": list(self.pr_urls),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "AchievementMetadata":
        payload = payload or {}
        return cls(
            pr_count=int(payload.get("prCount") or 0),
            impact_type=str(payload.get("impactType") or ""),
            pr_urls=tuple(str(url) for url in payload.get("prUrls") or ()),
        )


@dataclass(frozen=True, slots=True)
class AchievementRecord:
    user_id: Any
    type: AchievementType
    achieved_at: datetime
    metadata: AchievementMetadata


@dataclass(frozen=True, slots=True)
class AchievementRule:
    type: AchievementType
    tier: ImpactTier
    threshold: int

    def is_met(self, stats: UserStats) -> bool:
        return stats.count_for(self.tier) >= self.threshold


ACHIEVEMENT_RULES: tuple[AchievementRule, ...] = (
    AchievementRule(AchievementType.LOW_PR_10, ImpactTier.LOW, 10),
    AchievementRule(AchievementType.MEDIUM_PR_5, ImpactTier.MEDIUM, 5),
    AchievementRule(AchievementType.HIGH_PR_1, ImpactTier.HIGH, 1),
)


class AchievementStore(Protocol):
    """Storage interface for achievement records."""

    def find_by_user(self, user_id: Any) -> list[AchievementRecord]: ...

    def insert_if_absent(self, achievement: AchievementRecord) -> bool: ...


def require_user_id(user_id: Any) -> None:
    if user_id is None or (isinstance(user_id, str) and not user_id.strip()):
        raise InvalidInputError("userId is required")


def newest_first(records: Iterable[AchievementRecord]) -> list[AchievementRecord]:
    return sorted(records, key=lambda record: record.achieved_at, reverse=True)


@dataclass
class AchievementEngine:
    """Compares stats against existing records and awards each type once."""

    store: AchievementStore
    config: EngineConfig = field(default_factory=EngineConfig)
    rules: Sequence[AchievementRule] = ACHIEVEMENT_RULES

    def check_and_award(
        self,
        user_id: Any,
        stats: UserStats | None,
        *,
        now: Optional[datetime] = None,
    ) -> list[AchievementRecord]:
        """Persist and return the achievements newly earned in this call.

        A record that already exists, or that a concurrent call inserted first,
        is skipped silently. Storage failures raise AchievementStorageError and
        nothing from this call is reported as granted.

        Inserts made before a failure are only undone if the caller rolls back
        the transaction the store writes into; the engine does not commit.
        """
        require_user_id(user_id)
        if stats is None:
            raise InvalidInputError("prStats are required")

        existing = {record.type for record in self._find(user_id)}
        achieved_at = now or datetime.now(UTC)

        granted: list[AchievementRecord] = []
        for rule in self.rules:
            if rule.type in existing or not rule.is_met(stats):
                continue

            record = AchievementRecord(
                user_id=user_id,
                type=rule.type,
                achieved_at=achieved_at,
                metadata=AchievementMetadata(
                    pr_count=stats.count_for(rule.tier),
                    impact_type=rule.tier.value,
                ),
            )
            if not self._insert(record):
                logger.debug(f"Achievement {rule.type.value} already held by user {user_id}")
                continue
            granted.append(record)

        if granted:
            logger.info(
                f"Awarded {len(granted)} achievements to user {user_id}: "
                f"{', '.join(record.type.value for record in granted)}"
            )
        return granted

    def is_eligible(self, user_id: Any, qualifying_types: Iterable[str] | None = None) -> bool:
        return bool(self.qualifying_achievements(user_id, qualifying_types))

    def qualifying_achievements(
        self,
        user_id: Any,
        qualifying_types: Iterable[str] | None = None,
    ) -> list[AchievementRecord]:
        require_user_id(user_id)
        wanted = {
            str(getattr(item, "value", item))
            for item in (qualifying_types if qualifying_types is not None else self.config.qualifying_achievement_types)
        }
        return newest_first(record for record in self._find(user_id) if record.type.value in wanted)

    def list_achievements(self, user_id: Any) -> list[AchievementRecord]:
        require_user_id(user_id)
        return newest_first(self._find(user_id))

    def _find(self, user_id: Any) -> list[AchievementRecord]:
        try:
            return list(self.store.find_by_user(user_id))
        except AchievementStorageError:
            raise
        except Exception as exc:
            raise AchievementStorageError(f"Failed to load achievements for user {user_id}") from exc

    def _insert(self, record: AchievementRecord) -> bool:
        try:
            return bool(self.store.insert_if_absent(record))
        except AchievementStorageError:
            raise
        except Exception as exc:
            raise AchievementStorageError(
                f"Failed to persist {record.type.value} for user {record.user_id}"
            ) from exc

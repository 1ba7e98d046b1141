from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from app.config.settings import EngineConfig
from app.services.mergeflow.achievement_engine import (
    AchievementEngine,
    AchievementMetadata,
    AchievementRecord,
    AchievementType,
)
from app.services.mergeflow.errors import AchievementStorageError, InvalidInputError
from app.services.mergeflow.stats_aggregator import UserStats

NOW = datetime(2026, 3, 1, tzinfo=UTC)


class FakeAchievementStore:
    def __init__(self) -> None:
        self.rows: dict[tuple[Any, AchievementType], AchievementRecord] = {}
        self.insert_calls = 0

    def find_by_user(self, user_id: Any) -> list[AchievementRecord]:
        return [record for (owner, _), record in self.rows.items() if owner == user_id]

    def insert_if_absent(self, achievement: AchievementRecord) -> bool:
        self.insert_calls += 1
        key = (achievement.user_id, achievement.type)
        if key in self.rows:
            return False
        self.rows[key] = achievement
        return True


class RacingStore(FakeAchievementStore):
    """Another request inserts the same achievement between read and write."""

    def find_by_user(self, user_id: Any) -> list[AchievementRecord]:
        return []


class FailingInsertStore(FakeAchievementStore):
    def __init__(self, fail_on: AchievementType) -> None:
        super().__init__()
        self.fail_on = fail_on

    def insert_if_absent(self, achievement: AchievementRecord) -> bool:
        if achievement.type == self.fail_on:
            raise ConnectionError("database unavailable")
        return super().insert_if_absent(achievement)


def test_awards_every_rule_whose_threshold_is_met() -> None:
    engine = AchievementEngine(store=FakeAchievementStore())
    stats = UserStats.from_counts(low=10, medium=5, high=1)

    granted = engine.check_and_award("user-1", stats, now=NOW)

    assert [record.type for record in granted] == [
        AchievementType.LOW_PR_10,
        AchievementType.MEDIUM_PR_5,
        AchievementType.HIGH_PR_1,
    ]
    low = granted[0]
    assert low.metadata == AchievementMetadata(pr_count=10, impact_type="low")
    assert low.achieved_at == NOW


def test_below_threshold_awards_nothing() -> None:
    engine = AchievementEngine(store=FakeAchievementStore())

    granted = engine.check_and_award("user-1", UserStats.from_counts(low=9, medium=4, high=0), now=NOW)

    assert granted == []


def test_second_call_with_same_stats_awards_nothing() -> None:
    store = FakeAchievementStore()
    engine = AchievementEngine(store=store)
    stats = UserStats.from_counts(low=12, medium=6, high=3)

    first = engine.check_and_award("user-1", stats, now=NOW)
    second = engine.check_and_award("user-1", stats, now=NOW)

    assert len(first) == 3
    assert second == []
    assert len(store.rows) == 3


def test_metadata_is_never_upgraded_after_award() -> None:
    store = FakeAchievementStore()
    engine = AchievementEngine(store=store)

    engine.check_and_award("user-1", UserStats.from_counts(low=10), now=NOW)
    later = engine.check_and_award("user-1", UserStats.from_counts(low=15), now=NOW + timedelta(days=3))

    assert later == []
    assert store.rows[("user-1", AchievementType.LOW_PR_10)].metadata.pr_count == 10


def test_concurrent_duplicate_insert_is_a_silent_no_op() -> None:
    store = RacingStore()
    store.rows[("user-1", AchievementType.HIGH_PR_1)] = AchievementRecord(
        user_id="user-1",
        type=AchievementType.HIGH_PR_1,
        achieved_at=NOW,
        metadata=AchievementMetadata(pr_count=1, impact_type="high"),
    )
    engine = AchievementEngine(store=store)

    granted = engine.check_and_award("user-1", UserStats.from_counts(high=2), now=NOW)

    assert granted == []
    assert store.insert_calls == 1


def test_storage_failure_reports_nothing_and_retry_does_not_duplicate() -> None:
    # This store has no transaction, so low_pr_10 written before the failure
    # stays. The orchestrator test covers rollback of the whole call.
    store = FailingInsertStore(fail_on=AchievementType.HIGH_PR_1)
    engine = AchievementEngine(store=store)
    stats = UserStats.from_counts(low=10, high=1)

    with pytest.raises(AchievementStorageError) as excinfo:
        engine.check_and_award("user-1", stats, now=NOW)
    assert isinstance(excinfo.value.__cause__, ConnectionError)

    store.fail_on = None  # type: ignore[assignment]
    retried = engine.check_and_award("user-1", stats, now=NOW)

    assert [record.type for record in retried] == [AchievementType.HIGH_PR_1]
    assert sorted(key[1].value for key in store.rows) == ["high_pr_1", "low_pr_10"]


@pytest.mark.parametrize("user_id", [None, "", "   "])
def test_missing_user_id_is_rejected_before_store_access(user_id: Any) -> None:
    store = FakeAchievementStore()
    engine = AchievementEngine(store=store)

    with pytest.raises(InvalidInputError):
        engine.check_and_award(user_id, UserStats.from_counts(high=1))
    assert store.insert_calls == 0


def test_missing_stats_is_rejected() -> None:
    store = FakeAchievementStore()

    with pytest.raises(InvalidInputError):
        AchievementEngine(store=store).check_and_award("user-1", None)
    assert store.rows == {}


def test_eligibility_with_only_medium_achievement() -> None:
    engine = AchievementEngine(store=FakeAchievementStore())
    engine.check_and_award("user-1", UserStats.from_counts(medium=5), now=NOW)

    assert engine.is_eligible("user-1") is True
    assert engine.is_eligible("user-2") is False


def test_eligibility_honours_explicit_and_configured_types() -> None:
    store = FakeAchievementStore()
    engine = AchievementEngine(store=store, config=EngineConfig(qualifying_achievement_types=("high_pr_1",)))
    engine.check_and_award("user-1", UserStats.from_counts(low=10), now=NOW)

    assert engine.is_eligible("user-1") is False
    assert engine.is_eligible("user-1", [AchievementType.LOW_PR_10]) is True


def test_list_achievements_is_newest_first() -> None:
    engine = AchievementEngine(store=FakeAchievementStore())
    engine.check_and_award("user-1", UserStats.from_counts(low=10), now=NOW)
    engine.check_and_award("user-1", UserStats.from_counts(low=10, high=1), now=NOW + timedelta(hours=1))

    listed = engine.list_achievements("user-1")

    assert [record.type for record in listed] == [AchievementType.HIGH_PR_1, AchievementType.LOW_PR_10]

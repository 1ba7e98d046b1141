from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import func, select

from app.models.achievement import Achievement
from app.models.merged_pull_request import MergedPullRequest
from app.services.mergeflow.achievement_engine import (
    AchievementEngine,
    AchievementMetadata,
    AchievementRecord,
    AchievementType,
)
from app.services.mergeflow.impact_classifier import ImpactTier
from app.services.mergeflow.stats_aggregator import PullRequestRecord, UserStats
from app.services.mergeflow.stores import (
    SQLAlchemyAchievementStore,
    SQLAlchemyPullRequestStore,
    SQLAlchemyStatsStore,
    SQLAlchemyUserDirectory,
)

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)


def _record(user_id: int, achievement_type: AchievementType = AchievementType.HIGH_PR_1) -> AchievementRecord:
    return AchievementRecord(
        user_id=user_id,
        type=achievement_type,
        achieved_at=NOW,
        metadata=AchievementMetadata(pr_count=1, impact_type="high"),
    )


def test_insert_if_absent_returns_false_for_duplicate_pair(db, make_user) -> None:
    user_id = make_user("octocat")
    store = SQLAlchemyAchievementStore(db)

    assert store.insert_if_absent(_record(user_id)) is True
    assert store.insert_if_absent(_record(user_id)) is False
    db.commit()

    count = db.execute(select(func.count(Achievement.id))).scalar()
    assert count == 1


def test_find_by_user_round_trips_metadata(db, make_user) -> None:
    user_id = make_user("octocat")
    other_id = make_user("hubot")
    store = SQLAlchemyAchievementStore(db)
    store.insert_if_absent(_record(user_id))
    store.insert_if_absent(_record(other_id, AchievementType.MEDIUM_PR_5))
    db.commit()

    records = store.find_by_user(user_id)

    assert len(records) == 1
    assert records[0].type == AchievementType.HIGH_PR_1
    assert records[0].metadata.pr_count == 1
    assert records[0].metadata.impact_type == "high"
    assert records[0].achieved_at == NOW


def test_engine_on_sqlite_awards_once_across_calls(db, make_user) -> None:
    user_id = make_user("octocat")
    engine = AchievementEngine(store=SQLAlchemyAchievementStore(db))
    stats = UserStats.from_counts(low=11, medium=5, high=2)

    first = engine.check_and_award(user_id, stats, now=NOW)
    db.commit()
    second = engine.check_and_award(user_id, stats, now=NOW)
    db.commit()

    assert len(first) == 3
    assert second == []
    assert db.execute(select(func.count(Achievement.id))).scalar() == 3


def test_stats_store_overwrites_previous_values(db, make_user) -> None:
    user_id = make_user("octocat")
    store = SQLAlchemyStatsStore(db)

    store.save(user_id, UserStats.from_counts(low=7, medium=3, high=2, last_updated=NOW))
    db.commit()
    store.save(user_id, UserStats.from_counts(low=1, last_updated=NOW))
    db.commit()

    saved = store.get(user_id)
    assert saved == UserStats.from_counts(low=1, last_updated=NOW)


def test_pull_request_store_replaces_whole_list(db, make_user) -> None:
    user_id = make_user("octocat")
    store = SQLAlchemyPullRequestStore(db)

    def _pr(index: int) -> PullRequestRecord:
        return PullRequestRecord(
            title=f"PR {index}",
            url=f"https://github.com/acme/repo/pull/{index}",
            repo_full_name="acme/repo",
            stars=120,
            private=False,
            owner_login="acme",
            merged_at=NOW,
            impact=ImpactTier.MEDIUM,
        )

    store.replace(user_id, [_pr(1), _pr(2), _pr(3)])
    db.commit()
    store.replace(user_id, [_pr(4)])
    db.commit()

    rows = db.execute(select(MergedPullRequest)).scalars().all()
    assert [row.title for row in rows] == ["PR 4"]
    assert rows[0].impact == "medium"


def test_user_directory_orders_by_merged_then_high_and_puts_missing_stats_last(db, make_user) -> None:
    never_fetched = make_user("newbie")
    many_low = make_user("lowrider")
    few_high = make_user("highflyer")
    tie = make_user("tiebreak")
    stats_store = SQLAlchemyStatsStore(db)
    stats_store.save(many_low, UserStats.from_counts(low=6, last_updated=NOW))
    stats_store.save(few_high, UserStats.from_counts(high=3, last_updated=NOW))
    stats_store.save(tie, UserStats.from_counts(low=2, high=1, last_updated=NOW))
    db.commit()

    standings = SQLAlchemyUserDirectory(db).all_standings()

    assert [standing.username for standing in standings] == ["lowrider", "highflyer", "tiebreak", "newbie"]
    assert standings[-1].user_id == never_fetched
    assert standings[-1].stats is None

"""Persistence adapters for stats, pull requests, achievements and users."""

from __future__ import annotations

from datetime import UTC
import logging
from typing import Any, Iterable, Protocol

from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from app.models.achievement import Achievement
from app.models.merged_pull_request import MergedPullRequest
from app.models.user import User
from app.models.user_pr_stats import UserPRStats
from app.services.mergeflow.achievement_engine import AchievementMetadata, AchievementRecord, AchievementType
from app.services.mergeflow.errors import InvalidInputError
from app.services.mergeflow.leaderboard import UserStanding
from app.services.mergeflow.stats_aggregator import PullRequestRecord, UserStats

logger = logging.getLogger(__name__)

# Profile fields a user may edit, keyed by their request name.
EDITABLE_PROFILE_FIELDS = {
    "name": "name",
    "bio": "bio",
    "location": "location",
    "company": "company",
    "website": "website",
    "githubUrl": "github_url",
}

_ON_CONFLICT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


class StatsStore(Protocol):
    """Overwrite-only storage for aggregated stats."""

    def save(self, user_id: Any, stats: UserStats) -> None: ...


class UserDirectory(Protocol):
    """Supplies every user with current stats, in ranking tie order."""

    def all_standings(self) -> list[UserStanding]: ...


def _as_utc(value):
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def stats_from_row(row: UserPRStats | None) -> UserStats | None:
    if row is None:
        return None
    return UserStats.from_counts(
        low=int(row.low_impact_prs or 0),
        medium=int(row.medium_impact_prs or 0),
        high=int(row.high_impact_prs or 0),
        last_updated=_as_utc(row.last_updated),
    )


class SQLAlchemyAchievementStore:
    """SQLAlchemy-backed store for the achievements table.

    `insert_if_absent` relies on the (user_id, type) unique constraint, so two
    concurrent inserts for the same pair produce exactly one row.
    """

    def __init__(self, session: Any) -> None:
        self._session = session

    def find_by_user(self, user_id: Any) -> list[AchievementRecord]:
        rows = self._session.execute(select(Achievement).where(Achievement.user_id == user_id)).scalars().all()
        return [self._to_record(row) for row in rows]

    def insert_if_absent(self, achievement: AchievementRecord) -> bool:
        values = {
            "user_id": achievement.user_id,
            "type": achievement.type.value,
            "achieved_at": achievement.achieved_at,
            "metadata": achievement.metadata.to_dict(),
        }
        table = Achievement.__table__
        dialect = self._session.get_bind().dialect.name
        insert_factory = _ON_CONFLICT_INSERTS.get(dialect)
        if insert_factory is not None:
            statement = insert_factory(table).values(**values).on_conflict_do_nothing(
                index_elements=["user_id", "type"]
            )
            result = self._session.execute(statement)
            return result.rowcount == 1

        try:
            with self._session.begin_nested():
                self._session.execute(insert(table).values(**values))
        except IntegrityError:
            return False
        return True

    @staticmethod
    def _to_record(row: Achievement) -> AchievementRecord:
        return AchievementRecord(
            user_id=row.user_id,
            type=AchievementType(row.type),
            achieved_at=_as_utc(row.achieved_at),
            metadata=AchievementMetadata.from_dict(row.details),
        )


class SQLAlchemyStatsStore:
    """SQLAlchemy-backed overwrite store for user_pr_stats."""

    def __init__(self, session: Any) -> None:
        self._session = session

    def get(self, user_id: Any) -> UserStats | None:
        return stats_from_row(self._session.get(UserPRStats, user_id))

    def save(self, user_id: Any, stats: UserStats) -> None:
        row = self._session.get(UserPRStats, user_id)
        if row is None:
            row = UserPRStats(user_id=user_id)
            self._session.add(row)

        row.low_impact_prs = stats.low_impact_prs
        row.medium_impact_prs = stats.medium_impact_prs
        row.high_impact_prs = stats.high_impact_prs
        row.total_merged_prs = stats.total_merged_prs
        row.last_updated = stats.last_updated


class SQLAlchemyPullRequestStore:
    """Replaces a user's stored PR list wholesale."""

    def __init__(self, session: Any) -> None:
        self._session = session

    def replace(self, user_id: Any, records: Iterable[PullRequestRecord]) -> int:
        self._session.query(MergedPullRequest).filter(MergedPullRequest.user_id == user_id).delete(
            synchronize_session=False
        )
        count = 0
        for record in records:
            self._session.add(
                MergedPullRequest(
                    user_id=user_id,
                    title=record.title,
                    url=record.url,
                    repo_full_name=record.repo_full_name,
                    stars=record.stars,
                    impact=record.impact.value,
                    merged_at=record.merged_at,
                )
            )
            count += 1
        return count

    def list_for_user(self, user_id: Any) -> list[MergedPullRequest]:
        stmt = (
            select(MergedPullRequest)
            .where(MergedPullRequest.user_id == user_id)
            .order_by(MergedPullRequest.merged_at.desc(), MergedPullRequest.id)
        )
        return list(self._session.execute(stmt).scalars().all())


class SQLAlchemyUserDirectory:
    """Reads users joined with their stats for ranking."""

    def __init__(self, session: Any) -> None:
        self._session = session

    def get_user(self, user_id: Any) -> User | None:
        return self._session.get(User, user_id)

    def find_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == (username or "").strip().lower())
        return self._session.execute(stmt).scalar_one_or_none()

    def update_profile(self, user_id: Any, changes: dict[str, Any]) -> User | None:
        """Apply whitelisted profile fields; anything else in `changes` is ignored."""
        user = self.get_user(user_id)
        if user is None:
            return None
        if "name" in changes and not str(changes["name"] or "").strip():
            raise InvalidInputError("Name cannot be empty")
        for request_name, attribute in EDITABLE_PROFILE_FIELDS.items():
            if request_name in changes:
                setattr(user, attribute, changes[request_name])
        return user

    def all_standings(self) -> list[UserStanding]:
        # Most merged PRs first, then most high-impact PRs; users without
        # stats sort after everyone else.
        stmt = (
            select(User, UserPRStats)
            .outerjoin(UserPRStats, UserPRStats.user_id == User.id)
            .order_by(
                UserPRStats.total_merged_prs.is_(None),
                UserPRStats.total_merged_prs.desc(),
                UserPRStats.high_impact_prs.desc(),
                User.id,
            )
        )
        standings: list[UserStanding] = []
        for user, stats_row in self._session.execute(stmt).all():
            standings.append(
                UserStanding(
                    user_id=user.id,
                    username=user.username,
                    name=user.name,
                    avatar_url=user.avatar_url,
                    is_verified=bool(user.is_verified),
                    stats=stats_from_row(stats_row),
                )
            )
        return standings

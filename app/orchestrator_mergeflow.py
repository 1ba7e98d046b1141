"""MergeFlow orchestrator: PR refresh, achievements, leaderboard, profiles and the post feed."""

from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Any, Callable, Optional, Sequence

from app.config.database import SessionLocal
from app.config.settings import EngineConfig, settings
from app.crawlers.github.pull_request_source import GitHubPullRequestSource
from app.models.user import User
from app.services.mergeflow.achievement_engine import AchievementEngine, AchievementRecord
from app.services.mergeflow.agent_gate import AgentGate
from app.services.mergeflow.errors import (
    AchievementNotEarnedError,
    AchievementStorageError,
    InvalidInputError,
)
from app.services.mergeflow.feed import (
    USER_FEED_PAGE_SIZE,
    PageRequest,
    SQLAlchemyPostStore,
    clean_post_content,
    post_to_dict,
)
from app.services.mergeflow.leaderboard import calculate_score, compute_leaderboard, find_rank
from app.services.mergeflow.stats_aggregator import (
    PullRequestPair,
    UserStats,
    aggregate_stats,
    classify_pull_requests,
)
from app.services.mergeflow.stores import (
    SQLAlchemyAchievementStore,
    SQLAlchemyPullRequestStore,
    SQLAlchemyStatsStore,
    SQLAlchemyUserDirectory,
)
from app.utils.redaction import sanitize_for_log, sanitize_log_extra

logger = logging.getLogger(__name__)


def achievement_to_dict(record: AchievementRecord) -> dict[str, Any]:
    return {
        "type": record.type.value,
        "achievedAt": record.achieved_at.isoformat(),
        "metadata": record.metadata.to_dict(),
    }


def stats_to_dict(stats: UserStats) -> dict[str, Any]:
    return {
        "highImpactPRs": stats.high_impact_prs,
        "mediumImpactPRs": stats.medium_impact_prs,
        "lowImpactPRs": stats.low_impact_prs,
        "totalMergedPRs": stats.total_merged_prs,
        "lastUpdated": stats.last_updated.isoformat() if stats.last_updated else None,
    }


def public_user_fields(user: User) -> dict[str, Any]:
    """Identity and profile fields safe to return; never the token or email."""
    return {
        "id": str(user.id),
        "username": user.username,
        "name": user.name,
        "avatar": user.avatar_url,
        "bio": user.bio,
        "location": user.location,
        "company": user.company,
        "website": user.website,
        "githubUrl": user.github_url or f"https://github.com/{user.username}",
        "isVerified": bool(user.is_verified),
    }


class MergeFlowOrchestrator:
    """Coordinates the PR source, the engine components and the stores.

    Each public operation opens its own session and reports its outcome as a
    dict with a `success` flag instead of raising.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Any] = SessionLocal,
        source_factory: Callable[..., Any] = GitHubPullRequestSource,
        config: EngineConfig | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._source_factory = source_factory
        self._config = config or settings.engine_config()

    def _engine(self, db: Any) -> AchievementEngine:
        return AchievementEngine(store=SQLAlchemyAchievementStore(db), config=self._config)

    async def refresh_user(
        self,
        user_id: Any,
        *,
        pairs: Sequence[PullRequestPair] | None = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Recompute a user's stats from their full merged PR set, then award achievements.

        Stats and the PR list are committed before achievements are checked, so
        an achievement storage failure leaves the refreshed stats in place and
        reports no achievements for this call.
        """
        if user_id is None or (isinstance(user_id, str) and not user_id.strip()):
            return {"success": False, "error": "userId is required", "stats": None, "achievements": []}

        db = self._session_factory()
        try:
            directory = SQLAlchemyUserDirectory(db)
            user = directory.get_user(user_id)
            if user is None:
                return {"success": False, "error": "User not found", "stats": None, "achievements": []}

            if pairs is None:
                if not user.github_token:
                    return {
                        "success": False,
                        "error": "GitHub token not found. Please reconnect GitHub.",
                        "stats": None,
                        "achievements": [],
                    }
                try:
                    async with self._source_factory(user.github_token, config=self._config) as source:
                        fetched = await source.fetch_merged_pull_requests(user.username)
                except Exception as exc:
                    error = sanitize_for_log(str(exc) or exc.__class__.__name__, key="error")
                    logger.exception(
                        "Merged PR source raised",
                        extra=sanitize_log_extra(user_id=user_id, error=error),
                    )
                    return {"success": False, "error": error, "stats": None, "achievements": []}
                if fetched.is_failed:
                    error = sanitize_for_log(fetched.error or "PR fetch failed", key="error")
                    logger.warning(
                        "Merged PR fetch failed",
                        extra=sanitize_log_extra(user_id=user_id, error=error),
                    )
                    return {"success": False, "error": error, "stats": None, "achievements": []}
                pairs = fetched.data or []

            records = classify_pull_requests(user.username, pairs)
            stats = aggregate_stats(records, now=now or datetime.now(UTC))
            try:
                SQLAlchemyStatsStore(db).save(user.id, stats)
                SQLAlchemyPullRequestStore(db).replace(user.id, records)
                db.commit()
            except Exception as exc:
                db.rollback()
                error = sanitize_for_log(str(exc), key="error")
                logger.exception(
                    "Saving refreshed stats failed",
                    extra=sanitize_log_extra(user_id=user_id, error=error),
                )
                return {"success": False, "error": error, "stats": None, "achievements": []}

            logger.info(
                "User stats refreshed",
                extra=sanitize_log_extra(user_id=user_id, counted_prs=len(records), input_prs=len(pairs)),
            )

            result = self._award(db, user.id, stats, now=now)
            result["stats"] = stats_to_dict(stats)
            result["prs"] = [
                {
                    "title": record.title,
                    "url": record.url,
                    "repo": record.repo_full_name,
                    "stars": record.stars,
                    "impact": record.impact.value,
                    "mergedAt": record.merged_at.isoformat() if record.merged_at else None,
                }
                for record in records
            ]
            return result
        finally:
            db.close()

    def award_achievements(self, user_id: Any, stats: UserStats | None) -> dict[str, Any]:
        """Check and award against a caller-supplied stats snapshot."""
        db = self._session_factory()
        try:
            return self._award(db, user_id, stats)
        finally:
            db.close()

    def _award(
        self,
        db: Any,
        user_id: Any,
        stats: UserStats | None,
        *,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        try:
            granted = self._engine(db).check_and_award(user_id, stats, now=now)
            db.commit()
        except InvalidInputError as exc:
            return {"success": False, "error": str(exc), "achievements": []}
        except AchievementStorageError as exc:
            db.rollback()
            error = sanitize_for_log(str(exc), key="error")
            logger.warning(
                "Achievement check failed",
                extra=sanitize_log_extra(user_id=user_id, error=error),
            )
            return {"success": False, "error": error, "achievements": []}
        except Exception as exc:
            # Commit failures surface here; nothing from this call is reported.
            db.rollback()
            error = sanitize_for_log(str(exc), key="error")
            logger.exception(
                "Achievement commit failed",
                extra=sanitize_log_extra(user_id=user_id, error=error),
            )
            return {"success": False, "error": error, "achievements": []}

        return {
            "success": True,
            "achievements": [achievement_to_dict(record) for record in granted],
            "message": f"Checked and awarded {len(granted)} achievements",
        }

    def get_user_achievements(self, user_id: Any) -> dict[str, Any]:
        db = self._session_factory()
        try:
            records = self._engine(db).list_achievements(user_id)
            return {
                "success": True,
                "achievements": [achievement_to_dict(record) for record in records],
                "total": len(records),
            }
        except (InvalidInputError, AchievementStorageError) as exc:
            return {"success": False, "error": sanitize_for_log(str(exc), key="error"), "achievements": []}
        finally:
            db.close()

    def check_agent_eligibility(self, user_id: Any) -> dict[str, Any]:
        db = self._session_factory()
        try:
            result = AgentGate(self._engine(db), self._config).check_eligibility(user_id)
            return {
                "success": True,
                "canRun": result.can_run,
                "eligibleAchievements": [achievement_to_dict(record) for record in result.eligible_achievements],
                "message": result.message,
            }
        except (InvalidInputError, AchievementStorageError) as exc:
            return {"success": False, "error": sanitize_for_log(str(exc), key="error"), "canRun": False}
        finally:
            db.close()

    def authorize_agent(
        self,
        user_id: Any,
        *,
        achievement_type: Optional[str] = None,
        demo: bool = False,
        username: Optional[str] = None,
    ) -> dict[str, Any]:
        db = self._session_factory()
        try:
            dispatch = AgentGate(self._engine(db), self._config).authorize(
                user_id,
                achievement_type=achievement_type,
                demo=demo,
                username=username,
            )
            return {
                "success": True,
                "endpoint": dispatch.endpoint,
                "timeoutSeconds": dispatch.timeout_seconds,
                "payload": dispatch.payload,
            }
        except (InvalidInputError, AchievementNotEarnedError, AchievementStorageError) as exc:
            return {"success": False, "error": sanitize_for_log(str(exc), key="error")}
        finally:
            db.close()

    def get_leaderboard(self) -> dict[str, Any]:
        db = self._session_factory()
        try:
            entries = compute_leaderboard(SQLAlchemyUserDirectory(db).all_standings())
            logger.info(f"Leaderboard prepared for {len(entries)} users")
            return {
                "success": True,
                "users": [entry.to_dict() for entry in entries],
                "total": len(entries),
                "lastUpdated": datetime.now(UTC).isoformat(),
            }
        except Exception as exc:
            error = sanitize_for_log(str(exc), key="error")
            logger.exception("Leaderboard computation failed", extra=sanitize_log_extra(error=error))
            return {"success": False, "error": error, "users": [], "total": 0}
        finally:
            db.close()

    def get_user_profile(self, username: str) -> dict[str, Any]:
        if not username or not username.strip():
            return {"success": False, "error": "Username is required"}

        db = self._session_factory()
        try:
            directory = SQLAlchemyUserDirectory(db)
            user = directory.find_by_username(username)
            if user is None:
                return {"success": False, "error": "User not found"}

            stats = SQLAlchemyStatsStore(db).get(user.id) or UserStats.empty()
            leaderboard = compute_leaderboard(directory.all_standings())
            prs = SQLAlchemyPullRequestStore(db).list_for_user(user.id)

            return {
                "success": True,
                "user": {
                    **public_user_fields(user),
                    "score": calculate_score(stats),
                    "rank": find_rank(leaderboard, user.username),
                    "highImpactPRs": stats.high_impact_prs,
                    "contributions": stats.total_merged_prs,
                    "stats": stats_to_dict(stats),
                    "prs": [
                        {
                            "title": pr.title,
                            "url": pr.url,
                            "repo": pr.repo_full_name,
                            "stars": pr.stars,
                            "impact": pr.impact,
                            "mergedAt": pr.merged_at.isoformat() if pr.merged_at else None,
                        }
                        for pr in prs
                    ],
                },
            }
        except Exception as exc:
            error = sanitize_for_log(str(exc), key="error")
            logger.exception("Profile lookup failed", extra=sanitize_log_extra(username=username, error=error))
            return {"success": False, "error": error}
        finally:
            db.close()

    def update_user_profile(self, user_id: Any, changes: dict[str, Any] | None) -> dict[str, Any]:
        """Update the editable profile fields; identity, token and stats are not writable here."""
        db = self._session_factory()
        try:
            user = SQLAlchemyUserDirectory(db).update_profile(user_id, changes or {})
            if user is None:
                return {"success": False, "error": "User not found"}
            db.commit()
            return {"success": True, "message": "Profile updated successfully", "user": public_user_fields(user)}
        except InvalidInputError as exc:
            db.rollback()
            return {"success": False, "error": str(exc)}
        except Exception as exc:
            db.rollback()
            error = sanitize_for_log(str(exc), key="error")
            logger.exception("Profile update failed", extra=sanitize_log_extra(user_id=user_id, error=error))
            return {"success": False, "error": error}
        finally:
            db.close()

    def create_post(self, user_id: Any, content: Any, *, now: Optional[datetime] = None) -> dict[str, Any]:
        db = self._session_factory()
        try:
            text = clean_post_content(content)
            author = SQLAlchemyUserDirectory(db).get_user(user_id) if user_id is not None else None
            if author is None:
                return {"success": False, "error": "User information is required"}

            post = SQLAlchemyPostStore(db).add(author.id, text, now=now)
            db.commit()
            logger.info(f"Post {post.id} created by user {author.id}")
            return {"success": True, "post": post_to_dict(post, author)}
        except InvalidInputError as exc:
            return {"success": False, "error": str(exc)}
        except Exception as exc:
            db.rollback()
            error = sanitize_for_log(str(exc), key="error")
            logger.exception("Post creation failed", extra=sanitize_log_extra(user_id=user_id, error=error))
            return {"success": False, "error": error}
        finally:
            db.close()

    def list_posts(self, *, page: Any = None, limit: Any = None) -> dict[str, Any]:
        return self._feed_page(PageRequest.parse(page, limit))

    def list_user_posts(self, user_id: Any, *, page: Any = None, limit: Any = None) -> dict[str, Any]:
        if user_id is None or (isinstance(user_id, str) and not user_id.strip()):
            return {"success": False, "error": "userId is required", "posts": []}
        return self._feed_page(PageRequest.parse(page, limit, default_limit=USER_FEED_PAGE_SIZE), user_id=user_id)

    def _feed_page(self, request: PageRequest, *, user_id: Any = None) -> dict[str, Any]:
        db = self._session_factory()
        try:
            rows, total = SQLAlchemyPostStore(db).page(request, user_id=user_id)
            return {
                "success": True,
                "posts": [post_to_dict(post, author) for post, author in rows],
                "pagination": request.pagination(total),
            }
        except Exception as exc:
            error = sanitize_for_log(str(exc), key="error")
            logger.exception("Feed query failed", extra=sanitize_log_extra(user_id=user_id, error=error))
            return {"success": False, "error": error, "posts": []}
        finally:
            db.close()

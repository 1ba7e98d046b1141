"""Eligibility gate in front of the downstream automation agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
import logging
from typing import Any, Optional

from app.config.settings import EngineConfig
from app.services.mergeflow.achievement_engine import AchievementEngine, AchievementRecord, require_user_id
from app.services.mergeflow.errors import AchievementNotEarnedError, InvalidInputError

logger = logging.getLogger(__name__)

DEMO_ACHIEVEMENT = "demo_achievement"
DEMO_USERNAME = "demo_user"


@dataclass(slots=True)
class EligibilityResult:
    can_run: bool
    eligible_achievements: list[AchievementRecord] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.can_run:
            return "User is eligible to run agent"
        return "User is not eligible to run agent"


@dataclass(frozen=True, slots=True)
class AgentDispatch:
    """Everything the caller needs to hand the run to the automation system."""

    endpoint: Optional[str]
    timeout_seconds: float
    payload: dict[str, Any]


class AgentGate:
    """Checks achievements before an agent run is allowed."""

    def __init__(self, engine: AchievementEngine, config: EngineConfig | None = None) -> None:
        self._engine = engine
        self._config = config or engine.config

    def check_eligibility(self, user_id: Any) -> EligibilityResult:
        achievements = self._engine.qualifying_achievements(user_id, self._config.qualifying_achievement_types)
        result = EligibilityResult(can_run=bool(achievements), eligible_achievements=achievements)
        logger.info(
            f"Agent eligibility for user {user_id}: "
            f"{'ELIGIBLE' if result.can_run else 'NOT ELIGIBLE'} ({len(achievements)} achievements)"
        )
        return result

    def authorize(
        self,
        user_id: Any,
        *,
        achievement_type: Optional[str] = None,
        demo: bool = False,
        username: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AgentDispatch:
        """Build the agent hand-off, refusing users who lack the named achievement.

        Demo runs skip the achievement check entirely.
        """
        require_user_id(user_id)

        if not demo:
            if not achievement_type:
                raise InvalidInputError("achievementType is required in non-demo mode")
            held = self._engine.qualifying_achievements(user_id, [achievement_type])
            if not held:
                logger.warning(f"Agent run refused for user {user_id}: {achievement_type} not earned")
                raise AchievementNotEarnedError("Achievement not found or not earned")

        timestamp = (now or datetime.now(UTC)).isoformat()
        return AgentDispatch(
            endpoint=self._config.webhook_endpoint,
            timeout_seconds=self._config.request_timeout,
            payload={
                "userId": str(user_id),
                "achievementType": achievement_type or DEMO_ACHIEVEMENT,
                "demo": bool(demo),
                "timestamp": timestamp,
                "userData": {"username": username or DEMO_USERNAME},
            },
        )

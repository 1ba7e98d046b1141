"""Application settings and configuration"""

from dataclasses import dataclass
from pydantic_settings import BaseSettings
from typing import Optional


DEFAULT_QUALIFYING_ACHIEVEMENTS = ("low_pr_10", "high_pr_1", "medium_pr_5")


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Explicit configuration handed to engine components at construction."""

    webhook_endpoint: Optional[str] = None
    request_timeout: float = 10.0
    qualifying_achievement_types: tuple[str, ...] = DEFAULT_QUALIFYING_ACHIEVEMENTS


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "MergeFlow Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./mergeflow.db"

    # GitHub API
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_SEARCH_PAGE_SIZE: int = 50
    USER_AGENT: str = "MergeFlow-App"

    # Downstream automation
    AGENT_WEBHOOK_URL: Optional[str] = None
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Achievements that unlock the automation agent (comma separated)
    QUALIFYING_ACHIEVEMENT_TYPES: str = ",".join(DEFAULT_QUALIFYING_ACHIEVEMENTS)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env

    def engine_config(self) -> EngineConfig:
        qualifying = tuple(
            token.strip()
            for token in self.QUALIFYING_ACHIEVEMENT_TYPES.split(",")
            if token.strip()
        )
        return EngineConfig(
            webhook_endpoint=(self.AGENT_WEBHOOK_URL or "").strip() or None,
            request_timeout=float(self.REQUEST_TIMEOUT_SECONDS),
            qualifying_achievement_types=qualifying or DEFAULT_QUALIFYING_ACHIEVEMENTS,
        )


settings = Settings()

"""httpx-backed source of a user's merged pull requests."""

from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Any, Optional

import httpx

from app.config.settings import EngineConfig, settings
from app.crawlers.github.contracts import FetchResult
from app.services.mergeflow.impact_classifier import RepositorySnapshot
from app.services.mergeflow.stats_aggregator import PullRequestPair, PullRequestRef
from app.utils.redaction import sanitize_for_log, sanitize_log_extra

logger = logging.getLogger(__name__)

SearchItems = FetchResult[list[dict[str, Any]]]
RepoPayload = FetchResult[dict[str, Any]]
PullRequestPairs = FetchResult[list[PullRequestPair]]


def parse_github_datetime(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str) or not raw.strip():
        return None

    text = raw.strip().replace("Z", "+00:00")
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        return None

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def repository_from_payload(payload: dict[str, Any]) -> RepositorySnapshot:
    owner = payload.get("owner") if isinstance(payload.get("owner"), dict) else {}
    return RepositorySnapshot(
        full_name=str(payload.get("full_name") or ""),
        stars=int(payload.get("stargazers_count") or 0),
        private=bool(payload.get("private") or False),
        owner_login=str(owner.get("login") or ""),
    )


class GitHubPullRequestSource:
    """Fetches merged PRs authored by a user plus each PR's repository.

    One search page is requested; paging and rate-limit handling are left to
    the surrounding infrastructure. A repository lookup failure drops only
    that PR.
    """

    def __init__(
        self,
        token: Optional[str],
        *,
        config: EngineConfig | None = None,
        base_url: str = settings.GITHUB_API_URL,
        page_size: int = settings.GITHUB_SEARCH_PAGE_SIZE,
        user_agent: str = settings.USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        config = config or settings.engine_config()
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": user_agent,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._page_size = page_size
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubPullRequestSource":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, url: str, *, params: dict[str, Any] | None = None) -> FetchResult[Any]:
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            error = sanitize_for_log(str(exc) or exc.__class__.__name__)
            logger.warning(
                "GitHub request failed",
                extra=sanitize_log_extra(url=url, params=params or {}, error=error),
            )
            return FetchResult.failed(error=error)

        if response.status_code >= 400:
            error = f"HTTP {response.status_code}"
            logger.warning(
                "GitHub request failed",
                extra=sanitize_log_extra(url=url, params=params or {}, status_code=response.status_code),
            )
            return FetchResult.failed(status_code=response.status_code, error=error)

        try:
            data = response.json()
        except ValueError:
            logger.warning(
                "GitHub response was not valid JSON",
                extra=sanitize_log_extra(url=url, status_code=response.status_code),
            )
            return FetchResult.failed(status_code=response.status_code, error="invalid JSON")

        return FetchResult.from_payload(data, status_code=response.status_code)

    async def search_merged_pull_requests(self, username: str) -> SearchItems:
        result = await self._request(
            "/search/issues",
            params={"q": f"is:pr author:{username} is:merged", "per_page": self._page_size},
        )
        if result.is_failed:
            return FetchResult.failed(status_code=result.status_code, error=result.error, data=[])

        items = result.data.get("items") if isinstance(result.data, dict) else None
        items = [item for item in items or [] if isinstance(item, dict)]
        return FetchResult.from_payload(items, status_code=result.status_code)

    async def get_repo(self, repository_url: str) -> RepoPayload:
        return await self._request(repository_url)

    async def fetch_merged_pull_requests(self, username: str) -> PullRequestPairs:
        """Return (pull request, repository) pairs ready for classification."""
        search = await self.search_merged_pull_requests(username)
        if search.is_failed:
            return FetchResult.failed(status_code=search.status_code, error=search.error, data=[])

        logger.info(f"Found {len(search.data or [])} merged PRs for '{username}'")

        repositories: dict[str, RepositorySnapshot] = {}
        pairs: list[PullRequestPair] = []
        for item in search.data or []:
            repository_url = str(item.get("repository_url") or "")
            if not repository_url:
                continue

            repository = repositories.get(repository_url)
            if repository is None:
                response = await self.get_repo(repository_url)
                if not response.is_ok or not isinstance(response.data, dict):
                    logger.warning(
                        "Repository fetch failed, skipping PR",
                        extra=sanitize_log_extra(repo=repository_url, error=response.error),
                    )
                    continue
                repository = repository_from_payload(response.data)
                repositories[repository_url] = repository

            pairs.append(
                (
                    PullRequestRef(
                        title=str(item.get("title") or ""),
                        url=str(item.get("html_url") or ""),
                        merged_at=parse_github_datetime(item.get("closed_at")),
                    ),
                    repository,
                )
            )

        return FetchResult.from_payload(pairs, status_code=search.status_code)

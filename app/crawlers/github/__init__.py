"""GitHub pull request source primitives."""

from app.crawlers.github.contracts import FetchResult, FetchState
from app.crawlers.github.pull_request_source import GitHubPullRequestSource

__all__ = [
    "GitHubPullRequestSource",
    "FetchState",
    "FetchResult",
]

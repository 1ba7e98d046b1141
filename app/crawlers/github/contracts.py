"""Outcome wrapper for GitHub API calls made by the PR source."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar


T = TypeVar("T")


class FetchState(str, Enum):
    OK = "ok"
    EMPTY = "empty"  # request succeeded, nothing to report
    FAILED = "failed"


@dataclass(slots=True)
class FetchResult(Generic[T]):
    """A response body, or the reason there is none.

    A failed search or repository lookup is data here, not an exception, so
    callers can skip one PR or report one user without aborting a batch.
    """

    state: FetchState
    data: Optional[T] = None
    status_code: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, *, status_code: Optional[int] = None, error: Optional[str] = None, data: Optional[T] = None):
        return cls(state=FetchState.FAILED, data=data, status_code=status_code, error=error)

    @classmethod
    def from_payload(cls, data: Optional[T], *, status_code: Optional[int] = None):
        state = FetchState.OK if data else FetchState.EMPTY
        return cls(state=state, data=data, status_code=status_code)

    @property
    def is_ok(self) -> bool:
        return self.state == FetchState.OK

    @property
    def is_empty(self) -> bool:
        return self.state == FetchState.EMPTY

    @property
    def is_failed(self) -> bool:
        return self.state == FetchState.FAILED

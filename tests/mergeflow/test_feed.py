from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from app.config.settings import EngineConfig
from app.orchestrator_mergeflow import MergeFlowOrchestrator
from app.services.mergeflow.errors import InvalidInputError
from app.services.mergeflow.feed import PageRequest, clean_post_content

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _orchestrator(session_factory) -> MergeFlowOrchestrator:
    return MergeFlowOrchestrator(session_factory=session_factory, config=EngineConfig())


def test_post_content_is_trimmed_and_length_checked() -> None:
    assert clean_post_content("  merged my first PR!  ") == "merged my first PR!"
    assert clean_post_content("x" * 500) == "x" * 500

    for bad in (None, "", "   ", "x" * 501):
        with pytest.raises(InvalidInputError):
            clean_post_content(bad)


@pytest.mark.parametrize(
    ("page", "limit", "expected"),
    [
        (None, None, PageRequest(page=1, limit=20)),
        ("3", "5", PageRequest(page=3, limit=5)),
        ("abc", "0", PageRequest(page=1, limit=20)),
        (-2, -1, PageRequest(page=1, limit=20)),
    ],
)
def test_page_request_falls_back_to_defaults(page, limit, expected: PageRequest) -> None:
    assert PageRequest.parse(page, limit) == expected


def test_pagination_summary() -> None:
    request = PageRequest(page=2, limit=10)

    assert request.offset == 10
    assert request.pagination(25) == {
        "currentPage": 2,
        "totalPages": 3,
        "totalPosts": 25,
        "hasNext": True,
        "hasPrev": True,
    }
    assert PageRequest(page=1, limit=10).pagination(0)["hasNext"] is False


def test_create_post_uses_author_from_users_table(session_factory, make_user) -> None:
    user_id = make_user("octocat")

    result = _orchestrator(session_factory).create_post(user_id, "  shipped a fix to flask  ", now=NOW)

    assert result["success"] is True
    post = result["post"]
    assert post["content"] == "shipped a fix to flask"
    assert post["userId"] == str(user_id)
    assert post["createdAt"] == NOW.isoformat()
    assert (post["likes"], post["comments"], post["shares"]) == (0, 0, 0)
    assert post["user"] == {"name": "Octocat", "avatar": "/placeholder.svg", "username": "octocat"}


def test_create_post_rejects_bad_input(session_factory, make_user) -> None:
    user_id = make_user("octocat")
    orchestrator = _orchestrator(session_factory)

    assert orchestrator.create_post(user_id, "   ")["error"] == "Post content is required"
    assert orchestrator.create_post(user_id, "x" * 501)["error"] == "Post content cannot exceed 500 characters"
    assert orchestrator.create_post(None, "hello")["error"] == "User information is required"
    assert orchestrator.create_post(9999, "hello")["success"] is False
    assert orchestrator.list_posts()["pagination"]["totalPosts"] == 0


def test_feed_is_newest_first_and_paginated(session_factory, make_user) -> None:
    alice = make_user("alice")
    bob = make_user("bob")
    orchestrator = _orchestrator(session_factory)
    for minute in range(5):
        author = alice if minute % 2 == 0 else bob
        orchestrator.create_post(author, f"post {minute}", now=NOW + timedelta(minutes=minute))

    first = orchestrator.list_posts(page=1, limit=2)
    last = orchestrator.list_posts(page=3, limit=2)

    assert [post["content"] for post in first["posts"]] == ["post 4", "post 3"]
    assert first["pagination"] == {
        "currentPage": 1,
        "totalPages": 3,
        "totalPosts": 5,
        "hasNext": True,
        "hasPrev": False,
    }
    assert [post["content"] for post in last["posts"]] == ["post 0"]
    assert last["pagination"]["hasNext"] is False


def test_user_feed_only_lists_that_user(session_factory, make_user) -> None:
    alice = make_user("alice")
    bob = make_user("bob")
    orchestrator = _orchestrator(session_factory)
    orchestrator.create_post(alice, "alice one", now=NOW)
    orchestrator.create_post(bob, "bob one", now=NOW + timedelta(minutes=1))
    orchestrator.create_post(alice, "alice two", now=NOW + timedelta(minutes=2))

    result = orchestrator.list_user_posts(alice)

    assert [post["content"] for post in result["posts"]] == ["alice two", "alice one"]
    assert result["pagination"]["totalPosts"] == 2
    assert orchestrator.list_user_posts(None)["success"] is False

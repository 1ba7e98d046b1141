"""Batch refresh of merged PR stats and achievements."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Sequence

from sqlalchemy import select

from app.config.database import SessionLocal
from app.models.user import User
from app.orchestrator_mergeflow import MergeFlowOrchestrator
from app.utils.logger import setup_logger

logger = logging.getLogger(__name__)


def parse_user_ids(raw: str | Sequence[Any] | None) -> list[int]:
    """Accept "1,2,3" or a sequence; invalid tokens are dropped."""
    if raw is None:
        return []
    tokens = raw.split(",") if isinstance(raw, str) else list(raw)
    user_ids: list[int] = []
    for token in tokens:
        try:
            user_id = int(str(token).strip())
        except ValueError:
            continue
        if user_id not in user_ids:
            user_ids.append(user_id)
    return user_ids


def connected_user_ids(session_factory=SessionLocal) -> list[int]:
    db = session_factory()
    try:
        stmt = select(User.id).where(User.github_token.isnot(None)).order_by(User.id)
        return list(db.execute(stmt).scalars().all())
    finally:
        db.close()


async def run_refresh(
    *,
    orchestrator: MergeFlowOrchestrator | None = None,
    user_ids: str | Sequence[Any] | None = None,
) -> dict[str, Any]:
    """Refresh users one at a time; a failure for one user never stops the batch."""
    orchestrator = orchestrator or MergeFlowOrchestrator()
    selected = parse_user_ids(user_ids) if user_ids else connected_user_ids()

    summary: dict[str, Any] = {"users": len(selected), "refreshed": 0, "failed": 0, "achievements": 0, "errors": []}
    for user_id in selected:
        result = await orchestrator.refresh_user(user_id)
        if result.get("success"):
            summary["refreshed"] += 1
        else:
            summary["failed"] += 1
            summary["errors"].append(f"{user_id}: {result.get('error')}")
        summary["achievements"] += len(result.get("achievements") or [])

    summary["success"] = summary["failed"] == 0
    logger.info(
        f"Refresh finished: {summary['refreshed']}/{summary['users']} users, "
        f"{summary['achievements']} new achievements"
    )
    return summary


def main():
    """CLI entry point: python -m app.jobs.mergeflow_sync [1,2,3]"""
    setup_logger("app")
    user_ids = sys.argv[1] if len(sys.argv) > 1 else None
    summary = asyncio.run(run_refresh(user_ids=user_ids))
    sys.exit(0 if summary["success"] else 1)


if __name__ == "__main__":
    main()

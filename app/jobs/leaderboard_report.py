"""
Leaderboard report for the MergeFlow engine.

Prints the current ranking with per-tier PR counts and lists users that
have never had their PRs fetched, so they can be nudged to connect GitHub.
"""

import sys
from typing import Any, Dict, List, Optional

from app.orchestrator_mergeflow import MergeFlowOrchestrator
from app.utils.logger import setup_logger


REPORT_CONFIG = {
    "top_n": 25,  # Rows shown in the ranking table
}


class LeaderboardReport:
    """Renders the leaderboard returned by the orchestrator."""

    def __init__(self, orchestrator: Optional[MergeFlowOrchestrator] = None, top_n: int = REPORT_CONFIG["top_n"]):
        self.orchestrator = orchestrator or MergeFlowOrchestrator()
        self.top_n = top_n

    def run(self) -> Dict[str, Any]:
        """
        Build and print the report.

        Returns:
            Dict with success flag, ranked users and users without stats
        """
        leaderboard = self.orchestrator.get_leaderboard()
        if not leaderboard["success"]:
            print(f"Leaderboard unavailable: {leaderboard.get('error')}")
            return {"success": False, "error": leaderboard.get("error"), "ranked": 0, "never_fetched": []}

        users = leaderboard["users"]
        never_fetched = [user["username"] for user in users if user["lastUpdated"] is None]

        print(f"\n{'=' * 70}")
        print("MERGEFLOW LEADERBOARD")
        print(f"Generated: {leaderboard['lastUpdated']}")
        print(f"{'=' * 70}\n")

        self._print_ranking(users)
        self._print_never_fetched(never_fetched)

        return {
            "success": True,
            "ranked": len(users),
            "top": [user["username"] for user in users[: self.top_n]],
            "never_fetched": never_fetched,
        }

    def _print_ranking(self, users: List[Dict[str, Any]]):
        if not users:
            print("No users registered yet.")
            return

        print(f"{'#':>3}  {'user':<30} {'score':>6} {'high':>5} {'med':>5} {'low':>5}")
        for user in users[: self.top_n]:
            print(
                f"{user['rank']:>3}  {user['username']:<30} {user['score']:>6} "
                f"{user['highImpactPRs']:>5} {user['mediumImpactPRs']:>5} {user['lowImpactPRs']:>5}"
            )

        if len(users) > self.top_n:
            print(f"     ... and {len(users) - self.top_n} more")

    def _print_never_fetched(self, usernames: List[str]):
        if not usernames:
            return

        print(f"\n{'-' * 70}")
        print(f"NO PR DATA YET ({len(usernames)})")
        print(f"{'-' * 70}")
        for username in usernames:
            print(f"  {username}")


def main():
    """CLI entry point."""
    setup_logger("app")

    top_n = REPORT_CONFIG["top_n"]
    for arg in sys.argv[1:]:
        if arg.startswith("--top="):
            top_n = int(arg.split("=", 1)[1])

    result = LeaderboardReport(top_n=top_n).run()
    print(f"\n{'=' * 70}\n")
    sys.exit(0 if result["success"] else 1)


if __name__ == "__main__":
    main()

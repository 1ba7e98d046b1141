"""Exceptions raised by the MergeFlow engine."""


class InvalidInputError(ValueError):
    """Required input was missing; raised before any state is touched."""


class AchievementStorageError(Exception):
    """The achievement store failed for infrastructure reasons."""


class AchievementNotEarnedError(Exception):
    """The user does not hold the achievement required for an agent run."""

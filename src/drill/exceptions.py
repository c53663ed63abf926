"""
Drill engine exceptions.

The scheduler and stats never raise; these cover the collaborators
(scenario packs, persistence, sync, leaderboard).
"""

from __future__ import annotations


class DrillError(Exception):
    """Base class for all drill engine errors."""

    pass


class ScenarioPackError(DrillError):
    """Raised when a scenario pack fails validation."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        summary = "; ".join(errors[:5])
        if len(errors) > 5:
            summary += f" (+{len(errors) - 5} more)"
        super().__init__(f"Invalid scenario pack: {summary}")


class SessionStoreError(DrillError):
    """Raised when a persistence adapter cannot read or write a session."""

    pass


class SyncError(DrillError):
    """Raised when queued changes could not be written to the store."""

    pass


class LeaderboardError(DrillError):
    """Raised when leaderboard data cannot be fetched."""

    pass

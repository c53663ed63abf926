"""
Diamond IQ: Adaptive Drill Engine.

Decides which baseball/softball scenario to drill next and reschedules
scenarios after each answer.

Components:
- DrillScheduler: Weakness-first selection and answer recording
- SM2Scheduler: Spaced repetition update rule
- compute_stats: Accuracy, coverage and streak aggregates
- Scenario catalog: Pack loading and validation
- SessionStore: JSON / SQLite / in-memory persistence
- SyncQueue: Debounced batched writes
- LeaderboardService: Cached, paginated rankings
"""

from .catalog import Scenario, ScenarioPack, check_pack_quality, filter_scenarios, load_pack, validate_pack
from .exceptions import DrillError, LeaderboardError, ScenarioPackError, SessionStoreError, SyncError
from .leaderboard import LeaderboardCache, LeaderboardEntry, LeaderboardService, create_leaderboard_service
from .models import ONE_DAY_MS, AnswerQuality, DrillSession, ReviewRecord, create_session, system_clock
from .scheduler import DrillScheduler, SM2Config, SM2Scheduler, describe_due
from .state_store import JsonSessionStore, MemorySessionStore, SessionStore, SqliteSessionStore, open_store
from .stats import DrillStats, compute_stats, current_streak
from .sync import SyncQueue

__all__ = [
    # Models
    "AnswerQuality",
    "DrillSession",
    "ReviewRecord",
    "create_session",
    "system_clock",
    "ONE_DAY_MS",
    # Scheduling
    "DrillScheduler",
    "SM2Scheduler",
    "SM2Config",
    "describe_due",
    # Stats
    "DrillStats",
    "compute_stats",
    "current_streak",
    # Catalog
    "Scenario",
    "ScenarioPack",
    "load_pack",
    "validate_pack",
    "check_pack_quality",
    "filter_scenarios",
    # Persistence
    "SessionStore",
    "MemorySessionStore",
    "JsonSessionStore",
    "SqliteSessionStore",
    "open_store",
    "SyncQueue",
    # Leaderboard
    "LeaderboardCache",
    "LeaderboardEntry",
    "LeaderboardService",
    "create_leaderboard_service",
    # Errors
    "DrillError",
    "ScenarioPackError",
    "SessionStoreError",
    "SyncError",
    "LeaderboardError",
]

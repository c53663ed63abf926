"""
Leaderboard Service with an injected TTL cache.

Ranks learners by accuracy, best streak or scenarios mastered. Rows come
from a caller-supplied fetcher (e.g. a remote view); the cache is an explicit
object passed in, so several services can share one or tests can use their own.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from loguru import logger

from config import get_settings

from .exceptions import LeaderboardError
from .models import Clock, system_clock
from .stats import DrillStats

SortField = Literal["accuracy_pct", "best_streak", "scenarios_mastered"]
SORT_FIELDS: tuple[str, ...] = ("accuracy_pct", "best_streak", "scenarios_mastered")

DEFAULT_TTL_MS = 5 * 60 * 1000
DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class LeaderboardEntry:
    """One learner's leaderboard row."""

    user_id: str
    display_name: str
    accuracy_pct: float
    best_streak: int
    scenarios_mastered: int
    total_attempts: int = 0

    @classmethod
    def from_stats(cls, user_id: str, display_name: str, stats: DrillStats, scenarios_mastered: int) -> LeaderboardEntry:
        """Build a row from a learner's drill statistics."""
        return cls(
            user_id=user_id,
            display_name=display_name,
            accuracy_pct=round(stats.correct_rate * 100, 1),
            best_streak=stats.best_streak,
            scenarios_mastered=scenarios_mastered,
            total_attempts=stats.total_attempts,
        )


@dataclass(frozen=True)
class LeaderboardPage:
    entries: list[LeaderboardEntry]
    has_more: bool


# =============================================================================
# Cache
# =============================================================================


@dataclass
class _CacheEntry:
    rows: list[LeaderboardEntry]
    stored_at: int


class LeaderboardCache:
    """Time-limited cache of leaderboard rows, keyed by sort field."""

    def __init__(self, ttl_ms: int = DEFAULT_TTL_MS, clock: Clock | None = None):
        self.ttl_ms = ttl_ms
        self.clock = clock or system_clock
        self._entries: dict[str, _CacheEntry] = {}

    def get(self, sort_field: str) -> list[LeaderboardEntry] | None:
        """Cached rows for a sort field, or None if missing or expired."""
        entry = self._entries.get(sort_field)
        if entry is None:
            return None
        if self.clock() - entry.stored_at >= self.ttl_ms:
            del self._entries[sort_field]
            return None
        return entry.rows

    def put(self, sort_field: str, rows: list[LeaderboardEntry]) -> None:
        self._entries[sort_field] = _CacheEntry(rows=list(rows), stored_at=self.clock())

    def invalidate(self, sort_field: str | None = None) -> None:
        """Drop one sort field, or everything when None."""
        if sort_field is None:
            self._entries.clear()
        else:
            self._entries.pop(sort_field, None)


# =============================================================================
# Service
# =============================================================================


class LeaderboardService:
    """
    Paginated, cached leaderboard reads.

    The fetcher returns every row already ordered for the requested sort
    field; pagination is done locally over the cached list.
    """

    def __init__(
        self,
        fetcher: Callable[[str], list[LeaderboardEntry]],
        cache: LeaderboardCache,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """
        Initialize the service.

        Args:
            fetcher: Loads all rows for a sort field
            cache: Shared cache instance
            page_size: Rows per page
        """
        self.fetcher = fetcher
        self.cache = cache
        self.page_size = page_size

    def _rows(self, sort_field: str, force_refresh: bool = False) -> list[LeaderboardEntry]:
        if sort_field not in SORT_FIELDS:
            raise LeaderboardError(f"Unknown sort field: {sort_field!r}")

        if not force_refresh:
            cached = self.cache.get(sort_field)
            if cached is not None:
                return cached

        try:
            rows = list(self.fetcher(sort_field))
        except Exception as e:
            logger.error(f"Leaderboard fetch failed for {sort_field}: {e}")
            raise LeaderboardError(f"Failed to fetch leaderboard: {e}") from e

        self.cache.put(sort_field, rows)
        return rows

    def fetch(self, sort_field: SortField = "accuracy_pct", page: int = 0, force_refresh: bool = False) -> LeaderboardPage:
        """
        Get one page of the leaderboard.

        Args:
            sort_field: Ranking column
            page: Zero-based page number
            force_refresh: Bypass the cache

        Returns:
            LeaderboardPage with entries and whether more pages exist
        """
        rows = self._rows(sort_field, force_refresh=force_refresh)
        start = max(0, page) * self.page_size
        end = start + self.page_size
        return LeaderboardPage(entries=rows[start:end], has_more=len(rows) > end)

    def user_rank(self, user_id: str, sort_field: SortField = "accuracy_pct") -> tuple[int, LeaderboardEntry] | None:
        """
        Find a learner's one-based rank.

        Returns:
            (rank, entry), or None if the learner is not on the board
        """
        for index, entry in enumerate(self._rows(sort_field)):
            if entry.user_id == user_id:
                return index + 1, entry
        return None

    def invalidate(self) -> None:
        """Clear cached rows for every sort field."""
        self.cache.invalidate()


def create_leaderboard_service(
    fetcher: Callable[[str], list[LeaderboardEntry]],
    clock: Clock | None = None,
) -> LeaderboardService:
    """
    Build a service whose cache TTL and page size come from settings.

    Args:
        fetcher: Loads all rows for a sort field
        clock: Millisecond time source for the cache

    Returns:
        LeaderboardService with a fresh LeaderboardCache
    """
    settings = get_settings()
    cache = LeaderboardCache(ttl_ms=settings.leaderboard_cache_ttl_ms, clock=clock)
    return LeaderboardService(fetcher, cache, page_size=settings.leaderboard_page_size)

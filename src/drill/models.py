"""
Drill Session Models.

Plain-data review state for the adaptive drill engine:
- AnswerQuality: the closed set of learner outcomes
- ReviewRecord: per-scenario spaced repetition state
- DrillSession: all records for one learner plus streak bookkeeping

Timestamps are integer milliseconds since the epoch; intervals are whole days.
Both classes round-trip through plain dicts so any persistence adapter can
store them. Loading normalises out-of-range or missing values instead of
failing, so corrupted local state degrades gracefully.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger

ONE_DAY_MS = 24 * 60 * 60 * 1000

MIN_EASE = 1.3
MAX_EASE = 2.5
DEFAULT_EASE = MAX_EASE
DEFAULT_INTERVAL_DAYS = 1

Clock = Callable[[], int]


def system_clock() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


# =============================================================================
# Answer Quality
# =============================================================================


class AnswerQuality(Enum):
    """Outcome of a single drill answer."""

    BEST = "best"
    OK = "ok"
    BAD = "bad"
    TIMEOUT = "timeout"  # No answer before the countdown expired

    @classmethod
    def coerce(cls, value: AnswerQuality | str) -> AnswerQuality:
        """
        Accept either an AnswerQuality or its string value.

        Raises:
            ValueError: If the string is not a known quality
        """
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


# =============================================================================
# Review Record
# =============================================================================


@dataclass
class ReviewRecord:
    """Spaced repetition state for a single scenario."""

    item_id: str
    next_due_at: int
    last_shown_at: int | None = None
    last_answer_quality: AnswerQuality | None = None
    correct_count: int = 0  # BEST answers
    partial_count: int = 0  # OK answers
    incorrect_count: int = 0  # BAD and TIMEOUT answers
    timeout_count: int = 0
    repetitions: int = 0  # Total answers recorded
    ease_factor: float = DEFAULT_EASE
    interval_days: int = DEFAULT_INTERVAL_DAYS

    @property
    def attempts(self) -> int:
        """Answers that count towards the correctness rate."""
        return self.correct_count + self.partial_count + self.incorrect_count

    @property
    def correct_rate(self) -> float:
        """Fraction of BEST answers; 1.0 for never-attempted records."""
        attempts = self.attempts
        if attempts == 0:
            return 1.0
        return self.correct_count / attempts

    def is_due(self, now: int) -> bool:
        return self.next_due_at <= now

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "last_shown_at": self.last_shown_at,
            "last_answer_quality": (
                self.last_answer_quality.value if self.last_answer_quality else None
            ),
            "correct_count": self.correct_count,
            "partial_count": self.partial_count,
            "incorrect_count": self.incorrect_count,
            "timeout_count": self.timeout_count,
            "repetitions": self.repetitions,
            "ease_factor": self.ease_factor,
            "interval_days": self.interval_days,
            "next_due_at": self.next_due_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], item_id: str | None = None, now: int = 0) -> ReviewRecord:
        """
        Build a record from persisted data, normalising bad values.

        Args:
            data: Persisted record fields
            item_id: Key the record was stored under (fallback for a missing id)
            now: Timestamp used when next_due_at is missing

        Returns:
            ReviewRecord satisfying the ease and interval bounds
        """
        record_id = str(data.get("item_id") or item_id or "")
        fixed: list[str] = []

        counters = {}
        for name in ("correct_count", "partial_count", "incorrect_count", "timeout_count", "repetitions"):
            value = _non_negative_int(data.get(name), 0)
            if name in data and value != data[name]:
                fixed.append(name)
            counters[name] = value

        ease = _as_float(data.get("ease_factor"), DEFAULT_EASE)
        clamped_ease = min(MAX_EASE, max(MIN_EASE, ease))
        if "ease_factor" in data and clamped_ease != data["ease_factor"]:
            fixed.append("ease_factor")

        interval = max(DEFAULT_INTERVAL_DAYS, _non_negative_int(data.get("interval_days"), DEFAULT_INTERVAL_DAYS))
        if "interval_days" in data and interval != data["interval_days"]:
            fixed.append("interval_days")

        next_due_at = _optional_int(data.get("next_due_at"))
        if next_due_at is None:
            next_due_at = now
            fixed.append("next_due_at")

        quality = None
        raw_quality = data.get("last_answer_quality")
        if raw_quality is not None:
            try:
                quality = AnswerQuality.coerce(raw_quality)
            except ValueError:
                fixed.append("last_answer_quality")

        if fixed:
            logger.warning(f"Normalised review record {record_id!r}: {', '.join(fixed)}")

        return cls(
            item_id=record_id,
            next_due_at=next_due_at,
            last_shown_at=_optional_int(data.get("last_shown_at")),
            last_answer_quality=quality,
            ease_factor=clamped_ease,
            interval_days=interval,
            **counters,
        )


# =============================================================================
# Drill Session
# =============================================================================


@dataclass
class DrillSession:
    """A learner's review state across all scenarios."""

    id: str
    created_at: int
    updated_at: int
    records: dict[str, ReviewRecord] = field(default_factory=dict)
    best_streak_ever: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "records": {item_id: record.to_dict() for item_id, record in self.records.items()},
            "best_streak_ever": self.best_streak_ever,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], now: int | None = None) -> DrillSession:
        """
        Build a session from persisted data.

        Missing timestamps default to ``now``; every record is normalised
        through ReviewRecord.from_dict.
        """
        if now is None:
            now = system_clock()

        created_at = _optional_int(data.get("created_at"))
        if created_at is None:
            created_at = now
        updated_at = _optional_int(data.get("updated_at"))
        if updated_at is None:
            updated_at = created_at

        raw_records = data.get("records")
        if not isinstance(raw_records, dict):
            if raw_records is not None:
                logger.warning(f"Discarding malformed records for session {data.get('id')!r}")
            raw_records = {}

        records = {}
        for key, raw in raw_records.items():
            if not isinstance(raw, dict):
                logger.warning(f"Skipping malformed review record {key!r}")
                continue
            record = ReviewRecord.from_dict(raw, item_id=key, now=now)
            if record.item_id != key:
                logger.warning(f"Review record stored under {key!r} claims id {record.item_id!r}; using {key!r}")
                record.item_id = key
            records[key] = record

        return cls(
            id=str(data.get("id") or ""),
            created_at=created_at,
            updated_at=updated_at,
            records=records,
            best_streak_ever=_non_negative_int(data.get("best_streak_ever"), 0),
        )


def create_session(session_id: str, now: int | None = None) -> DrillSession:
    """Create an empty session."""
    if now is None:
        now = system_clock()
    return DrillSession(id=session_id, created_at=now, updated_at=now)


def ensure_record(session: DrillSession, item_id: str, now: int) -> ReviewRecord:
    """
    Get the record for an item, creating a default one on first reference.

    New records are due immediately.
    """
    record = session.records.get(item_id)
    if record is None:
        record = ReviewRecord(item_id=item_id, next_due_at=now)
        session.records[item_id] = record
    return record


# =============================================================================
# Coercion Helpers
# =============================================================================


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if result != result:  # NaN
        return default
    return result


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _non_negative_int(value: Any, default: int) -> int:
    result = _optional_int(value)
    if result is None:
        return default
    return max(0, result)

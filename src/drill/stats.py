"""
Drill Statistics.

Read-only aggregates over a DrillSession: accuracy, coverage,
average ease/interval and consecutive-BEST streaks.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from typing import Any

from .models import DEFAULT_EASE, DEFAULT_INTERVAL_DAYS, AnswerQuality, DrillSession


@dataclass(frozen=True)
class DrillStats:
    """Aggregate drill statistics for a set of scenarios."""

    total_items: int
    items_seen: int
    total_attempts: int
    correct_rate: float
    average_ease: float
    average_interval_days: float
    current_streak: int
    best_streak: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def current_streak(session: DrillSession) -> int:
    """
    Count consecutive BEST answers, most recent first.

    Only each scenario's latest answer is known, so this walks scenarios
    ordered by when they were last shown rather than the full answer log.
    """
    shown = [record for record in session.records.values() if record.last_shown_at is not None]
    shown.sort(key=lambda record: record.last_shown_at, reverse=True)

    streak = 0
    for record in shown:
        if record.last_answer_quality is not AnswerQuality.BEST:
            break
        streak += 1
    return streak


def compute_stats(items: Iterable[Any], session: DrillSession) -> DrillStats:
    """
    Compute statistics for the given scenarios.

    Scenarios without a record count as unseen; no records are created.

    Args:
        items: Scenarios (objects with ``id``) or bare scenario ids
        session: The learner's session

    Returns:
        DrillStats snapshot
    """
    total_items = 0
    seen = 0
    total_attempts = 0
    total_correct = 0
    total_ease = 0.0
    total_interval = 0

    for item in items:
        total_items += 1
        item_id = item if isinstance(item, str) else str(item.id)
        record = session.records.get(item_id)
        if record is None or record.repetitions <= 0:
            continue
        seen += 1
        total_attempts += record.repetitions
        total_correct += record.correct_count
        total_ease += record.ease_factor
        total_interval += record.interval_days

    streak = current_streak(session)

    return DrillStats(
        total_items=total_items,
        items_seen=seen,
        total_attempts=total_attempts,
        correct_rate=0.0 if total_attempts == 0 else total_correct / total_attempts,
        average_ease=DEFAULT_EASE if seen == 0 else total_ease / seen,
        average_interval_days=float(DEFAULT_INTERVAL_DAYS) if seen == 0 else total_interval / seen,
        current_streak=streak,
        best_streak=max(streak, session.best_streak_ever),
    )

"""
SM-2 Drill Scheduler with Weakness Priority.

Implements:
- SM-2 variant for review intervals and ease factor
- Due-date filtering with weakness-first selection
- Soonest-due fallback when nothing is due

Answer Quality Scores:
5 - BEST: the best play, advances the interval and raises ease
3 - OK: acceptable play, advances the interval without an ease bonus
1 - BAD: wrong play, resets the interval and lowers ease
0 - TIMEOUT: no answer in time, treated like BAD
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger

from .models import (
    MAX_EASE,
    MIN_EASE,
    ONE_DAY_MS,
    AnswerQuality,
    Clock,
    DrillSession,
    ReviewRecord,
    ensure_record,
    system_clock,
)
from .stats import current_streak

T = TypeVar("T")

QUALITY_SCORES: dict[AnswerQuality, int] = {
    AnswerQuality.BEST: 5,
    AnswerQuality.OK: 3,
    AnswerQuality.BAD: 1,
    AnswerQuality.TIMEOUT: 0,
}


def item_id_of(item: Any) -> str:
    """Scenario id of a catalog item (any object with ``id``, or a bare id)."""
    if isinstance(item, str):
        return item
    return str(item.id)


# =============================================================================
# SM-2 Algorithm
# =============================================================================


@dataclass
class SM2Config:
    """Configuration for the SM-2 variant."""

    minimum_easiness: float = MIN_EASE
    maximum_easiness: float = MAX_EASE
    first_interval: int = 1  # Days after the first passing answer
    second_interval: int = 3  # Days after the second passing answer
    passing_score: int = 3
    failure_penalty: float = 0.2
    perfect_bonus: float = 0.1  # Score 5
    good_bonus: float = 0.05  # Score 4, not produced by the current qualities


class SM2Scheduler:
    """
    Applies the SM-2 update to a review record.

    Differs from textbook SM-2 in two ways:
    - repetitions counts every answer, so a failure does not restart the ladder
    - a passing score of 3 (OK) advances the interval but leaves ease alone
    """

    def __init__(self, config: SM2Config | None = None):
        self.config = config or SM2Config()

    def update(self, record: ReviewRecord, quality: AnswerQuality) -> ReviewRecord:
        """
        Update repetitions, interval and ease for one answer.

        Args:
            record: Record to mutate in place
            quality: The learner's answer quality

        Returns:
            The same record
        """
        cfg = self.config
        score = QUALITY_SCORES[quality]

        record.repetitions += 1

        if score < cfg.passing_score:
            record.interval_days = cfg.first_interval
            record.ease_factor = max(cfg.minimum_easiness, record.ease_factor - cfg.failure_penalty)
        else:
            if record.repetitions == 1:
                record.interval_days = cfg.first_interval
            elif record.repetitions == 2:
                record.interval_days = cfg.second_interval
            else:
                record.interval_days = math.ceil(record.interval_days * record.ease_factor)

            if score == 5:
                record.ease_factor = min(cfg.maximum_easiness, record.ease_factor + cfg.perfect_bonus)
            elif score == 4:
                record.ease_factor = min(cfg.maximum_easiness, record.ease_factor + cfg.good_bonus)

        record.ease_factor = min(cfg.maximum_easiness, max(cfg.minimum_easiness, record.ease_factor))
        record.interval_days = max(1, int(record.interval_days))
        return record


# =============================================================================
# Drill Scheduler
# =============================================================================


class DrillScheduler:
    """
    Picks the next scenario and records answers against a DrillSession.

    Selection rules:
    1. Due scenarios first, weakest (lowest BEST rate) first
    2. Ties go to the least practiced scenario, then to catalog order
    3. With nothing due, the scenario that becomes due soonest

    The session is mutated in place; callers serialise access and persist
    it themselves after each answer.
    """

    def __init__(self, clock: Clock | None = None, sm2: SM2Scheduler | None = None):
        """
        Initialize the scheduler.

        Args:
            clock: Millisecond time source (defaults to wall clock)
            sm2: SM2Scheduler (creates default if None)
        """
        self.clock = clock or system_clock
        self.sm2 = sm2 or SM2Scheduler()

    def select_next(self, items: Iterable[T], session: DrillSession) -> T | None:
        """
        Choose the next scenario to show.

        Creates default records for scenarios seen for the first time.

        Args:
            items: Candidate scenarios, possibly a filtered subset of the catalog
            session: The learner's session

        Returns:
            The chosen scenario, or None when there are no candidates
        """
        items = list(items)
        if not items:
            return None

        now = self.clock()
        due: list[tuple[T, ReviewRecord]] = []
        not_yet_due: list[tuple[T, ReviewRecord]] = []

        for item in items:
            record = ensure_record(session, item_id_of(item), now)
            if record.is_due(now):
                due.append((item, record))
            else:
                not_yet_due.append((item, record))

        if due:
            item, _ = min(due, key=lambda pair: (pair[1].correct_rate, pair[1].repetitions))
            return item

        item, _ = min(not_yet_due, key=lambda pair: pair[1].next_due_at)
        return item

    def record_answer(
        self,
        session: DrillSession,
        item_id: str,
        quality: AnswerQuality | str,
    ) -> ReviewRecord:
        """
        Record an answer and reschedule the scenario.

        Args:
            session: The learner's session
            item_id: Scenario answered (unknown ids start a new record)
            quality: Answer quality, enum or its string value

        Returns:
            The updated ReviewRecord
        """
        quality = AnswerQuality.coerce(quality)
        now = self.clock()
        record = ensure_record(session, item_id, now)

        if quality is AnswerQuality.BEST:
            record.correct_count += 1
        elif quality is AnswerQuality.OK:
            record.partial_count += 1
        elif quality is AnswerQuality.BAD:
            record.incorrect_count += 1
        else:
            record.timeout_count += 1
            record.incorrect_count += 1

        record.last_answer_quality = quality
        record.last_shown_at = now

        self.sm2.update(record, quality)
        record.next_due_at = now + record.interval_days * ONE_DAY_MS

        session.updated_at = now

        if quality is AnswerQuality.BEST:
            session.best_streak_ever = max(session.best_streak_ever, current_streak(session))

        logger.debug(
            f"Recorded {quality.value} for {item_id}: reps={record.repetitions}, "
            f"interval={record.interval_days}d, ease={record.ease_factor:.2f}, "
            f"stats={record.correct_count}/{record.partial_count}/{record.incorrect_count}"
        )

        return record

    def upcoming(
        self,
        items: Iterable[T],
        session: DrillSession,
        limit: int = 10,
    ) -> list[tuple[T, int]]:
        """
        Preview scenarios in the order they would be drilled.

        Does not create records; unseen scenarios are treated as due now.

        Returns:
            List of (item, next_due_at) tuples
        """
        now = self.clock()
        due: list[tuple[T, ReviewRecord]] = []
        later: list[tuple[T, ReviewRecord]] = []

        for item in items:
            record = session.records.get(item_id_of(item)) or ReviewRecord(
                item_id=item_id_of(item), next_due_at=now
            )
            (due if record.is_due(now) else later).append((item, record))

        due.sort(key=lambda pair: (pair[1].correct_rate, pair[1].repetitions))
        later.sort(key=lambda pair: pair[1].next_due_at)

        return [(item, record.next_due_at) for item, record in (due + later)[:limit]]


# =============================================================================
# Display Helpers
# =============================================================================


def describe_due(next_due_at: int, now: int) -> str:
    """Human-readable label for when a scenario comes due."""
    diff_ms = next_due_at - now
    if diff_ms <= 0:  # Same boundary as ReviewRecord.is_due
        return "Due now"

    hours = diff_ms // (60 * 60 * 1000)
    if hours < 1:
        return "Due in a few minutes"
    if hours < 24:
        return f"Due in {hours}h"

    return f"Due in {diff_ms // ONE_DAY_MS}d"

"""
Unit tests for DrillScheduler and SM2Scheduler.

Covers scenario selection (due filtering, weakness priority, soonest-due
fallback) and the spaced repetition update applied by record_answer.
"""

import random
from dataclasses import dataclass

import pytest

from src.drill.models import ONE_DAY_MS, AnswerQuality, ReviewRecord, ensure_record
from src.drill.scheduler import QUALITY_SCORES, DrillScheduler, SM2Scheduler, describe_due


@dataclass(frozen=True)
class Item:
    id: str


def items(*ids):
    return [Item(i) for i in ids]


# ============================================================================
# Selection
# ============================================================================


class TestSelectNext:
    def test_empty_items_returns_none(self, scheduler, session):
        assert scheduler.select_next([], session) is None
        assert session.records == {}

    def test_empty_iterator_returns_none(self, scheduler, session):
        assert scheduler.select_next(iter([]), session) is None

    def test_accepts_generator(self, scheduler, session, clock):
        ensure_record(session, "s2", clock()).incorrect_count = 1

        assert scheduler.select_next((Item(i) for i in ("s1", "s2")), session).id == "s2"

    def test_picks_due_over_not_yet_due(self, scheduler, session, clock):
        ensure_record(session, "s1", clock()).next_due_at = clock() - 1000
        ensure_record(session, "s2", clock()).next_due_at = clock() + 1000

        assert scheduler.select_next(items("s1", "s2"), session).id == "s1"

    def test_lower_correct_rate_wins(self, scheduler, session, clock):
        s1 = ensure_record(session, "s1", clock())
        s1.correct_count = 1
        s1.partial_count = 1
        s1.next_due_at = clock() - 1000

        s2 = ensure_record(session, "s2", clock())
        s2.correct_count = 2
        s2.next_due_at = clock() - 1000

        assert scheduler.select_next(items("s2", "s1"), session).id == "s1"

    def test_never_attempted_counts_as_perfect_rate(self, scheduler, session, clock):
        weak = ensure_record(session, "weak", clock())
        weak.correct_count = 1
        weak.incorrect_count = 1
        weak.repetitions = 2

        assert scheduler.select_next(items("fresh", "weak"), session).id == "weak"

    def test_equal_rate_prefers_fewer_repetitions(self, scheduler, session, clock):
        practiced = ensure_record(session, "practiced", clock())
        practiced.correct_count = 2
        practiced.repetitions = 2

        # Both have rate 1.0; the fresh scenario has 0 repetitions
        assert scheduler.select_next(items("practiced", "fresh"), session).id == "fresh"

    def test_full_tie_keeps_iteration_order(self, scheduler, session):
        assert scheduler.select_next(items("b", "a", "c"), session).id == "b"
        assert scheduler.select_next(items("c", "a", "b"), session).id == "c"

    def test_soonest_due_when_nothing_due(self, scheduler, session, clock):
        ensure_record(session, "s1", clock()).next_due_at = clock() + 10_000
        ensure_record(session, "s2", clock()).next_due_at = clock() + 5_000

        assert scheduler.select_next(items("s1", "s2"), session).id == "s2"

    def test_soonest_due_tie_keeps_iteration_order(self, scheduler, session, clock):
        ensure_record(session, "s1", clock()).next_due_at = clock() + 5_000
        ensure_record(session, "s2", clock()).next_due_at = clock() + 5_000

        assert scheduler.select_next(items("s2", "s1"), session).id == "s2"

    def test_due_boundary_is_inclusive(self, scheduler, session, clock):
        ensure_record(session, "now", clock()).next_due_at = clock()
        ensure_record(session, "later", clock()).next_due_at = clock() + 1
        weak_later = session.records["later"]
        weak_later.incorrect_count = 5

        assert scheduler.select_next(items("later", "now"), session).id == "now"

    def test_creates_records_lazily_without_other_changes(self, scheduler, session):
        updated_at = session.updated_at

        scheduler.select_next(items("s1", "s2"), session)

        assert set(session.records) == {"s1", "s2"}
        record = session.records["s1"]
        assert record.repetitions == 0
        assert record.ease_factor == 2.5
        assert record.interval_days == 1
        assert record.last_shown_at is None
        assert session.updated_at == updated_at

    def test_accepts_bare_ids(self, scheduler, session):
        assert scheduler.select_next(["x", "y"], session) == "x"

    def test_works_over_changing_subsets(self, scheduler, session, clock):
        scheduler.record_answer(session, "s1", AnswerQuality.BEST)
        clock.advance()

        # s1 is now a day out; only s2/s3 are due
        assert scheduler.select_next(items("s1", "s2", "s3"), session).id == "s2"
        # A subset with only s1 falls back to soonest due
        assert scheduler.select_next(items("s1"), session).id == "s1"


# ============================================================================
# Recording Answers
# ============================================================================


class TestRecordAnswer:
    def test_first_best(self, scheduler, session):
        scheduler.record_answer(session, "s1", AnswerQuality.BEST)

        record = session.records["s1"]
        assert record.correct_count == 1
        assert record.repetitions == 1
        assert record.interval_days == 1
        assert record.ease_factor == 2.5

    def test_first_bad(self, scheduler, session):
        scheduler.record_answer(session, "s1", AnswerQuality.BAD)

        record = session.records["s1"]
        assert record.interval_days == 1
        assert record.ease_factor == pytest.approx(2.3)
        assert record.incorrect_count == 1
        assert record.repetitions == 1

    def test_ok_counts_as_partial(self, scheduler, session):
        scheduler.record_answer(session, "s1", AnswerQuality.OK)

        record = session.records["s1"]
        assert (record.correct_count, record.partial_count, record.incorrect_count) == (0, 1, 0)

    def test_timeout_counts_twice(self, scheduler, session):
        scheduler.record_answer(session, "s1", AnswerQuality.TIMEOUT)

        record = session.records["s1"]
        assert record.timeout_count == 1
        assert record.incorrect_count == 1
        assert record.correct_count == 0
        assert record.partial_count == 0
        assert record.repetitions == 1

    @pytest.mark.parametrize("quality", [AnswerQuality.BAD, AnswerQuality.TIMEOUT])
    def test_failure_resets_interval(self, scheduler, session, clock, quality):
        record = ensure_record(session, "s1", clock())
        record.interval_days = 10
        record.ease_factor = 2.0
        record.repetitions = 4

        scheduler.record_answer(session, "s1", quality)

        assert record.interval_days == 1
        assert record.ease_factor == pytest.approx(1.8)

    def test_best_ladder(self, scheduler, session, clock):
        intervals = []
        for _ in range(3):
            scheduler.record_answer(session, "s1", AnswerQuality.BEST)
            intervals.append(session.records["s1"].interval_days)
            clock.advance()

        assert intervals == [1, 3, 8]

    def test_ok_advances_interval_without_ease_bonus(self, scheduler, session, clock):
        record = ensure_record(session, "s1", clock())
        record.ease_factor = 2.0

        for _ in range(3):
            scheduler.record_answer(session, "s1", AnswerQuality.OK)

        assert record.interval_days == 6  # 1, 3, ceil(3 * 2.0)
        assert record.ease_factor == 2.0

    def test_best_raises_ease_after_penalty(self, scheduler, session):
        scheduler.record_answer(session, "s1", AnswerQuality.BAD)
        scheduler.record_answer(session, "s1", AnswerQuality.BEST)

        record = session.records["s1"]
        assert record.ease_factor == pytest.approx(2.4)
        # Repetitions count every answer, so this BEST is the second rung
        assert record.interval_days == 3

    def test_repeated_failures_floor_ease(self, scheduler, session):
        for _ in range(10):
            scheduler.record_answer(session, "s1", AnswerQuality.BAD)

        assert session.records["s1"].ease_factor == pytest.approx(1.3)
        assert session.records["s1"].ease_factor >= 1.3

    def test_next_due_and_timestamps(self, scheduler, session, clock):
        clock.advance(5_000)
        now = clock()

        scheduler.record_answer(session, "s1", AnswerQuality.BEST)
        scheduler.record_answer(session, "s1", AnswerQuality.BEST)

        record = session.records["s1"]
        assert record.next_due_at == now + 3 * ONE_DAY_MS
        assert record.last_shown_at == now
        assert record.last_answer_quality is AnswerQuality.BEST
        assert session.updated_at == now

    def test_unknown_id_creates_record(self, scheduler, session):
        record = scheduler.record_answer(session, "never-selected", AnswerQuality.OK)

        assert session.records["never-selected"] is record

    def test_string_quality(self, scheduler, session):
        scheduler.record_answer(session, "s1", "timeout")

        assert session.records["s1"].last_answer_quality is AnswerQuality.TIMEOUT

    def test_unknown_string_quality_raises(self, scheduler, session):
        with pytest.raises(ValueError):
            scheduler.record_answer(session, "s1", "great")


class TestInvariants:
    def test_ease_and_interval_bounds_hold(self, scheduler, session, clock):
        rng = random.Random(42)
        qualities = list(AnswerQuality)

        for _ in range(300):
            item_id = f"s{rng.randint(1, 4)}"
            scheduler.record_answer(session, item_id, rng.choice(qualities))
            clock.advance(rng.randint(1, 10_000))

            for record in session.records.values():
                assert 1.3 <= record.ease_factor <= 2.5
                assert record.interval_days >= 1

    def test_best_streak_never_decreases(self, scheduler, session, clock):
        rng = random.Random(7)
        weights = [0.6, 0.2, 0.15, 0.05]
        previous = 0

        for _ in range(200):
            quality = rng.choices(list(AnswerQuality), weights=weights)[0]
            scheduler.record_answer(session, f"s{rng.randint(1, 6)}", quality)
            clock.advance()

            assert session.best_streak_ever >= previous
            previous = session.best_streak_ever

    def test_best_streak_survives_failure(self, scheduler, session, clock):
        for item_id in ("s1", "s2", "s3"):
            scheduler.record_answer(session, item_id, AnswerQuality.BEST)
            clock.advance()
        scheduler.record_answer(session, "s4", AnswerQuality.BAD)

        assert session.best_streak_ever == 3

    def test_streak_uses_latest_answer_per_scenario(self, scheduler, session, clock):
        scheduler.record_answer(session, "s1", AnswerQuality.BEST)
        clock.advance()
        scheduler.record_answer(session, "s2", AnswerQuality.BAD)
        clock.advance()
        scheduler.record_answer(session, "s1", AnswerQuality.BEST)

        # Three answers, but s1 only contributes its latest state
        assert session.best_streak_ever == 1


# ============================================================================
# SM-2 Rule
# ============================================================================


class TestSM2Scheduler:
    def test_score_table(self):
        assert QUALITY_SCORES == {
            AnswerQuality.BEST: 5,
            AnswerQuality.OK: 3,
            AnswerQuality.BAD: 1,
            AnswerQuality.TIMEOUT: 0,
        }

    def test_third_pass_multiplies_by_ease(self):
        record = ReviewRecord(item_id="s1", next_due_at=0, repetitions=2, interval_days=3, ease_factor=1.5)

        SM2Scheduler().update(record, AnswerQuality.OK)

        assert record.repetitions == 3
        assert record.interval_days == 5  # ceil(4.5)

    def test_clamps_out_of_range_ease(self):
        record = ReviewRecord(item_id="s1", next_due_at=0, ease_factor=3.7)

        SM2Scheduler().update(record, AnswerQuality.OK)

        assert record.ease_factor == 2.5


# ============================================================================
# Preview & Labels
# ============================================================================


class TestUpcoming:
    def test_orders_due_then_soonest(self, scheduler, session, clock):
        ensure_record(session, "later", clock()).next_due_at = clock() + 2 * ONE_DAY_MS
        ensure_record(session, "soon", clock()).next_due_at = clock() + ONE_DAY_MS
        weak = ensure_record(session, "weak", clock())
        weak.incorrect_count = 1
        weak.repetitions = 1

        preview = scheduler.upcoming(items("later", "fresh", "soon", "weak"), session)

        assert [item.id for item, _ in preview] == ["weak", "fresh", "soon", "later"]

    def test_does_not_create_records(self, scheduler, session):
        scheduler.upcoming(items("a", "b"), session, limit=1)

        assert session.records == {}

    def test_limit(self, scheduler, session):
        assert len(scheduler.upcoming(items("a", "b", "c"), session, limit=2)) == 2


class TestDescribeDue:
    HOUR = 60 * 60 * 1000

    def test_labels(self):
        now = 1_000_000_000
        assert describe_due(now - 1, now) == "Due now"
        assert describe_due(now + 10 * 60 * 1000, now) == "Due in a few minutes"
        assert describe_due(now + 5 * self.HOUR, now) == "Due in 5h"
        assert describe_due(now + 3 * ONE_DAY_MS + self.HOUR, now) == "Due in 3d"

    def test_exactly_due_matches_selection_boundary(self, scheduler, session, clock):
        record = ensure_record(session, "s1", clock())

        assert record.is_due(clock())
        assert describe_due(record.next_due_at, clock()) == "Due now"

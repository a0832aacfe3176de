"""Tests for spaced repetition scheduling."""

from datetime import datetime, timedelta, timezone

import pytest

from practice.core.models import Problem, ReviewEntry
from practice.core.spaced_repetition import (
    DEFAULT_INTERVALS,
    apply_enhanced_review,
    calculate_next_review,
    calculate_next_review_enhanced,
    export_review_history,
    is_due,
    mark_as_mastered,
    mark_as_reviewed,
    next_review_problems,
    reset_spaced_repetition,
    resolve_intervals,
    review_analytics,
    review_recommendation,
    review_stats,
    schedule_flashcard,
)
from practice.utils.dates import to_iso

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_problem(**kwargs):
    defaults = {
        "id": "0" * 24,
        "user_id": "u1",
        "platform": "leetcode",
        "title": "Two Sum",
        "url": "https://leetcode.com/problems/two-sum/",
    }
    defaults.update(kwargs)
    return Problem(**defaults)


def entry(quality, time_taken=None, tags=None):
    return ReviewEntry(
        date=to_iso(NOW),
        quality=quality,
        next_review_date=to_iso(NOW),
        interval=1,
        time_taken=time_taken,
        tags=tags or [],
    )


class TestBasicScheduler:
    """Tests for calculate_next_review (quality 0-5)."""

    def test_success_moves_up_the_ladder(self):
        """A successful recall uses the next rung."""
        schedule = calculate_next_review(0, 0, 4, now=NOW)
        assert schedule.repetition == 1
        assert schedule.interval == 3
        assert schedule.next_review_date == "2024-01-04T12:00:00+00:00"
        assert schedule.is_review

    def test_past_the_ladder_grows(self):
        """Beyond the last rung the interval is multiplied by 2.5, rounded half up."""
        schedule = calculate_next_review(7, 365, 4, now=NOW)
        assert schedule.repetition == 8
        assert schedule.interval == 913

    def test_failure_steps_back(self):
        """A failed recall loses one repetition and restarts at the first rung."""
        schedule = calculate_next_review(3, 14, 2, now=NOW)
        assert schedule.repetition == 2
        assert schedule.interval == 1

    def test_failure_never_negative(self):
        assert calculate_next_review(0, 0, 0, now=NOW).repetition == 0

    def test_quality_out_of_range(self):
        with pytest.raises(ValueError, match="between 0 and 5"):
            calculate_next_review(0, 0, 6)

    def test_custom_ladder(self):
        """A custom ladder is honored."""
        schedule = calculate_next_review(0, 0, 5, intervals=[2, 4, 8], now=NOW)
        assert schedule.interval == 4

    def test_invalid_ladder(self):
        with pytest.raises(ValueError, match="positive"):
            calculate_next_review(0, 0, 4, intervals=[1, 0])


class TestEnhancedScheduler:
    """Tests for calculate_next_review_enhanced (quality 1-5)."""

    def test_perfect_recall_bonus(self):
        """Quality 5 adds 20% to the interval: 3 * 1.2 = 3.6 -> 4."""
        schedule = calculate_next_review_enhanced(0, 0, 5, now=NOW)
        assert schedule.repetition == 1
        assert schedule.interval == 4

    def test_quality_one_resets(self):
        """Quality 1 goes back to the first rung."""
        schedule = calculate_next_review_enhanced(5, 90, 1, now=NOW)
        assert schedule.repetition == 0
        assert schedule.interval == DEFAULT_INTERVALS[0]

    def test_quality_two_halves_repetition(self):
        """Quality 2 keeps half of the repetitions."""
        schedule = calculate_next_review_enhanced(5, 90, 2, now=NOW)
        assert schedule.repetition == 2
        assert schedule.interval == 7

    def test_past_ladder_scaled_by_quality(self):
        """Growth is scaled by quality / 3 past the ladder."""
        assert calculate_next_review_enhanced(7, 100, 3, now=NOW).interval == 250
        assert calculate_next_review_enhanced(7, 100, 4, now=NOW).interval == 333

    def test_history_and_average(self):
        """The review is appended and the average quality updated."""
        schedule = calculate_next_review_enhanced(
            0, 0, 5, history=[entry(3)], time_taken=12, notes="ok", tags=["dp"], now=NOW
        )
        assert len(schedule.review_history) == 2
        last = schedule.review_history[-1]
        assert last.quality == 5
        assert last.time_taken == 12
        assert last.tags == ["dp"]
        assert schedule.average_quality == 4.0
        assert schedule.last_review_quality == 5

    def test_quality_zero_rejected(self):
        with pytest.raises(ValueError, match="between 1 and 5"):
            calculate_next_review_enhanced(0, 0, 0)

    def test_apply_to_problem(self):
        """apply_enhanced_review returns an updated copy."""
        problem = make_problem()
        reviewed = apply_enhanced_review(problem, 4, now=NOW)
        assert reviewed is not problem
        assert reviewed.is_review
        assert reviewed.repetition == 1
        assert reviewed.date_solved == to_iso(NOW)
        assert problem.repetition == 0


class TestPresets:
    """Tests for interval presets."""

    def test_known_preset(self):
        assert resolve_intervals("aggressive")[:3] == [1, 2, 4]

    def test_fallback_when_none(self):
        assert resolve_intervals(None, [5, 10]) == [5, 10]
        assert resolve_intervals(None) == DEFAULT_INTERVALS

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="Unknown interval preset"):
            resolve_intervals("turbo")


class TestLifecycle:
    """Tests for reset and mastery."""

    def test_reset_starts_cycle(self):
        problem = make_problem(repetition=4, interval=30)
        reset = reset_spaced_repetition(problem, now=NOW)
        assert reset.repetition == 0
        assert reset.interval == 1
        assert reset.is_review
        assert reset.next_review_date == "2024-01-02T12:00:00+00:00"

    def test_mastered_leaves_cycle(self):
        problem = make_problem(is_review=True, next_review_date=to_iso(NOW))
        mastered = mark_as_mastered(problem)
        assert mastered.status == "learned"
        assert not mastered.is_review
        assert mastered.next_review_date is None

    def test_mark_as_reviewed_stamps_solve_date(self):
        """A basic review advances the ladder and records today as solved."""
        problem = make_problem(date_solved="2023-06-01T00:00:00+00:00")
        reviewed = mark_as_reviewed(problem, quality=4, now=NOW)
        assert reviewed.repetition == 1
        assert reviewed.interval == 3
        assert reviewed.is_review
        assert reviewed.date_solved == to_iso(NOW)
        assert reviewed.next_review_date == "2024-01-04T12:00:00+00:00"


class TestDueQueries:
    """Tests for due detection and ordering."""

    def test_due_by_calendar_day(self):
        """A review later the same UTC day is already due."""
        later_today = NOW.replace(hour=23)
        assert is_due(make_problem(is_review=True, next_review_date=to_iso(later_today)), NOW)
        tomorrow = NOW + timedelta(days=1)
        assert not is_due(make_problem(is_review=True, next_review_date=to_iso(tomorrow)), NOW)

    def test_not_in_review_never_due(self):
        assert not is_due(make_problem(is_review=False, next_review_date=to_iso(NOW)), NOW)

    def test_invalid_date_not_due(self):
        assert not is_due(make_problem(is_review=True, next_review_date="soon"), NOW)

    def test_most_overdue_first(self):
        """Due problems are ordered by date, then by repetition."""
        old = make_problem(id="a" * 24, is_review=True, repetition=2,
                           next_review_date=to_iso(NOW - timedelta(days=5)))
        same_day_low = make_problem(id="b" * 24, is_review=True, repetition=0,
                                    next_review_date=to_iso(NOW - timedelta(days=1)))
        same_day_high = make_problem(id="c" * 24, is_review=True, repetition=3,
                                     next_review_date=to_iso(NOW - timedelta(days=1)))
        future = make_problem(id="d" * 24, is_review=True,
                              next_review_date=to_iso(NOW + timedelta(days=3)))

        due = next_review_problems([same_day_high, future, old, same_day_low], now=NOW)
        assert [p.id for p in due] == ["a" * 24, "b" * 24, "c" * 24]

    def test_limit(self):
        problems = [
            make_problem(id=f"{i:024x}", is_review=True, next_review_date=to_iso(NOW))
            for i in range(5)
        ]
        assert len(next_review_problems(problems, limit=2, now=NOW)) == 2


class TestStatistics:
    """Tests for review_stats and review_analytics."""

    def test_review_stats(self):
        problems = [
            make_problem(is_review=True, repetition=3, interval=14,
                         next_review_date=to_iso(NOW - timedelta(days=1))),
            make_problem(is_review=True, repetition=0, interval=1,
                         next_review_date=to_iso(NOW + timedelta(days=1))),
            make_problem(is_review=False),
        ]
        stats = review_stats(problems, now=NOW)
        assert stats.total_reviews == 2
        assert stats.due_reviews == 1
        assert stats.completed_reviews == 1
        assert stats.average_interval == 8
        assert stats.retention_rate == 50.0

    def test_review_stats_empty(self):
        stats = review_stats([], now=NOW)
        assert stats.total_reviews == 0
        assert stats.retention_rate == 0.0

    def test_analytics(self):
        history = [
            entry(2, time_taken=10, tags=["dp"]),
            entry(3, tags=["dp", "greedy"]),
            entry(4, time_taken=20),
            entry(5),
            entry(5),
            entry(5, tags=["dp"]),
        ]
        analytics = review_analytics(history)
        assert analytics.total_reviews == 6
        assert analytics.average_quality == 4.0
        assert analytics.success_rate == 83.3
        assert analytics.average_time == 15
        assert analytics.streak == 5
        assert analytics.improvement == 67
        assert analytics.common_tags[0] == "dp"

    def test_analytics_empty(self):
        assert review_analytics(None).total_reviews == 0

    def test_export_skips_unreviewed(self):
        reviewed = make_problem(review_history=[entry(4)])
        exported = export_review_history([reviewed, make_problem()])
        assert len(exported) == 1
        assert exported[0]["total_reviews"] == 1
        assert exported[0]["analytics"]["average_quality"] == 4.0


class TestRecommendation:
    """Tests for review_recommendation."""

    def test_not_scheduled(self):
        advice = review_recommendation(None, now=NOW)
        assert not advice.should_review
        assert advice.priority == "low"

    def test_unparsable_date_not_scheduled(self):
        """A stored date that is not ISO 8601 is treated as unscheduled."""
        advice = review_recommendation("next week", now=NOW)
        assert not advice.should_review
        assert advice.reason == "Not scheduled for review"

    def test_overdue(self):
        advice = review_recommendation(to_iso(NOW - timedelta(days=5)), now=NOW)
        assert advice.should_review
        assert advice.priority == "high"
        assert advice.reason == "Overdue by 5 days!"
        assert len(advice.tips) == 3

    def test_due_soon(self):
        advice = review_recommendation(to_iso(NOW + timedelta(days=2)), now=NOW)
        assert not advice.should_review
        assert advice.priority == "medium"
        assert advice.reason == "Due in 2 days"

    def test_streak_praised(self):
        history = [entry(4), entry(4), entry(5)]
        advice = review_recommendation(to_iso(NOW), history, now=NOW)
        assert advice.reason == "Due today"
        assert "Amazing 3-review streak!" in advice.tips


class TestFlashcardSchedule:
    """Tests for schedule_flashcard."""

    def test_first_reviews(self):
        first = schedule_flashcard(0, 0, 1, True, now=NOW)
        assert first.interval_days == 1
        second = schedule_flashcard(1, 1, 1, True, now=NOW)
        assert second.interval_days == 3

    def test_later_reviews_use_success_rate_and_confidence(self):
        card = schedule_flashcard(2, 2, 3, True, new_confidence=5, now=NOW)
        assert card.review_count == 3
        assert card.correct_count == 3
        assert card.confidence == 5
        assert card.interval_days == 2

    def test_miss_returns_tomorrow(self):
        card = schedule_flashcard(4, 4, 5, False, now=NOW)
        assert card.correct_count == 4
        assert card.interval_days == 1
        assert card.next_review == "2024-01-02T12:00:00+00:00"

    def test_confidence_out_of_range_ignored(self):
        assert schedule_flashcard(0, 0, 2, True, new_confidence=9, now=NOW).confidence == 2

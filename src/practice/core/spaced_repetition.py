"""Spaced repetition scheduling for problem and flashcard reviews.

Based on SM-2 with a fixed interval ladder: each successful recall moves a
problem one rung up the ladder, past the last rung the interval grows
geometrically. Failed recalls step back.

Two schedulers are provided:
- calculate_next_review: quality 0-5, success is quality >= 3
- calculate_next_review_enhanced: quality 1-5 with partial resets, a bonus
  for perfect recall and a review history

Every function takes an optional ``now`` so callers (and tests) control
the clock.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Iterable, Literal

import structlog

from practice.core.models import Problem, ReviewEntry
from practice.utils.dates import days_between, parse_iso, to_iso, utc_date, utc_now

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

# Default review intervals (in days)
DEFAULT_INTERVALS: list[int] = [1, 3, 7, 14, 30, 90, 180, 365]

INTERVAL_PRESETS: dict[str, list[int]] = {
    "aggressive": [1, 2, 4, 7, 14, 21, 30, 60],
    "balanced": [1, 3, 7, 14, 30, 60, 90, 180],
    "relaxed": [2, 5, 10, 20, 40, 80, 120, 240],
}

SUCCESS_QUALITY = 3
GROWTH_FACTOR = 2.5
PERFECT_RECALL_BONUS = 1.2
RETAINED_REPETITIONS = 3

FLASHCARD_MAX_DAYS = 30

Priority = Literal["high", "medium", "low"]


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class ReviewSchedule:
    """Scheduling state produced by a review."""

    repetition: int
    interval: int
    next_review_date: str | None
    is_review: bool
    review_history: list[ReviewEntry] = field(default_factory=list)
    average_quality: float | None = None
    last_review_quality: int | None = None


@dataclass
class ReviewStats:
    """Aggregate review statistics for a set of problems."""

    total_reviews: int
    due_reviews: int
    completed_reviews: int
    average_interval: int
    retention_rate: float


@dataclass
class ReviewAnalytics:
    """Performance summary of a review history."""

    total_reviews: int = 0
    average_quality: float = 0.0
    success_rate: float = 0.0
    average_time: int = 0
    streak: int = 0
    improvement: int = 0
    common_tags: list[str] = field(default_factory=list)


@dataclass
class ReviewRecommendation:
    """Whether and how urgently a problem should be reviewed."""

    should_review: bool
    priority: Priority
    reason: str
    tips: list[str] = field(default_factory=list)


@dataclass
class FlashcardSchedule:
    """Result of reviewing a flashcard."""

    review_count: int
    correct_count: int
    confidence: int
    interval_days: int
    last_reviewed: str
    next_review: str


# =============================================================================
# HELPERS
# =============================================================================


def _check_intervals(intervals: list[int]) -> None:
    if not intervals:
        raise ValueError("Interval ladder must not be empty")
    if any(i < 1 for i in intervals):
        raise ValueError("Intervals must be positive day counts")


def _next_date(now: datetime, interval: int) -> str:
    return to_iso(now + timedelta(days=interval))


def _round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3), unlike round()."""
    return int(math.floor(value + 0.5))


def resolve_intervals(preset: str | None, fallback: list[int] | None = None) -> list[int]:
    """Return the interval ladder for a preset name.

    Raises:
        ValueError: If the preset is unknown.
    """
    if preset is None:
        return list(fallback or DEFAULT_INTERVALS)
    try:
        return list(INTERVAL_PRESETS[preset])
    except KeyError:
        raise ValueError(
            f"Unknown interval preset '{preset}'. "
            f"Must be one of: {', '.join(INTERVAL_PRESETS)}"
        ) from None


# =============================================================================
# SCHEDULING
# =============================================================================


def calculate_next_review(
    repetition: int,
    interval: int,
    quality: int = 4,
    intervals: list[int] | None = None,
    now: datetime | None = None,
) -> ReviewSchedule:
    """Calculate the next review from the current ladder position.

    Args:
        repetition: Successful reviews so far
        interval: Current interval in days
        quality: Quality of recall (0-5, 3+ is a successful recall)
        intervals: Interval ladder (defaults to DEFAULT_INTERVALS)
        now: Reference time

    Returns:
        ReviewSchedule with the new position and due date

    Raises:
        ValueError: If quality is outside 0-5 or the ladder is invalid
    """
    if not 0 <= quality <= 5:
        raise ValueError(f"Quality must be between 0 and 5, got {quality}")
    intervals = intervals or DEFAULT_INTERVALS
    _check_intervals(intervals)
    now = now or utc_now()

    if quality >= SUCCESS_QUALITY:
        new_repetition = repetition + 1
        if new_repetition < len(intervals):
            new_interval = intervals[new_repetition]
        else:
            # Past the ladder: grow geometrically
            new_interval = _round_half_up(interval * GROWTH_FACTOR)
    else:
        # Failed recall: step back but keep some progress
        new_repetition = max(0, repetition - 1)
        new_interval = intervals[0]

    new_interval = max(1, new_interval)

    return ReviewSchedule(
        repetition=new_repetition,
        interval=new_interval,
        next_review_date=_next_date(now, new_interval),
        is_review=True,
    )


def calculate_next_review_enhanced(
    repetition: int,
    interval: int,
    quality: int,
    intervals: list[int] | None = None,
    history: list[ReviewEntry] | None = None,
    time_taken: int | None = None,
    notes: str | None = None,
    tags: list[str] | None = None,
    now: datetime | None = None,
) -> ReviewSchedule:
    """Quality-weighted scheduling that also records the review.

    Quality 1 resets the problem to the first rung, quality 2 halves the
    repetition count, 3-4 advance one rung and 5 advances with a 20% bonus.
    Past the ladder the growth factor is scaled by quality / 3.

    Raises:
        ValueError: If quality is outside 1-5 or the ladder is invalid
    """
    if not 1 <= quality <= 5:
        raise ValueError(f"Quality must be between 1 and 5, got {quality}")
    intervals = intervals or DEFAULT_INTERVALS
    _check_intervals(intervals)
    now = now or utc_now()

    if quality >= SUCCESS_QUALITY:
        new_repetition = repetition + 1
        if new_repetition < len(intervals):
            new_interval = intervals[new_repetition]
        else:
            quality_multiplier = quality / SUCCESS_QUALITY
            new_interval = _round_half_up(interval * GROWTH_FACTOR * quality_multiplier)
        if quality == 5:
            new_interval = _round_half_up(new_interval * PERFECT_RECALL_BONUS)
    elif quality == 1:
        new_repetition = 0
        new_interval = intervals[0]
    else:
        new_repetition = max(0, math.floor(repetition * 0.5))
        new_interval = intervals[min(new_repetition, len(intervals) - 1)]

    new_interval = max(1, new_interval)
    next_review_date = _next_date(now, new_interval)

    entry = ReviewEntry(
        date=to_iso(now),
        quality=quality,
        next_review_date=next_review_date,
        interval=new_interval,
        time_taken=time_taken,
        notes=notes,
        tags=list(tags or []),
    )
    updated_history = list(history or []) + [entry]
    average_quality = sum(e.quality for e in updated_history) / len(updated_history)

    return ReviewSchedule(
        repetition=new_repetition,
        interval=new_interval,
        next_review_date=next_review_date,
        is_review=True,
        review_history=updated_history,
        average_quality=round(average_quality, 1),
        last_review_quality=quality,
    )


def mark_as_reviewed(
    problem: Problem,
    quality: int = 4,
    intervals: list[int] | None = None,
    now: datetime | None = None,
) -> Problem:
    """Apply a basic review to a problem and stamp the solve date."""
    now = now or utc_now()
    schedule = calculate_next_review(
        problem.repetition, problem.interval, quality, intervals, now
    )
    return replace(
        problem,
        repetition=schedule.repetition,
        interval=schedule.interval,
        next_review_date=schedule.next_review_date,
        is_review=True,
        date_solved=to_iso(now),
    )


def apply_enhanced_review(
    problem: Problem,
    quality: int,
    intervals: list[int] | None = None,
    time_taken: int | None = None,
    notes: str | None = None,
    tags: list[str] | None = None,
    now: datetime | None = None,
) -> Problem:
    """Apply a quality-weighted review and append it to the history."""
    now = now or utc_now()
    schedule = calculate_next_review_enhanced(
        problem.repetition,
        problem.interval,
        quality,
        intervals=intervals,
        history=problem.review_history,
        time_taken=time_taken,
        notes=notes,
        tags=tags,
        now=now,
    )
    logger.debug(
        "review_scheduled",
        problem_id=problem.id,
        quality=quality,
        interval=schedule.interval,
    )
    return replace(
        problem,
        repetition=schedule.repetition,
        interval=schedule.interval,
        next_review_date=schedule.next_review_date,
        is_review=True,
        review_history=schedule.review_history,
        average_quality=schedule.average_quality,
        last_review_quality=schedule.last_review_quality,
        date_solved=to_iso(now),
    )


def initialize_spaced_repetition(
    problem: Problem,
    start_review: bool = False,
    now: datetime | None = None,
) -> Problem:
    """Reset scheduling fields, optionally entering the review cycle."""
    if not start_review:
        return replace(
            problem,
            repetition=0,
            interval=0,
            next_review_date=None,
            is_review=False,
        )

    now = now or utc_now()
    first = DEFAULT_INTERVALS[0]
    return replace(
        problem,
        repetition=0,
        interval=first,
        next_review_date=_next_date(now, first),
        is_review=True,
    )


def reset_spaced_repetition(problem: Problem, now: datetime | None = None) -> Problem:
    """Start the review cycle over."""
    return initialize_spaced_repetition(problem, start_review=True, now=now)


def mark_as_mastered(problem: Problem) -> Problem:
    """Take a problem out of the review cycle as learned."""
    return replace(problem, status="learned", is_review=False, next_review_date=None)


# =============================================================================
# QUERIES
# =============================================================================


def is_due(problem: Problem, now: datetime | None = None) -> bool:
    """True if the problem is in review and due today or earlier."""
    if not problem.is_review or not problem.next_review_date:
        return False
    now = now or utc_now()
    try:
        review_date = parse_iso(problem.next_review_date)
    except ValueError:
        logger.warning(
            "invalid_review_date",
            problem_id=problem.id,
            value=problem.next_review_date,
        )
        return False
    return utc_date(review_date) <= utc_date(now)


def problems_for_review(
    problems: Iterable[Problem], now: datetime | None = None
) -> list[Problem]:
    """Problems due for review."""
    now = now or utc_now()
    return [p for p in problems if is_due(p, now)]


def next_review_problems(
    problems: Iterable[Problem], limit: int = 10, now: datetime | None = None
) -> list[Problem]:
    """Due problems, most overdue first, lower repetition breaking ties."""
    due = problems_for_review(problems, now)
    due.sort(key=lambda p: (parse_iso(p.next_review_date), p.repetition))
    return due[:limit]


def review_stats(problems: Iterable[Problem], now: datetime | None = None) -> ReviewStats:
    """Aggregate statistics over the problems in the review cycle."""
    problems = list(problems)
    in_review = [p for p in problems if p.is_review]
    due = problems_for_review(problems, now)

    total = len(in_review)
    completed = sum(1 for p in in_review if p.repetition > 0)

    active = [p for p in in_review if p.interval > 0]
    average_interval = (
        sum(p.interval for p in active) / len(active) if active else 0
    )

    retained = sum(1 for p in in_review if p.repetition >= RETAINED_REPETITIONS)
    retention_rate = (retained / total) * 100 if total else 0.0

    return ReviewStats(
        total_reviews=total,
        due_reviews=len(due),
        completed_reviews=completed,
        average_interval=_round_half_up(average_interval),
        retention_rate=round(retention_rate, 2),
    )


def review_analytics(history: list[ReviewEntry] | None) -> ReviewAnalytics:
    """Summarize a review history."""
    if not history:
        return ReviewAnalytics()

    total = len(history)
    average_quality = sum(e.quality for e in history) / total
    successes = sum(1 for e in history if e.quality >= SUCCESS_QUALITY)
    success_rate = successes / total * 100

    timed = [e.time_taken for e in history if e.time_taken]
    average_time = sum(timed) / len(timed) if timed else 0

    streak = 0
    for entry in reversed(history):
        if entry.quality < SUCCESS_QUALITY:
            break
        streak += 1

    improvement = 0.0
    if total >= 6:
        first_avg = sum(e.quality for e in history[:3]) / 3
        last_avg = sum(e.quality for e in history[-3:]) / 3
        improvement = (last_avg - first_avg) / first_avg * 100

    tag_counts = Counter(tag for entry in history for tag in entry.tags)
    common_tags = [tag for tag, _ in tag_counts.most_common(5)]

    return ReviewAnalytics(
        total_reviews=total,
        average_quality=round(average_quality, 1),
        success_rate=round(success_rate, 1),
        average_time=_round_half_up(average_time),
        streak=streak,
        improvement=_round_half_up(improvement),
        common_tags=common_tags,
    )


def review_recommendation(
    next_review_date: str | None,
    history: list[ReviewEntry] | None = None,
    now: datetime | None = None,
) -> ReviewRecommendation:
    """Recommend whether to review now, with up to three tips.

    A missing or unparsable review date means the problem is not scheduled.
    """
    review_date = None
    if next_review_date:
        try:
            review_date = parse_iso(next_review_date)
        except ValueError:
            logger.warning("invalid_review_date", value=next_review_date)
    if review_date is None:
        return ReviewRecommendation(
            should_review=False,
            priority="low",
            reason="Not scheduled for review",
        )

    now = now or utc_now()
    analytics = review_analytics(history)
    days_overdue = days_between(review_date, now)

    tips: list[str] = []
    priority: Priority
    if days_overdue > 3:
        priority = "high"
        reason = f"Overdue by {days_overdue} days!"
        tips.append("Review as soon as possible to maintain retention")
    elif days_overdue >= 0:
        priority = "high"
        reason = "Due today"
        tips.append("Perfect timing for optimal retention")
    elif days_overdue >= -2:
        priority = "medium"
        reason = f"Due in {abs(days_overdue)} days"
        tips.append("Can review early if you have time")
    else:
        priority = "low"
        reason = f"Not due yet ({abs(days_overdue)} days)"

    if analytics.average_quality < 3:
        tips.append("Focus on understanding core concepts")
        tips.append("Consider breaking down the problem into smaller steps")
    elif analytics.average_quality >= 4:
        tips.append("You're doing great! Keep up the momentum")

    if analytics.streak == 0:
        tips.append("Start a new success streak today!")
    elif analytics.streak >= 3:
        tips.append(f"Amazing {analytics.streak}-review streak!")

    if analytics.improvement < 0:
        tips.append("Review your notes from previous attempts")

    return ReviewRecommendation(
        should_review=days_overdue >= 0,
        priority=priority,
        reason=reason,
        tips=tips[:3],
    )


def export_review_history(problems: Iterable[Problem]) -> list[dict[str, Any]]:
    """Export problems that have a review history, with analytics."""
    exported = []
    for problem in problems:
        if not problem.review_history:
            continue
        analytics = review_analytics(problem.review_history)
        exported.append(
            {
                "problem_title": problem.title,
                "difficulty": problem.difficulty,
                "platform": problem.platform,
                "total_reviews": len(problem.review_history),
                "reviews": [e.to_dict() for e in problem.review_history],
                "analytics": asdict(analytics),
            }
        )
    return exported


# =============================================================================
# FLASHCARDS
# =============================================================================


def schedule_flashcard(
    review_count: int,
    correct_count: int,
    confidence: int,
    correct: bool,
    new_confidence: int | None = None,
    now: datetime | None = None,
) -> FlashcardSchedule:
    """Schedule the next flashcard review.

    The first two successful reviews use 1 and 3 days. Later successes use
    2 * success_rate * confidence / 5 days, clamped to [1, 30]. A miss
    brings the card back tomorrow. Confidence outside 1-5 is ignored.
    """
    now = now or utc_now()
    review_count += 1
    if correct:
        correct_count += 1

    if new_confidence is not None and 1 <= new_confidence <= 5:
        confidence = new_confidence

    days = 1
    if correct:
        if review_count == 1:
            days = 1
        elif review_count == 2:
            days = 3
        else:
            success_rate = correct_count / review_count
            confidence_multiplier = confidence / 5
            days = math.floor(2 * success_rate * confidence_multiplier)
            days = min(max(days, 1), FLASHCARD_MAX_DAYS)

    return FlashcardSchedule(
        review_count=review_count,
        correct_count=correct_count,
        confidence=confidence,
        interval_days=days,
        last_reviewed=to_iso(now),
        next_review=_next_date(now, days),
    )

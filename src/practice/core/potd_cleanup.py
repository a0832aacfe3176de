"""Problem-of-the-Day retention.

POTD problems are added automatically every day. Untouched ones are
removed once they are older than the retention period. A POTD problem the
user interacted with (review, notes, companies, scheduled date) is kept
forever.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import structlog

from practice.core.models import Problem
from practice.utils.dates import parse_iso, utc_now

logger = structlog.get_logger(__name__)

POTD_RETENTION_DAYS = 7
SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class CleanupResult:
    """Outcome of a cleanup pass."""

    kept: list[Problem] = field(default_factory=list)
    removed: list[Problem] = field(default_factory=list)
    preserved_count: int = 0

    @property
    def removed_count(self) -> int:
        return len(self.removed)

    def summary(self) -> str:
        if not self.removed and not self.preserved_count:
            return "No expired POTD problems found. All POTD problems are current."

        plural = "" if self.preserved_count == 1 else "s"
        if not self.removed:
            return (
                f"All {self.preserved_count} old POTD problem{plural} preserved "
                "due to user interactions (notes, reviews, or edits)."
            )

        titles = ", ".join(f'"{p.title}"' for p in self.removed[:3])
        more = f" and {self.removed_count - 3} more" if self.removed_count > 3 else ""
        removed_plural = "" if self.removed_count == 1 else "s"
        text = f"Removed {self.removed_count} expired POTD problem{removed_plural}: {titles}{more}"
        if self.preserved_count:
            text += (
                f"\nPreserved {self.preserved_count} problem{plural} "
                "with user interactions (kept forever)."
            )
        return text


def should_preserve_potd_forever(problem: Problem) -> bool:
    """True if the user interacted with a POTD problem."""
    if problem.source != "potd":
        return False
    return bool(
        problem.is_review
        or (problem.notes and problem.notes.strip())
        or problem.repetition > 0
        or problem.next_review_date
        or problem.companies
    )


def is_potd_expired(
    problem: Problem,
    now: datetime | None = None,
    retention_days: int = POTD_RETENTION_DAYS,
) -> bool:
    """True if a POTD problem is older than the retention period.

    Age is whole days elapsed since date_solved (or created_at).
    Problems with no parsable date never expire.
    """
    if problem.source != "potd":
        return False
    stamp = problem.date_solved or problem.created_at
    if not stamp:
        return False
    try:
        solved = parse_iso(stamp)
    except ValueError:
        logger.warning("potd_invalid_date", problem_id=problem.id, value=stamp)
        return False

    now = now or utc_now()
    elapsed_days = int((now - solved).total_seconds() // SECONDS_PER_DAY)
    return elapsed_days > retention_days


def cleanup_expired_potd_problems(
    problems: list[Problem],
    now: datetime | None = None,
    retention_days: int = POTD_RETENTION_DAYS,
) -> CleanupResult:
    """Split problems into kept and removed."""
    now = now or utc_now()
    result = CleanupResult()

    for problem in problems:
        if not is_potd_expired(problem, now, retention_days):
            result.kept.append(problem)
        elif should_preserve_potd_forever(problem):
            result.kept.append(problem)
            result.preserved_count += 1
        else:
            result.removed.append(problem)

    logger.info(
        "potd_cleanup_evaluated",
        removed=result.removed_count,
        preserved=result.preserved_count,
    )
    return result


def is_cleanup_needed(problems: list[Problem], now: datetime | None = None) -> bool:
    return any(
        is_potd_expired(p, now) and not should_preserve_potd_forever(p) for p in problems
    )

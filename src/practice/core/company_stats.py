"""Per-company practice statistics."""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from practice.core.models import Problem
from practice.core.spaced_repetition import is_due
from practice.utils.dates import parse_iso, utc_now

RECENT_DAYS = 7


@dataclass
class CompanyStats:
    name: str
    total_problems: int
    solved_problems: int
    active_problems: int
    learned_problems: int
    review_problems: int
    due_for_review: int
    solved_percentage: int
    difficulties: dict[str, int] = field(default_factory=dict)
    recent_activity: int = 0


def _solved_since(problem: Problem, since: datetime) -> bool:
    if not problem.date_solved.strip():
        return False
    try:
        return parse_iso(problem.date_solved) >= since
    except ValueError:
        return False


def company_statistics(
    problems: list[Problem], now: datetime | None = None
) -> list[CompanyStats]:
    """Statistics per company, largest first then by name."""
    now = now or utc_now()
    week_ago = now - timedelta(days=RECENT_DAYS)

    by_company: dict[str, list[Problem]] = defaultdict(list)
    for problem in problems:
        for company in problem.companies:
            by_company[company].append(problem)

    stats = []
    for company, group in by_company.items():
        total = len(group)
        solved = sum(1 for p in group if p.date_solved.strip())
        difficulties = {
            level: sum(1 for p in group if p.difficulty.lower() == level)
            for level in ("easy", "medium", "hard")
        }
        stats.append(
            CompanyStats(
                name=company,
                total_problems=total,
                solved_problems=solved,
                active_problems=sum(1 for p in group if p.status == "active"),
                learned_problems=sum(1 for p in group if p.status == "learned"),
                review_problems=sum(1 for p in group if p.is_review),
                due_for_review=sum(1 for p in group if is_due(p, now)),
                solved_percentage=math.floor(solved / total * 100 + 0.5) if total else 0,
                difficulties=difficulties,
                recent_activity=sum(1 for p in group if _solved_since(p, week_ago)),
            )
        )

    stats.sort(key=lambda s: (-s.total_problems, s.name))
    return stats

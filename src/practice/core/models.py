"""Domain records.

Plain dataclasses shared by the repositories, the scheduling logic and the
web layer. Dates are ISO 8601 strings (UTC); list fields default to empty.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

Platform = Literal["leetcode", "codeforces", "atcoder"]
ContestPlatform = Literal["leetcode", "codeforces", "atcoder", "codechef", "other"]

PLATFORMS = ("leetcode", "codeforces", "atcoder")
CONTEST_PLATFORMS = ("leetcode", "codeforces", "atcoder", "codechef", "other")
PROBLEM_STATUSES = ("active", "learned")
PROBLEM_SOURCES = ("manual", "company", "potd")
CONTEST_STATUSES = ("scheduled", "live", "completed")
TODO_PRIORITIES = ("low", "medium", "high", "urgent")
TODO_STATUSES = ("pending", "in-progress", "completed", "cancelled")
TODO_CATEGORIES = ("coding", "study", "interview-prep", "project", "personal", "other")
FLASHCARD_CATEGORIES = ("algorithm", "data-structure", "concept", "pattern", "complexity")
DIFFICULTIES = ("easy", "medium", "hard")
PATH_CATEGORIES = ("beginner", "intermediate", "advanced", "interview-prep", "topic-specific")
TEMPLATE_LANGUAGES = ("javascript", "python", "java", "cpp", "c", "go", "rust")
TEMPLATE_CATEGORIES = ("algorithm", "data-structure", "pattern", "utility")


@dataclass
class UserSettings:
    """Per-user preferences."""

    review_intervals: list[int] = field(
        default_factory=lambda: [1, 3, 7, 14, 30, 90, 180, 365]
    )
    enable_notifications: bool = True
    theme: str = "system"
    timezone: str = "UTC"


@dataclass
class User:
    """A registered user. password_hash never leaves the server."""

    id: str
    email: str
    username: str
    password_hash: str
    created_at: str
    updated_at: str
    settings: UserSettings = field(default_factory=UserSettings)

    def to_public_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "settings": asdict(self.settings),
        }


@dataclass
class ReviewEntry:
    """One completed review of a problem."""

    date: str
    quality: int
    next_review_date: str
    interval: int
    time_taken: int | None = None
    notes: str | None = None
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewEntry:
        return cls(
            date=data["date"],
            quality=int(data["quality"]),
            next_review_date=data["next_review_date"],
            interval=int(data["interval"]),
            time_taken=data.get("time_taken"),
            notes=data.get("notes"),
            tags=list(data.get("tags") or []),
        )


@dataclass
class Problem:
    """A solved (or attempted) algorithm problem."""

    id: str
    user_id: str
    platform: str
    title: str
    url: str
    problem_id: str = ""
    difficulty: str = ""
    date_solved: str = ""
    created_at: str = ""
    updated_at: str = ""
    notes: str = ""
    is_review: bool = False
    repetition: int = 0
    interval: int = 0
    next_review_date: str | None = None
    topics: list[str] = field(default_factory=list)
    status: str = "active"
    companies: list[str] = field(default_factory=list)
    source: str = "manual"
    code_snippet: str | None = None
    code_language: str | None = None
    code_filename: str | None = None
    sub_patterns: list[str] = field(default_factory=list)
    struggles: list[str] = field(default_factory=list)
    learnings: list[str] = field(default_factory=list)
    solution_summary: str | None = None
    time_complexity: str | None = None
    space_complexity: str | None = None
    review_history: list[ReviewEntry] = field(default_factory=list)
    average_quality: float | None = None
    last_review_quality: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("user_id")
        return data


@dataclass
class Contest:
    """A contest the user is tracking or took part in."""

    id: str
    user_id: str
    name: str
    platform: str
    start_time: str
    duration: int
    url: str = ""
    rank: int | None = None
    problems_solved: int = 0
    total_problems: int | None = None
    status: str = "scheduled"
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("user_id")
        return data


@dataclass
class Todo:
    """A practice todo item."""

    id: str
    user_id: str
    title: str
    description: str | None = None
    priority: str = "medium"
    status: str = "pending"
    category: str = "other"
    due_date: str | None = None
    completed_at: str | None = None
    created_at: str = ""
    updated_at: str = ""
    tags: list[str] = field(default_factory=list)
    estimated_time: int | None = None
    actual_time: int | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("user_id")
        return data


@dataclass
class Flashcard:
    """A question/answer card scheduled for review."""

    id: str
    user_id: str
    title: str
    front: str
    back: str
    category: str
    difficulty: str
    tags: list[str] = field(default_factory=list)
    review_count: int = 0
    correct_count: int = 0
    last_reviewed: str | None = None
    next_review: str | None = None
    confidence: int = 1
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("user_id")
        return data


@dataclass
class Milestone:
    """A step of a learning path."""

    id: str
    title: str
    description: str = ""
    required_problems: int = 5
    topics: list[str] = field(default_factory=list)
    is_completed: bool = False
    completed_at: str | None = None


@dataclass
class PathProgress:
    """Progress counters of a learning path."""

    current_milestone: int = 0
    completed_milestones: int = 0
    total_problems: int = 0
    solved_problems: int = 0
    started_at: str = ""
    estimated_completion: str = ""


@dataclass
class LearningPath:
    """A sequence of milestones towards a goal."""

    id: str
    user_id: str
    name: str
    description: str
    category: str
    estimated_duration: int
    difficulty: str
    topics: list[str] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)
    progress: PathProgress = field(default_factory=PathProgress)
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("user_id")
        return data


@dataclass
class CodeTemplate:
    """Reusable snippet for a technique, e.g. sliding window in Python.

    Public templates are visible to every user; usage_count orders lists.
    """

    id: str
    user_id: str
    name: str
    description: str
    language: str
    category: str
    pattern: str
    code: str
    usage: str
    time_complexity: str = "O(?)"
    space_complexity: str = "O(?)"
    tags: list[str] = field(default_factory=list)
    is_public: bool = False
    usage_count: int = 0
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("user_id")
        return data

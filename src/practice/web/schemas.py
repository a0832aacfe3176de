"""Pydantic schemas for the Web API.

Request bodies for auth, problems, contests, todos, study material and the
AI assistant. Responses use the JSON envelope built in ``web.responses``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from practice.core.models import ContestPlatform, Platform
from practice.utils.dates import parse_iso

ProblemStatus = Literal["active", "learned"]
ProblemSource = Literal["manual", "company", "potd"]
ContestStatus = Literal["scheduled", "live", "completed"]
TodoPriority = Literal["low", "medium", "high", "urgent"]
TodoStatus = Literal["pending", "in-progress", "completed", "cancelled"]
TodoCategory = Literal["coding", "study", "interview-prep", "project", "personal", "other"]
FlashcardCategory = Literal["algorithm", "data-structure", "concept", "pattern", "complexity"]
Difficulty = Literal["easy", "medium", "hard"]
PathCategory = Literal["beginner", "intermediate", "advanced", "interview-prep", "topic-specific"]
TemplateLanguage = Literal["javascript", "python", "java", "cpp", "c", "go", "rust"]
TemplateCategory = Literal["algorithm", "data-structure", "pattern", "utility"]


# =============================================================================
# HEALTH
# =============================================================================


class HealthResponse(BaseModel):
    """Response for health check."""

    status: str = "ok"
    version: str
    timestamp: str


# =============================================================================
# AUTH SCHEMAS
# =============================================================================


class RegisterRequest(BaseModel):
    """Request body for creating an account.

    Fields are sanitized by the route so that errors carry readable
    messages instead of schema errors.
    """

    email: str = ""
    username: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


# =============================================================================
# PROBLEM SCHEMAS
# =============================================================================


def _check_timestamp(value: str | None) -> str | None:
    """Blank is allowed; anything else must be an ISO 8601 date or timestamp."""
    if value is None or not value.strip():
        return value
    try:
        parse_iso(value)
    except ValueError:
        raise ValueError(f"Invalid date: {value!r} (expected ISO 8601)") from None
    return value.strip()


class ProblemCreate(BaseModel):
    """Request body for tracking a solved problem.

    Free-text fields are size-checked by the route (413 when too large).
    """

    platform: Platform
    title: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    problem_id: str = ""
    difficulty: str = ""
    date_solved: str = ""
    notes: str = ""
    is_review: bool = False
    repetition: int = Field(default=0, ge=0)
    interval: int = Field(default=0, ge=0)
    next_review_date: str | None = None
    topics: list[str] = Field(default_factory=list)
    status: ProblemStatus = "active"
    companies: list[str] = Field(default_factory=list)
    source: ProblemSource = "manual"
    code_snippet: str | None = None
    code_language: str | None = None
    code_filename: str | None = None
    sub_patterns: list[str] = Field(default_factory=list)
    struggles: list[str] = Field(default_factory=list)
    learnings: list[str] = Field(default_factory=list)
    solution_summary: str | None = Field(default=None, max_length=1000)
    time_complexity: str | None = None
    space_complexity: str | None = None

    check_dates = field_validator("date_solved", "next_review_date")(_check_timestamp)


class ProblemUpdate(BaseModel):
    """Partial update; only fields sent by the client are applied."""

    platform: Platform | None = None
    title: str | None = Field(default=None, min_length=1)
    url: str | None = Field(default=None, min_length=1)
    problem_id: str | None = None
    difficulty: str | None = None
    date_solved: str | None = None
    notes: str | None = None
    is_review: bool | None = None
    repetition: int | None = Field(default=None, ge=0)
    interval: int | None = Field(default=None, ge=0)
    next_review_date: str | None = None
    topics: list[str] | None = None
    status: ProblemStatus | None = None
    companies: list[str] | None = None
    source: ProblemSource | None = None
    code_snippet: str | None = None
    code_language: str | None = None
    code_filename: str | None = None
    sub_patterns: list[str] | None = None
    struggles: list[str] | None = None
    learnings: list[str] | None = None
    solution_summary: str | None = Field(default=None, max_length=1000)
    time_complexity: str | None = None
    space_complexity: str | None = None

    check_dates = field_validator("date_solved", "next_review_date")(_check_timestamp)


class BulkProblemsRequest(BaseModel):
    problems: list[ProblemCreate] = Field(..., min_length=1)


class ReviewRequest(BaseModel):
    """Request body for recording a review of a problem."""

    quality: int = Field(..., ge=1, le=5)
    preset: str | None = None
    time_taken: int | None = Field(default=None, ge=0)
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)


class LLMResultRequest(BaseModel):
    """Outcome of an attempt, as reported after an AI-assisted session."""

    transcript: str = ""
    user_final_status: str = ""
    code: str | None = None
    problem_description: str | None = None
    platform: str | None = None
    url: str | None = None
    companies: list[str] | None = None
    topics: list[str] | None = None


# =============================================================================
# CONTEST SCHEMAS
# =============================================================================


class ContestCreate(BaseModel):
    name: str = Field(..., min_length=1)
    platform: ContestPlatform
    start_time: str = Field(..., min_length=1)
    duration: int = Field(..., ge=1)
    url: str = ""
    rank: int | None = Field(default=None, ge=1)
    problems_solved: int = Field(default=0, ge=0)
    total_problems: int | None = Field(default=None, ge=0)
    status: ContestStatus = "scheduled"


class ContestUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    platform: ContestPlatform | None = None
    start_time: str | None = None
    duration: int | None = Field(default=None, ge=1)
    url: str | None = None
    rank: int | None = Field(default=None, ge=1)
    problems_solved: int | None = Field(default=None, ge=0)
    total_problems: int | None = Field(default=None, ge=0)
    status: ContestStatus | None = None


# =============================================================================
# TODO SCHEMAS
# =============================================================================


class TodoCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    priority: TodoPriority = "medium"
    status: TodoStatus = "pending"
    category: TodoCategory = "other"
    due_date: str | None = None
    tags: list[str] = Field(default_factory=list)
    estimated_time: int | None = Field(default=None, ge=1)
    actual_time: int | None = Field(default=None, ge=1)
    notes: str | None = Field(default=None, max_length=2000)


class TodoUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    priority: TodoPriority | None = None
    status: TodoStatus | None = None
    category: TodoCategory | None = None
    due_date: str | None = None
    tags: list[str] | None = None
    estimated_time: int | None = Field(default=None, ge=1)
    actual_time: int | None = Field(default=None, ge=1)
    notes: str | None = Field(default=None, max_length=2000)


# =============================================================================
# STUDY SCHEMAS
# =============================================================================


class FlashcardCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    front: str = Field(..., min_length=1, max_length=2000)
    back: str = Field(..., min_length=1, max_length=5000)
    category: FlashcardCategory
    difficulty: Difficulty = "medium"
    tags: list[str] = Field(default_factory=list)


class FlashcardReviewRequest(BaseModel):
    correct: bool
    confidence: int | None = None


class MilestoneCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    required_problems: int = Field(default=5, ge=1)
    topics: list[str] = Field(default_factory=list)


class LearningPathCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    category: PathCategory
    estimated_duration: int = Field(..., ge=1)
    difficulty: Difficulty = "medium"
    topics: list[str] = Field(default_factory=list)
    milestones: list[MilestoneCreate] = Field(default_factory=list)


class CodeTemplateCreate(BaseModel):
    """A reusable snippet; ``usage`` says when to reach for it."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    language: TemplateLanguage
    category: TemplateCategory
    pattern: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=10000)
    usage: str = Field(..., min_length=1, max_length=1000)
    time_complexity: str | None = None
    space_complexity: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_public: bool = False


# =============================================================================
# AI SCHEMAS
# =============================================================================


class HintRequest(BaseModel):
    problem_title: str = ""
    problem_description: str = ""
    difficulty: str = "medium"
    current_attempt: str | None = None
    stuck_point: str | None = None


class SimilarProblem(BaseModel):
    title: str = ""
    platform: str = ""
    difficulty: str = "Medium"
    topics: list[str] = Field(default_factory=list)
    description: str | None = None


class TargetDistribution(BaseModel):
    """How many recommendations to ask for per difficulty."""

    easy: int = Field(default=2, ge=0, le=10)
    medium: int = Field(default=3, ge=0, le=10)
    hard: int = Field(default=1, ge=0, le=10)


class SimilarProblemsRequest(BaseModel):
    problem: SimilarProblem
    target_distribution: TargetDistribution = Field(default_factory=TargetDistribution)


class CodeRequest(BaseModel):
    """Code submitted for review, bug detection or explanation."""

    code: str = ""
    language: str = ""
    problem_title: str = ""
    problem_description: str = ""
    problem_context: str = ""

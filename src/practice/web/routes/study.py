"""Study endpoints: flashcards, learning paths and code templates."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, status

from practice.core.spaced_repetition import schedule_flashcard
from practice.db import study_repository
from practice.security.auth import TokenPayload
from practice.security.input_validation import sanitize_query_param
from practice.utils.dates import to_iso, utc_now
from practice.web.dependencies import get_current_user, not_found, object_id_or_400
from practice.web.responses import ok
from practice.web.schemas import (
    CodeTemplateCreate,
    FlashcardCreate,
    FlashcardReviewRequest,
    LearningPathCreate,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/study", tags=["study"])


# =============================================================================
# FLASHCARDS
# =============================================================================


@router.get("/flashcards")
async def list_flashcards(
    category: str | None = None,
    difficulty: str | None = None,
    due_for_review: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    page: int = Query(default=1, ge=1),
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    """A page of flashcards, optionally only those due now."""
    due_before = to_iso(utc_now()) if due_for_review else None
    cards, total = study_repository.list_flashcards(
        user.id,
        category=category,
        difficulty=difficulty,
        due_before=due_before,
        limit=limit,
        page=page,
    )
    return ok(
        {
            "flashcards": [c.to_dict() for c in cards],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }
    )


@router.post("/flashcards", status_code=status.HTTP_201_CREATED)
async def create_flashcard(
    body: FlashcardCreate, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    card = study_repository.create_flashcard(
        user.id,
        title=body.title,
        front=body.front,
        back=body.back,
        category=body.category,
        difficulty=body.difficulty,
        tags=body.tags,
    )
    return ok(card.to_dict(), message="Flashcard created successfully")


@router.put("/flashcards/{flashcard_id}/review")
async def review_flashcard(
    flashcard_id: str,
    body: FlashcardReviewRequest,
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    """Record an answer and schedule the card's next review."""
    card = study_repository.get_flashcard(user.id, object_id_or_400(flashcard_id, "flashcard ID"))
    if card is None:
        raise not_found("Flashcard")

    schedule = schedule_flashcard(
        card.review_count,
        card.correct_count,
        card.confidence,
        body.correct,
        new_confidence=body.confidence,
    )
    updated = study_repository.save_flashcard_review(
        replace(
            card,
            review_count=schedule.review_count,
            correct_count=schedule.correct_count,
            confidence=schedule.confidence,
            last_reviewed=schedule.last_reviewed,
            next_review=schedule.next_review,
            updated_at=schedule.last_reviewed,
        )
    )
    logger.debug("flashcard_reviewed", flashcard_id=card.id, interval_days=schedule.interval_days)
    return ok(updated.to_dict(), message="Flashcard review updated")


# =============================================================================
# LEARNING PATHS
# =============================================================================


@router.get("/paths")
async def list_learning_paths(
    category: str | None = None,
    difficulty: str | None = None,
    is_active: bool | None = None,
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    paths = study_repository.list_learning_paths(
        user.id, category=category, difficulty=difficulty, is_active=is_active
    )
    return ok([p.to_dict() for p in paths], count=len(paths))


@router.post("/paths", status_code=status.HTTP_201_CREATED)
async def create_learning_path(
    body: LearningPathCreate, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    path = study_repository.create_learning_path(
        user.id,
        name=body.name,
        description=body.description,
        category=body.category,
        estimated_duration=body.estimated_duration,
        difficulty=body.difficulty,
        topics=body.topics,
        milestones=[m.model_dump() for m in body.milestones],
    )
    return ok(path.to_dict(), message="Learning path created successfully")


@router.post("/paths/{path_id}/milestones/{milestone_id}/complete")
async def complete_milestone(
    path_id: str,
    milestone_id: str,
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    path = study_repository.complete_milestone(
        user.id, object_id_or_400(path_id, "path ID"), milestone_id
    )
    if path is None:
        raise not_found("Learning path or milestone")
    return ok(path.to_dict())


# =============================================================================
# CODE TEMPLATES
# =============================================================================


@router.get("/templates")
async def list_code_templates(
    language: str | None = None,
    category: str | None = None,
    pattern: str | None = None,
    include_public: bool = False,
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    """The user's templates, optionally with everyone's public ones."""
    templates = study_repository.list_code_templates(
        user.id,
        language=language,
        category=category,
        pattern=sanitize_query_param(pattern) or None,
        include_public=include_public,
    )
    return ok(
        [{**t.to_dict(), "is_own": t.user_id == user.id} for t in templates],
        count=len(templates),
    )


@router.post("/templates", status_code=status.HTTP_201_CREATED)
async def create_code_template(
    body: CodeTemplateCreate, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    template = study_repository.create_code_template(user.id, **body.model_dump())
    return ok(template.to_dict(), message="Template created successfully")

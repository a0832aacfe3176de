"""Problem endpoints: CRUD, spaced-repetition reviews and POTD cleanup."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from practice.config.app_config import load_app_config
from practice.core.models import Problem
from practice.core.potd_cleanup import cleanup_expired_potd_problems
from practice.core.spaced_repetition import (
    apply_enhanced_review,
    export_review_history,
    mark_as_mastered,
    next_review_problems,
    reset_spaced_repetition,
    resolve_intervals,
    review_recommendation,
    review_stats,
)
from practice.db import problems_repository, suggestions_repository, users_repository
from practice.db.database import DuplicateError
from practice.security.auth import TokenPayload
from practice.security.input_validation import (
    ValidationError,
    format_validation_errors,
    sanitize_query_param,
    sanitize_string_array,
    sanitize_url,
    validate_problem_data,
)
from practice.security.rate_limiter import rate_limit
from practice.services.ai_assistant import AIAssistant, analyze_attempt
from practice.web.dependencies import get_assistant, get_current_user, not_found, object_id_or_400
from practice.web.responses import ok
from practice.web.schemas import (
    BulkProblemsRequest,
    LLMResultRequest,
    ProblemCreate,
    ProblemUpdate,
    ReviewRequest,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/problems", tags=["problems"])

MAX_LIST_LIMIT = 500
DEFAULT_DUE_LIMIT = 10

LIST_FIELDS = ("topics", "companies", "sub_patterns", "struggles", "learnings")


def _check_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Size-check and sanitize problem fields.

    Raises:
        HTTPException: 413 for oversize fields, 400 for invalid values
    """
    violations = validate_problem_data(data)
    if violations:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Request data exceeds size limits: {format_validation_errors(violations)}",
        )
    try:
        if data.get("url") is not None:
            data["url"] = sanitize_url(data["url"])
        for name in LIST_FIELDS:
            if data.get(name) is not None:
                data[name] = sanitize_string_array(data[name], name)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return data


def _get_owned_problem(user: TokenPayload, problem_id: str) -> Problem:
    problem = problems_repository.get_problem(user.id, object_id_or_400(problem_id, "problem ID"))
    if problem is None:
        raise not_found("Problem")
    return problem


def _user_intervals(user: TokenPayload) -> list[int]:
    record = users_repository.get_user_by_id(user.id)
    if record and record.settings.review_intervals:
        return record.settings.review_intervals
    return load_app_config().review.default_intervals


# =============================================================================
# COLLECTION
# =============================================================================


@router.get("")
async def list_problems(
    platform: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    is_review: bool | None = None,
    company: str | None = None,
    topic: str | None = None,
    limit: int = Query(default=100, ge=1, le=MAX_LIST_LIMIT),
    offset: int = Query(default=0, ge=0),
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    """List the user's problems, newest first."""
    company = sanitize_query_param(company)
    topic = sanitize_query_param(topic)
    problems = problems_repository.list_problems(
        user.id,
        platform=platform,
        status=status_filter,
        is_review=is_review,
        company=company or None,
        topic=topic or None,
        limit=limit,
        offset=offset,
    )
    return ok([p.to_dict() for p in problems], count=len(problems))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_problem(
    body: ProblemCreate, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    data = _check_payload(body.model_dump())
    try:
        problem = problems_repository.create_problem(user.id, data)
    except DuplicateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    logger.info("problem_created", problem_id=problem.id, platform=problem.platform)
    return ok(problem.to_dict())


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
async def bulk_create_problems(
    body: BulkProblemsRequest, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    """Import several problems.

    Items that fail the size or URL checks, and URLs already tracked, are
    skipped.
    """
    created: list[Problem] = []
    skipped = 0
    for item in body.problems:
        try:
            data = _check_payload(item.model_dump())
        except HTTPException as e:
            logger.info("problem_import_rejected", title=item.title, reason=e.detail)
            skipped += 1
            continue
        if problems_repository.url_exists(user.id, data["url"]):
            skipped += 1
            continue
        try:
            created.append(problems_repository.create_problem(user.id, data))
        except DuplicateError:
            skipped += 1

    logger.info("problems_imported", created=len(created), skipped=skipped)
    return ok(
        {
            "created": len(created),
            "skipped": skipped,
            "problems": [p.to_dict() for p in created],
        }
    )


# =============================================================================
# REVIEWS
# =============================================================================


@router.get("/reviews/due")
async def due_reviews(
    limit: int = Query(default=DEFAULT_DUE_LIMIT, ge=1, le=MAX_LIST_LIMIT),
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    """Problems due for review today, most overdue first."""
    problems = problems_repository.list_problems(user.id, is_review=True, limit=None)
    due = next_review_problems(problems, limit=limit)
    return ok([p.to_dict() for p in due], count=len(due))


@router.get("/reviews/stats")
async def review_statistics(user: TokenPayload = Depends(get_current_user)) -> dict[str, Any]:
    problems = problems_repository.list_problems(user.id, limit=None)
    return ok(asdict(review_stats(problems)))


@router.get("/export/reviews")
async def export_reviews(user: TokenPayload = Depends(get_current_user)) -> dict[str, Any]:
    """Review history of every reviewed problem, with analytics."""
    problems = problems_repository.list_problems(user.id, limit=None)
    exported = export_review_history(problems)
    return ok(exported, count=len(exported))


@router.post("/potd/cleanup")
async def cleanup_potd(
    dry_run: bool = False, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    """Delete expired POTD problems the user never interacted with."""
    problems = problems_repository.list_problems(user.id, limit=None)
    retention = load_app_config().review.potd_retention_days
    result = cleanup_expired_potd_problems(problems, retention_days=retention)

    removed = 0
    if not dry_run and result.removed:
        removed = problems_repository.delete_problems(user.id, [p.id for p in result.removed])

    return ok(
        {
            "removed_count": removed if not dry_run else result.removed_count,
            "preserved_count": result.preserved_count,
            "removed": [{"id": p.id, "title": p.title} for p in result.removed],
            "dry_run": dry_run,
        },
        message=result.summary(),
    )


# =============================================================================
# SINGLE PROBLEM
# =============================================================================


@router.get("/{problem_id}")
async def get_problem(
    problem_id: str, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    return ok(_get_owned_problem(user, problem_id).to_dict())


@router.put("/{problem_id}")
async def update_problem(
    problem_id: str,
    body: ProblemUpdate,
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    """Partial update of a problem."""
    problem_id = object_id_or_400(problem_id, "problem ID")
    changes = _check_payload(body.model_dump(exclude_unset=True))
    try:
        problem = problems_repository.update_problem(user.id, problem_id, changes)
    except DuplicateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    if problem is None:
        raise not_found("Problem")
    return ok(problem.to_dict())


@router.delete("/{problem_id}")
async def delete_problem(
    problem_id: str, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    if not problems_repository.delete_problem(user.id, object_id_or_400(problem_id, "problem ID")):
        raise not_found("Problem")
    suggestions_repository.clear_result(user.id, problem_id)
    logger.info("problem_deleted", problem_id=problem_id)
    return ok(message="Problem deleted successfully")


@router.post("/{problem_id}/review")
async def review_problem(
    problem_id: str,
    body: ReviewRequest,
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    """Record a review (quality 1..5) and schedule the next one."""
    problem = _get_owned_problem(user, problem_id)
    try:
        intervals = resolve_intervals(body.preset, _user_intervals(user))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    reviewed = apply_enhanced_review(
        problem,
        body.quality,
        intervals=intervals,
        time_taken=body.time_taken,
        notes=body.notes,
        tags=body.tags,
    )
    saved = problems_repository.save_problem(reviewed)
    logger.info(
        "problem_reviewed",
        problem_id=saved.id,
        quality=body.quality,
        next_review=saved.next_review_date,
    )
    return ok(saved.to_dict(), message="Review recorded")


@router.post("/{problem_id}/mastered")
async def master_problem(
    problem_id: str, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    problem = problems_repository.save_problem(mark_as_mastered(_get_owned_problem(user, problem_id)))
    return ok(problem.to_dict(), message="Problem marked as mastered")


@router.post("/{problem_id}/reset")
async def reset_problem(
    problem_id: str, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    """Restart the review schedule from the first interval."""
    problem = problems_repository.save_problem(
        reset_spaced_repetition(_get_owned_problem(user, problem_id))
    )
    return ok(problem.to_dict(), message="Review schedule reset")


@router.get("/{problem_id}/recommendation")
async def recommendation(
    problem_id: str, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    problem = _get_owned_problem(user, problem_id)
    advice = review_recommendation(problem.next_review_date, problem.review_history)
    return ok(asdict(advice))


@router.get("/{problem_id}/suggestions")
async def cached_suggestions(
    problem_id: str, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    """Suggestions stored by an earlier llm-result call."""
    problem = _get_owned_problem(user, problem_id)
    entry = suggestions_repository.get_cached_entry(user.id, problem.id)
    if entry is None or not entry.get("suggestions"):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No suggestions found for this problem",
        )
    return ok(
        {
            "suggestions": entry["suggestions"],
            "generated_at": entry["generated_at"],
            "failure_reason": entry.get("failure_reason"),
            "confidence": entry.get("confidence"),
        }
    )


@router.post("/{problem_id}/llm-result", dependencies=[Depends(rate_limit("AI"))])
def llm_result(
    problem_id: str,
    body: LLMResultRequest,
    user: TokenPayload = Depends(get_current_user),
    assistant: AIAssistant = Depends(get_assistant),
) -> dict[str, Any]:
    """Suggest follow-up work for an attempt the user could not solve."""
    if not body.transcript.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required field: transcript",
        )
    if body.user_final_status != "unsolved":
        return ok(None, reason="Only unsolved problems generate suggestions")

    problem = _get_owned_problem(user, problem_id)
    analysis = analyze_attempt(
        assistant,
        user.id,
        problem,
        body.transcript,
        code=body.code,
        problem_description=body.problem_description,
        platform=body.platform,
        topics=body.topics,
        companies=body.companies,
    )
    result = analysis.to_dict()
    data = result.pop("data", None)
    message = "Returning cached suggestions" if analysis.cached else None
    return ok(data, message=message, **result)

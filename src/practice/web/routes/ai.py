"""AI assistant endpoints.

Handlers are plain functions: LLM calls block, so FastAPI runs them in
its threadpool.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from practice.security.auth import TokenPayload
from practice.security.rate_limiter import rate_limit
from practice.services.ai_assistant import AIAssistant, AssistantResult
from practice.web.dependencies import get_assistant, get_current_user
from practice.web.responses import ok
from practice.web.schemas import CodeRequest, HintRequest, SimilarProblemsRequest

router = APIRouter(prefix="/api/ai", tags=["ai"])

ai_limited = [Depends(rate_limit("AI"))]


def _require_code(body: CodeRequest) -> None:
    if not body.code.strip() or not body.language.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: code and language are required",
        )


def _respond(result: AssistantResult) -> dict[str, Any]:
    return ok(result.data, note=result.note, fallback=result.fallback or None)


@router.post("/hint", dependencies=ai_limited)
def hint(
    body: HintRequest,
    user: TokenPayload = Depends(get_current_user),
    assistant: AIAssistant = Depends(get_assistant),
) -> dict[str, Any]:
    if not body.problem_title.strip() or not body.problem_description.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: problem_title, problem_description",
        )
    return _respond(
        assistant.hint(
            body.problem_title,
            body.problem_description,
            difficulty=body.difficulty,
            current_attempt=body.current_attempt,
            stuck_point=body.stuck_point,
        )
    )


@router.post("/code-review", dependencies=ai_limited)
def code_review(
    body: CodeRequest,
    user: TokenPayload = Depends(get_current_user),
    assistant: AIAssistant = Depends(get_assistant),
) -> dict[str, Any]:
    _require_code(body)
    return _respond(
        assistant.code_review(
            body.code,
            body.language,
            problem_title=body.problem_title,
            problem_description=body.problem_description,
        )
    )


@router.post("/bugs", dependencies=ai_limited)
def detect_bugs(
    body: CodeRequest,
    user: TokenPayload = Depends(get_current_user),
    assistant: AIAssistant = Depends(get_assistant),
) -> dict[str, Any]:
    _require_code(body)
    return _respond(assistant.detect_bugs(body.code, body.language, body.problem_context))


@router.post("/explain", dependencies=ai_limited)
def explain(
    body: CodeRequest,
    user: TokenPayload = Depends(get_current_user),
    assistant: AIAssistant = Depends(get_assistant),
) -> dict[str, Any]:
    _require_code(body)
    return _respond(assistant.explain(body.code, body.language, body.problem_title))


@router.get("/health")
def ai_health(
    check: bool = False,
    assistant: AIAssistant = Depends(get_assistant),
) -> dict[str, Any]:
    """Provider configuration; ``?check=true`` also contacts the provider."""
    return ok(assistant.status(check=check))


@router.post("/similar", dependencies=ai_limited)
def similar_problems(
    body: SimilarProblemsRequest,
    user: TokenPayload = Depends(get_current_user),
    assistant: AIAssistant = Depends(get_assistant),
) -> dict[str, Any]:
    """Recommend practice problems similar to the one given."""
    problem = body.problem
    if not problem.title.strip() or not problem.platform.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid request: problem title and platform are required",
        )
    wanted = body.target_distribution
    if wanted.easy + wanted.medium + wanted.hard == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Ask for at least one recommendation",
        )
    return _respond(
        assistant.similar_problems(
            problem.title,
            problem.platform.lower(),
            difficulty=problem.difficulty,
            topics=problem.topics,
            problem_description=problem.description,
            easy=wanted.easy,
            medium=wanted.medium,
            hard=wanted.hard,
        )
    )

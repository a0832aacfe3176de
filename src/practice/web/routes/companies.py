"""Company statistics endpoint."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, Query

from practice.core.company_stats import company_statistics
from practice.db import problems_repository
from practice.security.auth import TokenPayload
from practice.web.dependencies import get_current_user
from practice.web.responses import ok

router = APIRouter(prefix="/api/companies", tags=["companies"])


@router.get("/stats")
async def company_stats(
    limit: int | None = Query(default=None, ge=1),
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    """Per-company progress over the user's problems, largest first."""
    problems = problems_repository.list_problems(user.id, limit=None)
    stats = company_statistics(problems)
    if limit is not None:
        stats = stats[:limit]
    return ok([asdict(s) for s in stats], count=len(stats))

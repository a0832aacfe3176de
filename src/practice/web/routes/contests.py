"""Contest endpoints: the user's contests and the public upcoming feed."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from fastapi import APIRouter, Depends, Query, status

from practice.db import contests_repository
from practice.security.auth import TokenPayload
from practice.services.external import fetch_upcoming_contests
from practice.web.dependencies import get_current_user, get_http_client, not_found, object_id_or_400
from practice.web.responses import ok
from practice.web.schemas import ContestCreate, ContestUpdate

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/contests", tags=["contests"])


@router.get("/upcoming")
def upcoming_contests(
    platform: str | None = None,
    client: httpx.Client = Depends(get_http_client),
) -> dict[str, Any]:
    """Upcoming Codeforces, AtCoder and CodeChef contests (public)."""
    contests = fetch_upcoming_contests(client)
    if platform:
        contests = [c for c in contests if c.platform == platform]
    return ok([c.to_dict() for c in contests], count=len(contests))


@router.get("")
async def list_contests(
    platform: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    contests = contests_repository.list_contests(
        user.id, platform=platform, status=status_filter, limit=limit, offset=offset
    )
    return ok([c.to_dict() for c in contests], count=len(contests))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_contest(
    body: ContestCreate, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    contest = contests_repository.create_contest(user.id, body.model_dump())
    logger.info("contest_created", contest_id=contest.id, platform=contest.platform)
    return ok(contest.to_dict())


@router.get("/{contest_id}")
async def get_contest(
    contest_id: str, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    contest = contests_repository.get_contest(user.id, object_id_or_400(contest_id, "contest ID"))
    if contest is None:
        raise not_found("Contest")
    return ok(contest.to_dict())


@router.put("/{contest_id}")
async def update_contest(
    contest_id: str,
    body: ContestUpdate,
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    contest = contests_repository.update_contest(
        user.id,
        object_id_or_400(contest_id, "contest ID"),
        body.model_dump(exclude_unset=True),
    )
    if contest is None:
        raise not_found("Contest")
    return ok(contest.to_dict())


@router.delete("/{contest_id}")
async def delete_contest(
    contest_id: str, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    if not contests_repository.delete_contest(user.id, object_id_or_400(contest_id, "contest ID")):
        raise not_found("Contest")
    return ok(message="Contest deleted successfully")

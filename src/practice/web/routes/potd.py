"""Problem of the Day endpoint."""

from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Depends

from practice.security.rate_limiter import rate_limit
from practice.services.external import fetch_daily_challenge
from practice.web.dependencies import get_http_client
from practice.web.responses import ok

router = APIRouter(prefix="/api/potd", tags=["potd"])


@router.get("", dependencies=[Depends(rate_limit("PUBLIC"))])
def daily_challenge(client: httpx.Client = Depends(get_http_client)) -> dict[str, Any]:
    """Today's LeetCode daily challenge (public)."""
    challenge = fetch_daily_challenge(client)
    note = "LeetCode unavailable, showing fallback problem" if challenge.fallback else None
    return ok(challenge.to_dict(), note=note)

"""HTTP middleware: CSRF origin check and the global API rate limit."""

from __future__ import annotations

from typing import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request, status
from starlette.responses import Response

from practice.security.csrf import requires_csrf_protection, validate_csrf_protection
from practice.security.rate_limiter import (
    RateLimiter,
    preset_options,
    rate_limit_headers,
    request_identifier,
)
from practice.web.responses import error_response

logger = structlog.get_logger(__name__)

API_PREFIX = "/api/"
API_PRESET = "API"

CallNext = Callable[[Request], Awaitable[Response]]


async def csrf_middleware(request: Request, call_next: CallNext) -> Response:
    """Reject state-changing API requests from a foreign origin."""
    if request.url.path.startswith(API_PREFIX) and requires_csrf_protection(request.method):
        result = validate_csrf_protection(request.headers)
        if not result.valid:
            return error_response(
                status.HTTP_403_FORBIDDEN,
                "CSRF validation failed",
                reason=result.reason,
            )
    return await call_next(request)


async def rate_limit_middleware(request: Request, call_next: CallNext) -> Response:
    """Count every API request against the API preset."""
    if not request.url.path.startswith(API_PREFIX):
        return await call_next(request)

    limiter: RateLimiter = request.app.state.rate_limiter
    options = preset_options(API_PRESET)
    result = limiter.check(f"{API_PRESET}:{request_identifier(request)}", options)
    headers = rate_limit_headers(result, options)

    if result.limited:
        logger.warning("rate_limited", preset=API_PRESET, path=request.url.path)
        return error_response(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "Too many requests. Please try again later.",
            headers=headers,
        )

    response = await call_next(request)
    for name, value in headers.items():
        response.headers.setdefault(name, value)
    return response


def register_middleware(app: FastAPI) -> None:
    # Registered last runs first: rate limiting sees every request
    app.middleware("http")(csrf_middleware)
    app.middleware("http")(rate_limit_middleware)

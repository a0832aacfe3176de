"""JSON envelope and exception handlers.

Every API answer has the shape ``{"success": bool, "data"?, "error"?,
"message"?, "note"?}``.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = structlog.get_logger(__name__)


def ok(data: Any = None, **extra: Any) -> dict[str, Any]:
    """Successful envelope. ``None`` extras are omitted."""
    body: dict[str, Any] = {"success": True, "data": data}
    body.update({key: value for key, value in extra.items() if value is not None})
    return body


def error_response(
    status_code: int,
    error: str,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "error": error}
    body.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    extra = {}
    if not isinstance(exc.detail, str):
        extra["details"] = exc.detail
    return error_response(exc.status_code, detail, headers=exc.headers, **extra)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.debug("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return error_response(
        422,
        "Invalid request data",
        details=exc.errors(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

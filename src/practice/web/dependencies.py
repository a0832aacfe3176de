"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Generator

import httpx
from fastapi import HTTPException, Request, status

from practice.security.auth import InvalidTokenError, TokenPayload, token_from_request, verify_token
from practice.security.input_validation import ValidationError, sanitize_object_id
from practice.services.ai_assistant import AIAssistant


def get_current_user(request: Request) -> TokenPayload:
    """Identity of the signed-in user.

    Raises:
        HTTPException: 401 when the token is missing, expired or invalid
    """
    token = token_from_request(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
        )
    try:
        return verify_token(token)
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from None


def get_assistant() -> AIAssistant:
    return AIAssistant()


def get_http_client() -> Generator[httpx.Client, None, None]:
    with httpx.Client() as client:
        yield client


def object_id_or_400(value: str, field_name: str = "ID") -> str:
    try:
        return sanitize_object_id(value, field_name)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


def not_found(entity: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")

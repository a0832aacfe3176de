"""Account endpoints: register, login, logout, profile and CSRF tokens."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from practice.db import users_repository
from practice.db.database import DuplicateError
from practice.security.auth import (
    TokenPayload,
    clear_auth_cookies,
    generate_token,
    hash_password,
    set_auth_cookies,
    verify_password,
)
from practice.security.csrf import CSRFTokenStore
from practice.security.input_validation import (
    ValidationError,
    sanitize_email,
    sanitize_username,
    validate_password,
)
from practice.security.rate_limiter import LoginAttemptTracker, rate_limit, request_identifier
from practice.web.dependencies import get_current_user, not_found
from practice.web.responses import ok
from practice.web.schemas import LoginRequest, RegisterRequest

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

MAX_EMAIL_LENGTH = 255
MAX_PASSWORD_LENGTH = 128


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def _session_data(identity: TokenPayload) -> dict[str, Any]:
    return {"user": identity.to_dict()}


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("AUTH"))],
)
async def register(body: RegisterRequest, response: Response) -> dict[str, Any]:
    """Create an account and sign it in."""
    if not body.email or not body.username or not body.password:
        raise _bad_request("Email, username, and password are required")

    try:
        email = sanitize_email(body.email)
        username = sanitize_username(body.username)
        validate_password(body.password)
    except ValidationError as e:
        raise _bad_request(str(e)) from e

    try:
        user = users_repository.create_user(email, username, hash_password(body.password))
    except DuplicateError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email or username already exists",
        ) from e

    identity = TokenPayload(id=user.id, email=user.email, username=user.username)
    set_auth_cookies(response, generate_token(identity), user.id)
    logger.info("user_registered", user_id=user.id)
    return ok(_session_data(identity))


@router.post("/login", dependencies=[Depends(rate_limit("AUTH"))])
async def login(body: LoginRequest, request: Request, response: Response) -> dict[str, Any]:
    """Sign in with email and password."""
    tracker: LoginAttemptTracker = request.app.state.login_tracker
    attempt_key = f"login:{request_identifier(request)}"
    if tracker.is_locked(attempt_key):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again in 15 minutes.",
        )

    if not body.email or not body.password:
        raise _bad_request("Email and password are required")
    if len(body.email) > MAX_EMAIL_LENGTH or len(body.password) > MAX_PASSWORD_LENGTH:
        raise _bad_request("Input too long")

    user = users_repository.get_user_by_email(body.email.strip().lower())
    if user is None or not verify_password(body.password, user.password_hash):
        failures = tracker.record_failure(attempt_key)
        logger.info("login_failed", failures=failures)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    tracker.clear(attempt_key)
    identity = TokenPayload(id=user.id, email=user.email, username=user.username)
    set_auth_cookies(response, generate_token(identity), user.id)
    logger.info("user_logged_in", user_id=user.id)
    return ok(_session_data(identity))


@router.post("/logout")
async def logout(response: Response) -> dict[str, Any]:
    """Expire the session cookies. Works without a session."""
    clear_auth_cookies(response)
    return ok(message="Logged out successfully")


@router.get("/profile")
async def profile(user: TokenPayload = Depends(get_current_user)) -> dict[str, Any]:
    record = users_repository.get_user_by_id(user.id)
    if record is None:
        raise not_found("User")
    return ok({"user": record.to_public_dict()})


@router.get("/csrf-token")
async def csrf_token(
    request: Request, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    """Issue a CSRF token bound to the signed-in user."""
    store: CSRFTokenStore = request.app.state.csrf_store
    return ok({"csrf_token": store.generate(user.id)})

"""Password hashing and JWT session tokens.

Tokens are read from the ``auth-token`` cookie first and from an
``Authorization: Bearer`` header second, so both browser sessions and API
clients are supported.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

import bcrypt
import jwt
import structlog
from starlette.requests import Request
from starlette.responses import Response

from practice.config.app_config import load_app_config
from practice.utils.dates import utc_now

logger = structlog.get_logger(__name__)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72

USER_ID_COOKIE = "user-id"
AUTH_STATUS_COOKIE = "auth-status"


class AuthError(Exception):
    """Authentication failed."""

    pass


class InvalidTokenError(AuthError):
    """Token is expired, malformed or has a bad signature."""

    pass


@dataclass
class TokenPayload:
    """Identity carried by a session token."""

    id: str
    email: str
    username: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "email": self.email, "username": self.username}


# =============================================================================
# PASSWORDS
# =============================================================================


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password with bcrypt using the configured cost."""
    rounds = load_app_config().auth.bcrypt_rounds
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("password_hash_malformed")
        return False


# =============================================================================
# TOKENS
# =============================================================================


def generate_token(user: TokenPayload) -> str:
    """Sign a session token for a user."""
    auth = load_app_config().auth
    now = utc_now()
    claims: dict[str, Any] = {
        **user.to_dict(),
        "iat": now,
        "exp": now + timedelta(days=auth.token_ttl_days),
    }
    return jwt.encode(claims, auth.get_jwt_secret(), algorithm=auth.jwt_algorithm)


def verify_token(token: str) -> TokenPayload:
    """Verify a session token and return its identity.

    Raises:
        InvalidTokenError: If the token is expired, tampered or incomplete
    """
    auth = load_app_config().auth
    try:
        claims = jwt.decode(
            token,
            auth.get_jwt_secret(),
            algorithms=[auth.jwt_algorithm],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError("Token has expired") from e
    except jwt.PyJWTError as e:
        raise InvalidTokenError(f"Invalid token: {e}") from e

    try:
        return TokenPayload(
            id=str(claims["id"]),
            email=str(claims["email"]),
            username=str(claims["username"]),
        )
    except KeyError as e:
        raise InvalidTokenError(f"Token missing claim: {e.args[0]}") from e


def token_from_headers(cookies: Mapping[str, str], headers: Mapping[str, str]) -> str | None:
    """Extract a token from the auth cookie or a Bearer header."""
    cookie_name = load_app_config().auth.cookie_name
    cookie_token = cookies.get(cookie_name)
    if cookie_token:
        return cookie_token

    auth_header = headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header[len("Bearer "):] or None


def token_from_request(request: Request) -> str | None:
    """Extract the session token of an incoming request."""
    return token_from_headers(request.cookies, request.headers)


# =============================================================================
# COOKIES
# =============================================================================


def set_auth_cookies(response: Response, token: str, user_id: str) -> None:
    """Attach the session cookies to a login/register response."""
    auth = load_app_config().auth
    max_age = auth.token_ttl_days * 24 * 60 * 60
    for name, value in ((auth.cookie_name, token), (USER_ID_COOKIE, user_id)):
        response.set_cookie(
            name,
            value,
            max_age=max_age,
            path="/",
            secure=auth.cookie_secure,
            httponly=True,
            samesite="strict",
        )


def clear_auth_cookies(response: Response) -> None:
    """Expire every session cookie."""
    auth = load_app_config().auth
    for name in (auth.cookie_name, USER_ID_COOKIE, AUTH_STATUS_COOKIE):
        response.set_cookie(
            name,
            "",
            max_age=0,
            expires=0,
            path="/",
            secure=auth.cookie_secure,
            httponly=True,
            samesite="strict",
        )

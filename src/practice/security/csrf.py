"""CSRF defense.

Two layers:
- Origin/Referer must match the Host header on state-changing requests
- Optional per-user tokens (``X-CSRF-Token``) for sensitive operations

Tokens live in memory, so they only survive within one process.
"""

from __future__ import annotations

import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping
from urllib.parse import urlsplit

import structlog

logger = structlog.get_logger(__name__)

CSRF_TOKEN_BYTES = 32
CSRF_TOKEN_LIFETIME_SECONDS = 60 * 60
CSRF_HEADER = "x-csrf-token"

CSRF_PROTECTED_METHODS = ("POST", "PUT", "DELETE", "PATCH")

REASON_ORIGIN_MISMATCH = "Origin/Referer mismatch"
REASON_TOKEN_MISSING = "CSRF token required but not provided"
REASON_TOKEN_INVALID = "Invalid or expired CSRF token"


@dataclass
class CSRFValidationResult:
    """Outcome of a CSRF check."""

    valid: bool
    reason: str | None = None


def _url_host(value: str) -> str | None:
    """host[:port] of a URL, or None if it has none."""
    try:
        parts = urlsplit(value)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return parts.netloc.rsplit("@", 1)[-1].lower()


def validate_origin(headers: Mapping[str, str]) -> bool:
    """Check Origin and Referer against the Host header.

    Requests with neither header (curl, native clients) are allowed;
    authentication still applies to them.
    """
    origin = headers.get("origin")
    referer = headers.get("referer")
    host = headers.get("host")

    if not origin and not referer:
        return True

    if host:
        expected = host.lower()
        for value in (origin, referer):
            if value and _url_host(value) != expected:
                return False

    return True


class CSRFTokenStore:
    """In-memory store of per-user CSRF tokens."""

    def __init__(
        self,
        lifetime_seconds: int = CSRF_TOKEN_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.lifetime_seconds = lifetime_seconds
        self._clock = clock
        self._tokens: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def generate(self, user_id: str) -> str:
        """Issue a token bound to a user (64 hex characters)."""
        token = secrets.token_hex(CSRF_TOKEN_BYTES)
        now = self._clock()
        with self._lock:
            self._tokens[token] = (user_id, now + self.lifetime_seconds)
            self._purge(now)
        return token

    def validate(self, token: str | None, user_id: str | None) -> bool:
        """True if the token exists, is unexpired and belongs to user_id."""
        if not token or not user_id:
            return False
        now = self._clock()
        with self._lock:
            entry = self._tokens.get(token)
            if entry is None:
                return False
            owner, expires = entry
            if now > expires:
                del self._tokens[token]
                return False
        return owner == user_id

    def invalidate(self, token: str) -> None:
        """Forget a token (one-time use)."""
        with self._lock:
            self._tokens.pop(token, None)

    def __len__(self) -> int:
        return len(self._tokens)

    def _purge(self, now: float) -> None:
        expired = [t for t, (_, expires) in self._tokens.items() if now > expires]
        for token in expired:
            del self._tokens[token]


def validate_csrf_protection(
    headers: Mapping[str, str],
    store: CSRFTokenStore | None = None,
    require_token: bool = False,
    user_id: str | None = None,
) -> CSRFValidationResult:
    """Run the origin check and, when required, the token check."""
    if not validate_origin(headers):
        logger.warning(
            "csrf_origin_mismatch",
            origin=headers.get("origin"),
            referer=headers.get("referer"),
            host=headers.get("host"),
        )
        return CSRFValidationResult(valid=False, reason=REASON_ORIGIN_MISMATCH)

    if require_token:
        token = headers.get(CSRF_HEADER)
        if not token or not user_id:
            return CSRFValidationResult(valid=False, reason=REASON_TOKEN_MISSING)
        if store is None or not store.validate(token, user_id):
            return CSRFValidationResult(valid=False, reason=REASON_TOKEN_INVALID)

    return CSRFValidationResult(valid=True)


def requires_csrf_protection(method: str) -> bool:
    """True for methods that change state."""
    return method.upper() in CSRF_PROTECTED_METHODS

"""Fixed-window rate limiting and login lockout.

Counters are kept per client (IP plus a User-Agent fingerprint) in a
``limits`` memory storage. Each preset (AUTH, API, AI, READ_ONLY, PUBLIC)
counts separately.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping

import structlog
from fastapi import HTTPException, Request, status
from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter, MovingWindowRateLimiter

from practice.config.app_config import get_rate_limit_preset

logger = structlog.get_logger(__name__)

LOGIN_MAX_ATTEMPTS = 5
LOGIN_LOCKOUT_SECONDS = 15 * 60

PURGE_INTERVAL_SECONDS = 60
MAX_TRACKED_KEYS = 10_000

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass
class RateLimitOptions:
    """Maximum requests allowed per window."""

    max_requests: int
    window_seconds: float

    def item(self) -> RateLimitItem:
        return RateLimitItemPerSecond(self.max_requests, max(1, int(self.window_seconds)))


@dataclass
class RateLimitResult:
    """Outcome of counting one request."""

    limited: bool
    remaining: int
    reset_time: float  # epoch seconds


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return sign + "".join(reversed(digits))


def string_hash(value: str) -> str:
    """32-bit rolling hash (h * 31 + c over UTF-16 units) in base 36."""
    data = value.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        code = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + code) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(h)


def client_ip(headers: Mapping[str, str], client_host: str | None = None) -> str:
    """Best guess of the client IP behind proxies."""
    cf_ip = headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return client_host or "unknown"


def client_identifier(headers: Mapping[str, str], client_host: str | None = None) -> str:
    """Rate limit key: ``ip:user-agent-hash``."""
    ip = client_ip(headers, client_host)
    user_agent = headers.get("user-agent") or ""
    return f"{ip}:{string_hash(user_agent)}"


class RateLimiter:
    """Fixed-window request counters keyed by client.

    Counting is delegated to ``limits``; the limiter keeps a small index of
    window reset times so expired counters can be dropped as traffic flows.
    """

    def __init__(self, storage: MemoryStorage | None = None):
        self._storage = storage or MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)
        self._windows: dict[str, tuple[RateLimitItem, float]] = {}
        self._lock = threading.Lock()
        self._last_purge = time.time()

    def check(self, key: str, options: RateLimitOptions) -> RateLimitResult:
        """Count a request and report whether it exceeds the limit."""
        item = options.item()
        allowed = self._strategy.hit(item, key)
        stats = self._strategy.get_window_stats(item, key)

        with self._lock:
            self._windows[key] = (item, stats.reset_time)
        self._maybe_purge()

        return RateLimitResult(
            limited=not allowed,
            remaining=stats.remaining,
            reset_time=stats.reset_time,
        )

    def _maybe_purge(self) -> None:
        now = time.time()
        if (
            now - self._last_purge >= PURGE_INTERVAL_SECONDS
            or len(self._windows) > MAX_TRACKED_KEYS
        ):
            self.purge_expired()

    def purge_expired(self) -> int:
        """Drop counters whose window has passed. Returns how many."""
        now = time.time()
        with self._lock:
            self._last_purge = now
            expired = [
                (key, item)
                for key, (item, reset_time) in self._windows.items()
                if reset_time <= now
            ]
            for key, item in expired:
                del self._windows[key]
                self._strategy.clear(item, key)
        if expired:
            logger.debug("rate_limit_purged", keys=len(expired))
        return len(expired)

    def reset(self) -> None:
        """Clear every counter."""
        with self._lock:
            self._windows.clear()
            self._storage.reset()

    def __len__(self) -> int:
        return len(self._windows)


def rate_limit_headers(
    result: RateLimitResult,
    options: RateLimitOptions,
    now: float | None = None,
) -> dict[str, str]:
    """Standard X-RateLimit-* and Retry-After headers."""
    now = time.time() if now is None else now
    retry_after = math.ceil(result.reset_time - now) if result.limited else 0
    return {
        "X-RateLimit-Limit": str(options.max_requests),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_time)),
        "Retry-After": str(max(0, retry_after)),
    }


def preset_options(name: str) -> RateLimitOptions:
    """Options of a configured preset."""
    preset = get_rate_limit_preset(name)
    return RateLimitOptions(
        max_requests=preset.max_requests,
        window_seconds=preset.window_seconds,
    )


class LoginAttemptTracker:
    """Locks a key out after repeated failed logins.

    Failures are counted over a moving window: ``max_attempts`` failures
    within the trailing ``lockout_seconds`` lock the key until the oldest
    of them ages out.
    """

    def __init__(
        self,
        max_attempts: int = LOGIN_MAX_ATTEMPTS,
        lockout_seconds: float = LOGIN_LOCKOUT_SECONDS,
        storage: MemoryStorage | None = None,
    ):
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self._item = RateLimitItemPerSecond(max_attempts, max(1, int(lockout_seconds)))
        self._strategy = MovingWindowRateLimiter(storage or MemoryStorage())
        self._last_failure: dict[str, float] = {}
        self._lock = threading.Lock()
        self._last_purge = time.time()

    def is_locked(self, key: str) -> bool:
        return not self._strategy.test(self._item, key)

    def record_failure(self, key: str) -> int:
        """Count a failed attempt. Returns the failures inside the window."""
        self._strategy.hit(self._item, key)
        stats = self._strategy.get_window_stats(self._item, key)
        count = self.max_attempts - stats.remaining

        with self._lock:
            self._last_failure[key] = time.time()
        self._maybe_purge()

        if count >= self.max_attempts:
            logger.warning("login_locked_out", key=key, failures=count)
        return count

    def clear(self, key: str) -> None:
        with self._lock:
            self._last_failure.pop(key, None)
        self._strategy.clear(self._item, key)

    def _maybe_purge(self) -> None:
        now = time.time()
        if (
            now - self._last_purge < PURGE_INTERVAL_SECONDS
            and len(self._last_failure) <= MAX_TRACKED_KEYS
        ):
            return
        with self._lock:
            self._last_purge = now
            stale = [
                key
                for key, last in self._last_failure.items()
                if now - last > self.lockout_seconds
            ]
            for key in stale:
                del self._last_failure[key]
                self._strategy.clear(self._item, key)

    def __len__(self) -> int:
        return len(self._last_failure)


# =============================================================================
# FASTAPI INTEGRATION
# =============================================================================


def request_identifier(request: Request) -> str:
    host = request.client.host if request.client else None
    return client_identifier(request.headers, host)


def enforce_rate_limit(request: Request, preset: str) -> RateLimitResult:
    """Count the request against a preset; raise 429 when over the limit.

    The limiter is the one attached to ``app.state.rate_limiter``.
    """
    limiter: RateLimiter = request.app.state.rate_limiter
    options = preset_options(preset)
    key = f"{preset.upper()}:{request_identifier(request)}"
    result = limiter.check(key, options)

    if result.limited:
        logger.warning("rate_limited", preset=preset.upper(), path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers=rate_limit_headers(result, options),
        )
    return result


def rate_limit(preset: str) -> Callable[[Request], RateLimitResult]:
    """Dependency factory: ``Depends(rate_limit("AI"))``."""

    def dependency(request: Request) -> RateLimitResult:
        return enforce_rate_limit(request, preset)

    return dependency

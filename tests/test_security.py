"""Tests for authentication, CSRF, rate limiting and input validation."""

from datetime import timedelta

import jwt
import pytest

from practice.security.auth import (
    InvalidTokenError,
    TokenPayload,
    generate_token,
    hash_password,
    token_from_headers,
    verify_password,
    verify_token,
)
from practice.security.csrf import (
    REASON_ORIGIN_MISMATCH,
    REASON_TOKEN_INVALID,
    REASON_TOKEN_MISSING,
    CSRFTokenStore,
    requires_csrf_protection,
    validate_csrf_protection,
    validate_origin,
)
from practice.security.input_validation import (
    REQUEST_SIZE_LIMITS,
    ValidationError,
    format_validation_errors,
    sanitize_email,
    sanitize_integer,
    sanitize_object_id,
    sanitize_query_param,
    sanitize_string_array,
    sanitize_url,
    sanitize_username,
    validate_password,
    validate_problem_data,
)
from practice.security.rate_limiter import (
    PURGE_INTERVAL_SECONDS,
    LoginAttemptTracker,
    RateLimiter,
    RateLimitOptions,
    client_identifier,
    client_ip,
    rate_limit_headers,
    string_hash,
)
from practice.utils.dates import utc_now


USER = TokenPayload(id="a" * 24, email="ana@example.com", username="ana")


# =============================================================================
# AUTH
# =============================================================================


class TestPasswords:
    """Tests for bcrypt hashing."""

    def test_hash_and_verify(self):
        """A hashed password verifies, a different one does not."""
        hashed = hash_password("Str0ng!Pass")
        assert hashed.startswith("$2")
        assert verify_password("Str0ng!Pass", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash_is_rejected(self):
        """A corrupt stored hash never verifies."""
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestTokens:
    """Tests for JWT session tokens."""

    def test_round_trip_identity(self):
        """verify_token returns the identity the token was signed with."""
        assert verify_token(generate_token(USER)) == USER

    def test_tampered_token_rejected(self):
        """Changing the signature invalidates the token."""
        token = generate_token(USER)
        with pytest.raises(InvalidTokenError):
            verify_token(token[:-2] + ("aa" if not token.endswith("aa") else "bb"))

    def test_expired_token_rejected(self):
        """Expired tokens raise InvalidTokenError."""
        past = utc_now() - timedelta(days=10)
        token = jwt.encode(
            {**USER.to_dict(), "iat": past, "exp": past + timedelta(days=1)},
            "test-secret",
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError, match="expired"):
            verify_token(token)

    def test_missing_claim_rejected(self):
        """A token without the username claim is invalid."""
        now = utc_now()
        token = jwt.encode(
            {"id": USER.id, "email": USER.email, "iat": now, "exp": now + timedelta(days=1)},
            "test-secret",
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError, match="username"):
            verify_token(token)

    def test_cookie_takes_precedence_over_header(self):
        """The auth cookie is used before the Bearer header."""
        token = token_from_headers(
            {"auth-token": "from-cookie"}, {"authorization": "Bearer from-header"}
        )
        assert token == "from-cookie"

    def test_bearer_header(self):
        """Bearer tokens are read when no cookie is present."""
        assert token_from_headers({}, {"authorization": "Bearer abc"}) == "abc"
        assert token_from_headers({}, {"authorization": "Basic abc"}) is None
        assert token_from_headers({}, {}) is None


# =============================================================================
# CSRF
# =============================================================================


class TestOriginCheck:
    """Tests for the Origin/Referer check."""

    def test_no_origin_or_referer_allowed(self):
        """Native clients without browser headers pass."""
        assert validate_origin({"host": "api.example.com"})

    def test_matching_origin_allowed(self):
        """Origin with the same host:port passes."""
        assert validate_origin(
            {"host": "localhost:8000", "origin": "http://localhost:8000"}
        )

    def test_foreign_origin_rejected(self):
        """Origin from another host fails."""
        assert not validate_origin({"host": "localhost:8000", "origin": "https://evil.com"})

    def test_foreign_referer_rejected(self):
        """Referer from another host fails even with a good origin."""
        headers = {
            "host": "app.test",
            "origin": "http://app.test",
            "referer": "http://evil.test/page",
        }
        assert not validate_origin(headers)

    def test_state_changing_methods(self):
        """Only POST, PUT, DELETE and PATCH need protection."""
        assert requires_csrf_protection("post")
        assert requires_csrf_protection("DELETE")
        assert not requires_csrf_protection("GET")
        assert not requires_csrf_protection("OPTIONS")


class TestCSRFTokenStore:
    """Tests for per-user CSRF tokens."""

    def test_token_valid_for_owner_only(self):
        """A token validates for the user it was issued to."""
        store = CSRFTokenStore()
        token = store.generate("user-1")
        assert len(token) == 64
        assert store.validate(token, "user-1")
        assert not store.validate(token, "user-2")

    def test_token_expires(self, clock):
        """Tokens stop validating after their lifetime."""
        store = CSRFTokenStore(lifetime_seconds=60, clock=clock)
        token = store.generate("user-1")
        clock.now += 61
        assert not store.validate(token, "user-1")
        assert len(store) == 0

    def test_invalidate(self):
        """Invalidated tokens are forgotten."""
        store = CSRFTokenStore()
        token = store.generate("user-1")
        store.invalidate(token)
        assert not store.validate(token, "user-1")

    def test_protection_with_required_token(self):
        """The token check reports missing and invalid tokens."""
        store = CSRFTokenStore()
        token = store.generate("u1")

        missing = validate_csrf_protection({}, store, require_token=True, user_id="u1")
        assert missing.reason == REASON_TOKEN_MISSING

        invalid = validate_csrf_protection(
            {"x-csrf-token": "nope"}, store, require_token=True, user_id="u1"
        )
        assert invalid.reason == REASON_TOKEN_INVALID

        valid = validate_csrf_protection(
            {"x-csrf-token": token}, store, require_token=True, user_id="u1"
        )
        assert valid.valid

    def test_origin_mismatch_reason(self):
        """Origin failures are reported before token checks."""
        result = validate_csrf_protection({"host": "a.test", "origin": "http://b.test"})
        assert not result.valid
        assert result.reason == REASON_ORIGIN_MISMATCH


# =============================================================================
# RATE LIMITING
# =============================================================================


class TestClientIdentifier:
    """Tests for client keys."""

    def test_string_hash_known_values(self):
        """Rolling hash matches the 31-multiplier hash in base 36."""
        assert string_hash("") == "0"
        assert string_hash("abc") == "22ci"

    def test_ip_precedence(self):
        """cf-connecting-ip, then x-forwarded-for, then x-real-ip."""
        assert client_ip({"cf-connecting-ip": "1.1.1.1", "x-real-ip": "3.3.3.3"}) == "1.1.1.1"
        assert client_ip({"x-forwarded-for": "2.2.2.2, 10.0.0.1"}) == "2.2.2.2"
        assert client_ip({"x-real-ip": "3.3.3.3"}) == "3.3.3.3"
        assert client_ip({}, "127.0.0.1") == "127.0.0.1"
        assert client_ip({}) == "unknown"

    def test_identifier_includes_user_agent(self):
        """Different user agents from one IP get different keys."""
        a = client_identifier({"user-agent": "curl"}, "1.2.3.4")
        b = client_identifier({"user-agent": "firefox"}, "1.2.3.4")
        assert a.startswith("1.2.3.4:")
        assert a != b


class TestRateLimiter:
    """Tests for fixed-window counters."""

    def test_limit_reached(self, clock):
        """The request after max_requests is limited."""
        limiter = RateLimiter()
        options = RateLimitOptions(max_requests=2, window_seconds=60)

        first = limiter.check("k", options)
        second = limiter.check("k", options)
        third = limiter.check("k", options)

        assert not first.limited and first.remaining == 1
        assert not second.limited and second.remaining == 0
        assert third.limited

    def test_window_resets(self, clock):
        """A new window starts after reset_time."""
        limiter = RateLimiter()
        options = RateLimitOptions(max_requests=1, window_seconds=60)

        limiter.check("k", options)
        assert limiter.check("k", options).limited
        clock.now += 61
        assert not limiter.check("k", options).limited

    def test_keys_are_independent(self, clock):
        """Counters do not leak between keys."""
        limiter = RateLimiter()
        options = RateLimitOptions(max_requests=1, window_seconds=60)
        limiter.check("a", options)
        assert not limiter.check("b", options).limited

    def test_purge_expired(self, clock):
        """Expired entries are dropped."""
        limiter = RateLimiter()
        limiter.check("a", RateLimitOptions(max_requests=1, window_seconds=10))
        clock.now += 11
        assert limiter.purge_expired() == 1
        assert len(limiter) == 0

    def test_check_purges_expired_windows(self, clock):
        """Counting a request drops windows that ended before it."""
        limiter = RateLimiter()
        options = RateLimitOptions(max_requests=5, window_seconds=10)
        for i in range(50):
            limiter.check(f"client-{i}", options)
        assert len(limiter) == 50

        clock.now += PURGE_INTERVAL_SECONDS + 1
        limiter.check("client-new", options)
        assert len(limiter) == 1

    def test_reset(self, clock):
        limiter = RateLimiter()
        options = RateLimitOptions(max_requests=1, window_seconds=60)
        limiter.check("k", options)
        limiter.reset()
        assert len(limiter) == 0
        assert not limiter.check("k", options).limited

    def test_headers(self, clock):
        """Retry-After is set only when limited."""
        limiter = RateLimiter()
        options = RateLimitOptions(max_requests=1, window_seconds=60)
        allowed = limiter.check("k", options)
        result = limiter.check("k", options)

        headers = rate_limit_headers(result, options, now=clock.now)
        assert headers["X-RateLimit-Limit"] == "1"
        assert headers["X-RateLimit-Remaining"] == "0"
        assert headers["X-RateLimit-Reset"] == str(int(clock.now) + 60)
        assert headers["Retry-After"] == "60"
        assert rate_limit_headers(allowed, options, now=clock.now)["Retry-After"] == "0"


class TestLoginAttemptTracker:
    """Tests for login lockout."""

    def test_locks_after_max_attempts(self, clock):
        """Five failures lock the key."""
        tracker = LoginAttemptTracker(max_attempts=5)
        for _ in range(4):
            tracker.record_failure("login:x")
        assert not tracker.is_locked("login:x")
        assert tracker.record_failure("login:x") == 5
        assert tracker.is_locked("login:x")

    def test_lockout_expires(self, clock):
        """The lock lifts after the lockout period."""
        tracker = LoginAttemptTracker(max_attempts=1, lockout_seconds=900)
        tracker.record_failure("k")
        assert tracker.is_locked("k")
        clock.now += 901
        assert not tracker.is_locked("k")

    def test_old_failures_age_out(self, clock):
        """Only failures inside the trailing window count."""
        tracker = LoginAttemptTracker(max_attempts=2, lockout_seconds=900)
        tracker.record_failure("k")
        clock.now += 901
        assert tracker.record_failure("k") == 1
        assert not tracker.is_locked("k")

    def test_clear_on_success(self, clock):
        """A successful login clears the failures."""
        tracker = LoginAttemptTracker(max_attempts=2)
        tracker.record_failure("k")
        tracker.clear("k")
        assert len(tracker) == 0
        assert tracker.record_failure("k") == 1

    def test_stale_keys_purged(self, clock):
        """Keys with no recent failures are forgotten."""
        tracker = LoginAttemptTracker(max_attempts=5, lockout_seconds=900)
        for i in range(20):
            tracker.record_failure(f"login:{i}")
        assert len(tracker) == 20

        clock.now += 901
        tracker.record_failure("login:new")
        assert len(tracker) == 1


# =============================================================================
# INPUT VALIDATION
# =============================================================================


class TestSanitizers:
    """Tests for field sanitizers."""

    def test_query_param(self):
        assert sanitize_query_param(" {$ne}Google ") == "neGoogle"
        assert sanitize_query_param(None) is None
        with pytest.raises(ValidationError):
            sanitize_query_param(["a"])

    def test_email_lowercased_and_operator_chars_removed(self):
        """Emails are normalized."""
        assert sanitize_email("  Ana@Example.COM ") == "ana@example.com"
        assert sanitize_email("a$na@example.com") == "ana@example.com"

    def test_email_invalid(self):
        with pytest.raises(ValidationError, match="Invalid email format"):
            sanitize_email("not-an-email")

    def test_username_rules(self):
        """Usernames allow letters, digits, underscore and hyphen, 3..30 chars."""
        assert sanitize_username("ana_b-1") == "ana_b-1"
        with pytest.raises(ValidationError, match="between 3 and 30"):
            sanitize_username("ab")
        with pytest.raises(ValidationError, match="only contain"):
            sanitize_username("ana b")

    @pytest.mark.parametrize(
        "password,message",
        [
            ("Sh0rt!", "at least 8"),
            ("alllower1!", "uppercase"),
            ("ALLUPPER1!", "lowercase"),
            ("NoDigits!!", "number"),
            ("NoSymbol12", "special character"),
        ],
    )
    def test_weak_passwords(self, password, message):
        """Each missing character class is reported."""
        with pytest.raises(ValidationError, match=message):
            validate_password(password)

    def test_strong_password(self):
        validate_password("Str0ng!Pass")

    def test_object_id(self):
        """Object ids are 24 hex characters."""
        assert sanitize_object_id("0123456789abcdef01234567") == "0123456789abcdef01234567"
        with pytest.raises(ValidationError, match="Invalid problem ID format"):
            sanitize_object_id("xyz", "problem ID")

    def test_url_scheme(self):
        """Only http(s) URLs are accepted."""
        assert sanitize_url(" https://leetcode.com/problems/two-sum/ ") == (
            "https://leetcode.com/problems/two-sum/"
        )
        with pytest.raises(ValidationError, match="HTTP or HTTPS"):
            sanitize_url("javascript://alert(1)")
        with pytest.raises(ValidationError, match="Invalid URL format"):
            sanitize_url("not a url")

    def test_integer_parsing(self):
        """Leading integers are parsed and bounds checked."""
        assert sanitize_integer("12abc") == 12
        assert sanitize_integer(7.9) == 7
        with pytest.raises(ValidationError, match="at least 1"):
            sanitize_integer(0, minimum=1)
        with pytest.raises(ValidationError, match="valid number"):
            sanitize_integer("abc")

    def test_string_array(self):
        """Non-strings are dropped and the list is capped."""
        assert sanitize_string_array(["a$", 3, " b "]) == ["a", "b"]
        assert sanitize_string_array("nope") == []
        assert len(sanitize_string_array(["x"] * 80)) == 50


class TestSizeLimits:
    """Tests for request size limits."""

    def test_notes_over_limit(self):
        """Oversize notes are reported in KB."""
        data = {"title": "t", "notes": "x" * (REQUEST_SIZE_LIMITS["NOTES"] + 1)}
        violations = validate_problem_data(data)
        assert [v.field for v in violations] == ["notes"]
        assert format_validation_errors(violations) == "notes: 10.0KB exceeds limit of 10.0KB"

    def test_within_limits(self):
        assert validate_problem_data({"title": "Two Sum", "url": "https://x.y"}) == []

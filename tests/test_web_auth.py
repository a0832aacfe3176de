"""Tests for health, auth endpoints and the global middleware."""

import pytest
from fastapi.testclient import TestClient

from practice.config.app_config import clear_config_cache

from conftest import TEST_CONFIG, register_user, write_config


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == "0.1.0"
        assert "T" in data["timestamp"]


class TestRegister:
    """Tests for POST /api/auth/register."""

    def test_register_sets_session(self, client):
        """Registration returns the user and sets the auth cookies."""
        response = client.post(
            "/api/auth/register",
            json={"email": "Ana@Example.com", "username": "ana", "password": "Str0ng!Pass"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["user"]["email"] == "ana@example.com"
        assert "password_hash" not in body["data"]["user"]
        assert response.cookies.get("auth-token")
        assert response.cookies.get("user-id") == body["data"]["user"]["id"]

    def test_duplicate(self, client):
        register_user(client, email="ana@example.com", username="ana")
        response = client.post(
            "/api/auth/register",
            json={"email": "ana@example.com", "username": "other", "password": "Str0ng!Pass"},
        )
        assert response.status_code == 409
        assert response.json() == {
            "success": False,
            "error": "User with this email or username already exists",
        }

    def test_missing_fields(self, client):
        response = client.post("/api/auth/register", json={"email": "a@b.co"})
        assert response.status_code == 400
        assert response.json()["error"] == "Email, username, and password are required"

    def test_weak_password(self, client):
        response = client.post(
            "/api/auth/register",
            json={"email": "a@b.co", "username": "ana", "password": "weakpass"},
        )
        assert response.status_code == 400
        assert "uppercase" in response.json()["error"]

    def test_invalid_username(self, client):
        response = client.post(
            "/api/auth/register",
            json={"email": "a@b.co", "username": "a b c", "password": "Str0ng!Pass"},
        )
        assert response.status_code == 400


class TestLogin:
    """Tests for POST /api/auth/login."""

    def test_login(self, client):
        register_user(client, email="ana@example.com")
        response = client.post(
            "/api/auth/login", json={"email": " ANA@example.com", "password": "Str0ng!Pass"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["user"]["email"] == "ana@example.com"
        assert response.cookies.get("auth-token")

    def test_wrong_password(self, client):
        register_user(client, email="ana@example.com")
        response = client.post(
            "/api/auth/login", json={"email": "ana@example.com", "password": "nope"}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"

    def test_unknown_email(self, client):
        response = client.post(
            "/api/auth/login", json={"email": "ghost@example.com", "password": "Str0ng!Pass"}
        )
        assert response.status_code == 401

    def test_missing_fields(self, client):
        response = client.post("/api/auth/login", json={"email": "ana@example.com"})
        assert response.status_code == 400

    def test_input_too_long(self, client):
        response = client.post(
            "/api/auth/login", json={"email": "a" * 300 + "@x.co", "password": "x"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Input too long"

    def test_lockout_after_failures(self, client):
        """Five failed logins lock the client out, even with the right password."""
        register_user(client, email="ana@example.com")
        for _ in range(5):
            client.post("/api/auth/login", json={"email": "ana@example.com", "password": "bad"})

        response = client.post(
            "/api/auth/login", json={"email": "ana@example.com", "password": "Str0ng!Pass"}
        )
        assert response.status_code == 429
        assert response.json()["error"] == (
            "Too many login attempts. Please try again in 15 minutes."
        )


class TestSession:
    """Tests for profile, logout and CSRF tokens."""

    def test_profile_requires_token(self, app):
        response = TestClient(app).get("/api/auth/profile")
        assert response.status_code == 401
        assert response.json()["error"] == "Access token required"

    def test_invalid_token(self, app):
        response = TestClient(app).get(
            "/api/auth/profile", headers={"Authorization": "Bearer garbage"}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired token"

    def test_profile(self, auth_client):
        response = auth_client.get("/api/auth/profile")
        assert response.status_code == 200
        user = response.json()["data"]["user"]
        assert user["id"] == auth_client.user["id"]
        assert user["settings"]["review_intervals"][0] == 1

    def test_logout_without_session(self, app):
        response = TestClient(app).post("/api/auth/logout")
        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"

    def test_csrf_token(self, app, auth_client):
        response = auth_client.get("/api/auth/csrf-token")
        token = response.json()["data"]["csrf_token"]
        assert len(token) == 64
        assert app.state.csrf_store.validate(token, auth_client.user["id"])


class TestCSRFMiddleware:
    """Tests for the Origin check on state-changing requests."""

    def test_foreign_origin_rejected(self, auth_client):
        response = auth_client.post(
            "/api/todos", json={"title": "x"}, headers={"Origin": "https://evil.example"}
        )
        assert response.status_code == 403
        assert response.json() == {
            "success": False,
            "error": "CSRF validation failed",
            "reason": "Origin/Referer mismatch",
        }

    def test_same_origin_allowed(self, auth_client):
        response = auth_client.post(
            "/api/todos", json={"title": "x"}, headers={"Origin": "http://testserver"}
        )
        assert response.status_code == 201

    def test_reads_not_checked(self, auth_client):
        response = auth_client.get("/api/todos", headers={"Origin": "https://evil.example"})
        assert response.status_code == 200


class TestRateLimits:
    """Tests for preset rate limits."""

    @pytest.fixture
    def limits(self, isolated_env):
        def _set(**presets):
            rate_limits = dict(TEST_CONFIG["rate_limits"])
            for name, value in presets.items():
                rate_limits[name] = {"max_requests": value, "window_seconds": 60}
            write_config(isolated_env, {"rate_limits": rate_limits})
            clear_config_cache()

        return _set

    def test_api_preset_on_all_api_routes(self, client, limits):
        limits(API=2)
        assert client.post("/api/auth/logout").status_code == 200
        second = client.post("/api/auth/logout")
        assert second.headers["X-RateLimit-Remaining"] == "0"

        third = client.post("/api/auth/logout")
        assert third.status_code == 429
        assert third.json()["error"] == "Too many requests. Please try again later."
        assert int(third.headers["Retry-After"]) > 0

        assert client.get("/health").status_code == 200

    def test_auth_preset(self, client, limits):
        limits(AUTH=1)
        client.post("/api/auth/login", json={"email": "a@b.co", "password": "x"})
        response = client.post("/api/auth/login", json={"email": "a@b.co", "password": "x"})
        assert response.status_code == 429
        assert response.headers["X-RateLimit-Limit"] == "1"

    def test_expired_windows_are_dropped(self, clock, app, client):
        """Counters from many clients do not outlive their window."""
        for i in range(30):
            response = client.post("/api/auth/logout", headers={"User-Agent": f"agent-{i}"})
            assert response.status_code == 200
        assert len(app.state.rate_limiter) == 30

        clock.now += 61
        client.post("/api/auth/logout", headers={"User-Agent": "agent-late"})
        assert len(app.state.rate_limiter) == 1

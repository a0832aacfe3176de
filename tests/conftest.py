"""Shared pytest fixtures.

Every test runs against its own config file and SQLite database under
tmp_path. Nothing may touch ./db or ./data.
"""

import time
import uuid

import pytest
import yaml
from fastapi.testclient import TestClient

from practice.config.app_config import CONFIG_ENV, clear_config_cache
from practice.db.database import init_db, reset_db_path
from practice.prompts import clear_cache as clear_prompt_cache

class FakeClock:
    """Stands in for time.time; advance it by assigning to ``now``."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


TEST_CONFIG = {
    "auth": {"bcrypt_rounds": 4},
    "rate_limits": {
        "AUTH": {"max_requests": 1000, "window_seconds": 900},
        "API": {"max_requests": 1000, "window_seconds": 60},
        "AI": {"max_requests": 1000, "window_seconds": 3600},
        "READ_ONLY": {"max_requests": 1000, "window_seconds": 60},
        "PUBLIC": {"max_requests": 1000, "window_seconds": 60},
    },
    "environment": "development",
    "log_level": "WARNING",
}


def write_config(tmp_path, overrides=None):
    """Write a config file for the test and point PRACTICE_CONFIG at it."""
    data = {**TEST_CONFIG, "database": {"path": str(tmp_path / "db" / "test.db")}}
    if overrides:
        data.update(overrides)
    path = tmp_path / "app_config_test.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Temporary config and database for every test."""
    config_path = write_config(tmp_path)
    monkeypatch.setenv(CONFIG_ENV, str(config_path))
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    clear_config_cache()
    clear_prompt_cache()
    init_db(tmp_path / "db" / "test.db")

    yield tmp_path

    reset_db_path()
    clear_config_cache()


@pytest.fixture
def clock(monkeypatch):
    """Freeze time.time at the current second."""
    fake = FakeClock(float(int(time.time())))
    monkeypatch.setattr(time, "time", fake)
    return fake


@pytest.fixture
def app():
    from practice.web.api import create_app

    return create_app()


@pytest.fixture
def client(app):
    """Test client without an Origin header (CSRF origin check passes)."""
    return TestClient(app)


def register_user(client, email=None, username=None, password="Str0ng!Pass"):
    """Register a user and return (token, user dict)."""
    suffix = uuid.uuid4().hex[:8]
    response = client.post(
        "/api/auth/register",
        json={
            "email": email or f"user{suffix}@example.com",
            "username": username or f"user_{suffix}",
            "password": password,
        },
    )
    assert response.status_code == 201, response.text
    return response.cookies.get("auth-token"), response.json()["data"]["user"]


@pytest.fixture
def auth_client(client):
    """Test client with a registered user; the bearer header is set."""
    token, user = register_user(client)
    client.headers["Authorization"] = f"Bearer {token}"
    client.user = user
    return client

"""Tests for the practice CLI."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from practice.cli.commands import app
from practice.db import problems_repository, users_repository
from practice.utils.dates import to_iso, utc_now

runner = CliRunner()


@pytest.fixture
def user():
    return users_repository.create_user("ana@example.com", "ana", "not-a-real-hash")


def add_problem(user_id, **overrides):
    data = {
        "platform": "leetcode",
        "title": "Two Sum",
        "url": "https://leetcode.com/problems/two-sum/",
    }
    data.update(overrides)
    return problems_repository.create_problem(user_id, data)


class TestPresetsCommand:
    def test_lists_presets_and_default(self):
        result = runner.invoke(app, ["presets"])

        assert result.exit_code == 0
        for name in ("aggressive", "balanced", "relaxed", "default"):
            assert name in result.stdout


class TestInitDbCommand:
    def test_creates_schema(self, isolated_env):
        result = runner.invoke(app, ["init-db"])

        assert result.exit_code == 0
        assert "Database ready" in result.stdout
        assert (isolated_env / "db" / "test.db").exists()


class TestDueCommand:
    """Tests for `practice due`."""

    def test_unknown_user_exits(self):
        result = runner.invoke(app, ["due", "--email", "ghost@example.com"])

        assert result.exit_code == 1
        assert "✗" in result.stdout

    def test_nothing_due(self, user):
        result = runner.invoke(app, ["due", "-e", user.email])

        assert result.exit_code == 0
        assert "Nothing due for review" in result.stdout

    def test_lists_due_problems(self, user):
        add_problem(
            user.id,
            is_review=True,
            next_review_date=to_iso(utc_now() - timedelta(days=1)),
        )

        result = runner.invoke(app, ["due", "-e", user.email])

        assert result.exit_code == 0
        assert "Due for review (1)" in result.stdout
        assert "Two Sum" in result.stdout


class TestCleanupPotdCommand:
    """Tests for `practice cleanup-potd`."""

    @pytest.fixture
    def expired(self, user):
        return add_problem(
            user.id,
            title="Old POTD",
            url="https://leetcode.com/problems/old/",
            source="potd",
            date_solved=to_iso(utc_now() - timedelta(days=30)),
        )

    def test_dry_run_keeps_problem(self, user, expired):
        result = runner.invoke(app, ["cleanup-potd", "-e", user.email, "--dry-run"])

        assert result.exit_code == 0
        assert "Dry run" in result.stdout
        assert problems_repository.get_problem(user.id, expired.id) is not None

    def test_removes_expired(self, user, expired):
        result = runner.invoke(app, ["cleanup-potd", "-e", user.email])

        assert result.exit_code == 0
        assert problems_repository.get_problem(user.id, expired.id) is None


class TestServeCommand:
    def test_runs_uvicorn(self):
        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(app, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        mock_run.assert_called_once_with(
            "practice.web.api:app", host="127.0.0.1", port=9000, reload=False
        )

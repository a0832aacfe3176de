"""SQLite database connection and schema management.

Provides connection management and schema initialization for the practice
tracker. List and dict fields are stored as JSON text.
"""

from __future__ import annotations

import json
import secrets
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

import structlog

from practice.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

# Explicit database location (set by init_db), else the configured path
_db_path: Path | None = None
_schema_ready: set[Path] = set()


class RepositoryError(Exception):
    """Error reading or writing records."""

    pass


class NotFoundError(RepositoryError):
    """Record does not exist or belongs to another user."""

    pass


class DuplicateError(RepositoryError):
    """Record violates a uniqueness constraint."""

    pass


def new_id() -> str:
    """New 24-hex-character record id."""
    return secrets.token_hex(12)


def to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def from_json(value: str | None, default: Any) -> Any:
    if value is None or value == "":
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        logger.warning("db_invalid_json", value=value[:50])
        return default


def current_db_path() -> Path:
    return _db_path or Path(load_app_config().database_path)


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to the configured path
    """
    global _db_path
    _db_path = db_path or Path(load_app_config().database_path)

    with get_db() as conn:
        _create_schema(conn)
    _schema_ready.add(_db_path)

    logger.info("database_initialized", path=str(_db_path))


def reset_db_path() -> None:
    """Forget the path set by init_db and fall back to the configured one."""
    global _db_path
    _db_path = None
    _schema_ready.clear()


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Commits on success and rolls back on error. The schema is created on
    first use of a database file.

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM problems").fetchall()
    """
    db_path = current_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        if db_path not in _schema_ready:
            _create_schema(conn)
            _schema_ready.add(db_path)
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            settings TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS problems (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            platform TEXT NOT NULL CHECK(platform IN ('leetcode', 'codeforces', 'atcoder')),
            title TEXT NOT NULL,
            url TEXT NOT NULL,
            problem_id TEXT NOT NULL DEFAULT '',
            difficulty TEXT NOT NULL DEFAULT '',
            date_solved TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            notes TEXT NOT NULL DEFAULT '',
            is_review INTEGER NOT NULL DEFAULT 0,
            repetition INTEGER NOT NULL DEFAULT 0,
            interval INTEGER NOT NULL DEFAULT 0,
            next_review_date TEXT,
            topics TEXT NOT NULL DEFAULT '[]',
            status TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active', 'learned')),
            companies TEXT NOT NULL DEFAULT '[]',
            source TEXT NOT NULL DEFAULT 'manual' CHECK(source IN ('manual', 'company', 'potd')),
            code_snippet TEXT,
            code_language TEXT,
            code_filename TEXT,
            sub_patterns TEXT NOT NULL DEFAULT '[]',
            struggles TEXT NOT NULL DEFAULT '[]',
            learnings TEXT NOT NULL DEFAULT '[]',
            solution_summary TEXT,
            time_complexity TEXT,
            space_complexity TEXT,
            review_history TEXT NOT NULL DEFAULT '[]',
            average_quality REAL,
            last_review_quality INTEGER,
            UNIQUE(user_id, url)
        );

        CREATE TABLE IF NOT EXISTS contests (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            platform TEXT NOT NULL,
            start_time TEXT NOT NULL,
            duration INTEGER NOT NULL,
            url TEXT NOT NULL DEFAULT '',
            rank INTEGER,
            problems_solved INTEGER NOT NULL DEFAULT 0,
            total_problems INTEGER,
            status TEXT NOT NULL DEFAULT 'scheduled',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS todos (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            priority TEXT NOT NULL DEFAULT 'medium',
            status TEXT NOT NULL DEFAULT 'pending',
            category TEXT NOT NULL DEFAULT 'other',
            due_date TEXT,
            completed_at TEXT,
            tags TEXT NOT NULL DEFAULT '[]',
            estimated_time INTEGER,
            actual_time INTEGER,
            notes TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS flashcards (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            front TEXT NOT NULL,
            back TEXT NOT NULL,
            category TEXT NOT NULL,
            difficulty TEXT NOT NULL,
            tags TEXT NOT NULL DEFAULT '[]',
            review_count INTEGER NOT NULL DEFAULT 0,
            correct_count INTEGER NOT NULL DEFAULT 0,
            last_reviewed TEXT,
            next_review TEXT,
            confidence INTEGER NOT NULL DEFAULT 1 CHECK(confidence BETWEEN 1 AND 5),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS learning_paths (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            description TEXT NOT NULL,
            category TEXT NOT NULL,
            estimated_duration INTEGER NOT NULL,
            difficulty TEXT NOT NULL,
            topics TEXT NOT NULL DEFAULT '[]',
            milestones TEXT NOT NULL DEFAULT '[]',
            progress TEXT NOT NULL DEFAULT '{}',
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS code_templates (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            description TEXT NOT NULL,
            language TEXT NOT NULL,
            category TEXT NOT NULL,
            pattern TEXT NOT NULL,
            code TEXT NOT NULL,
            usage TEXT NOT NULL,
            time_complexity TEXT NOT NULL,
            space_complexity TEXT NOT NULL,
            tags TEXT NOT NULL DEFAULT '[]',
            is_public INTEGER NOT NULL DEFAULT 0,
            usage_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        -- Cached failure analysis / suggestions per user and problem
        CREATE TABLE IF NOT EXISTS suggestions (
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            problem_id TEXT NOT NULL,
            result TEXT NOT NULL,
            created_at TEXT NOT NULL,
            PRIMARY KEY (user_id, problem_id)
        );

        CREATE INDEX IF NOT EXISTS idx_problems_user ON problems(user_id);
        CREATE INDEX IF NOT EXISTS idx_problems_review ON problems(user_id, is_review, next_review_date);
        CREATE INDEX IF NOT EXISTS idx_contests_user ON contests(user_id, start_time);
        CREATE INDEX IF NOT EXISTS idx_todos_user ON todos(user_id, status);
        CREATE INDEX IF NOT EXISTS idx_flashcards_user ON flashcards(user_id, next_review);
        CREATE INDEX IF NOT EXISTS idx_paths_user ON learning_paths(user_id);
        CREATE INDEX IF NOT EXISTS idx_templates_user ON code_templates(user_id, category);
        CREATE INDEX IF NOT EXISTS idx_templates_public ON code_templates(is_public, category);
        """
    )

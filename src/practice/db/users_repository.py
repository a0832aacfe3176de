"""Repository functions for the users table."""

from __future__ import annotations

import sqlite3
from dataclasses import asdict

import structlog

from practice.core.models import User, UserSettings
from practice.db.database import DuplicateError, NotFoundError, from_json, get_db, new_id, to_json
from practice.utils.dates import to_iso, utc_now

logger = structlog.get_logger(__name__)


def create_user(email: str, username: str, password_hash: str) -> User:
    """Insert a new user.

    Args:
        email: Lowercased, sanitized email
        username: Sanitized username
        password_hash: bcrypt hash

    Raises:
        DuplicateError: If email or username is taken
    """
    now = to_iso(utc_now())
    user = User(
        id=new_id(),
        email=email,
        username=username,
        password_hash=password_hash,
        created_at=now,
        updated_at=now,
    )
    try:
        with get_db() as conn:
            conn.execute(
                """
                INSERT INTO users (id, email, username, password_hash, settings, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user.id,
                    user.email,
                    user.username,
                    user.password_hash,
                    to_json(asdict(user.settings)),
                    user.created_at,
                    user.updated_at,
                ),
            )
    except sqlite3.IntegrityError as e:
        raise DuplicateError("User with this email or username already exists") from e

    logger.info("user_created", user_id=user.id)
    return user


def get_user_by_email(email: str) -> User | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE email = ?", (email.lower().strip(),)
        ).fetchone()
    return _row_to_record(row) if row else None


def get_user_by_id(user_id: str) -> User | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return _row_to_record(row) if row else None


def require_user_by_email(email: str) -> User:
    """Like get_user_by_email, but raises NotFoundError for unknown emails."""
    user = get_user_by_email(email)
    if user is None:
        raise NotFoundError(f"No user with email: {email}")
    return user


def _row_to_record(row: sqlite3.Row) -> User:
    settings_data = from_json(row["settings"], {})
    defaults = UserSettings()
    settings = UserSettings(
        review_intervals=list(settings_data.get("review_intervals", defaults.review_intervals)),
        enable_notifications=bool(
            settings_data.get("enable_notifications", defaults.enable_notifications)
        ),
        theme=settings_data.get("theme", defaults.theme),
        timezone=settings_data.get("timezone", defaults.timezone),
    )
    return User(
        id=row["id"],
        email=row["email"],
        username=row["username"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        settings=settings,
    )

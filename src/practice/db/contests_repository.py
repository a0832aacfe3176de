"""Repository functions for the contests table."""

from __future__ import annotations

import sqlite3
from dataclasses import fields
from typing import Any

import structlog

from practice.core.models import Contest
from practice.db.database import get_db, new_id
from practice.utils.dates import to_iso, utc_now

logger = structlog.get_logger(__name__)

COLUMNS = [f.name for f in fields(Contest)]
UPDATABLE_COLUMNS = set(COLUMNS) - {"id", "user_id", "created_at", "updated_at"}


def _row_to_record(row: sqlite3.Row) -> Contest:
    return Contest(**{column: row[column] for column in COLUMNS})


def create_contest(user_id: str, data: dict[str, Any]) -> Contest:
    now = to_iso(utc_now())
    known = {k: v for k, v in data.items() if k in UPDATABLE_COLUMNS and v is not None}
    contest = Contest(id=new_id(), user_id=user_id, created_at=now, updated_at=now, **known)

    with get_db() as conn:
        conn.execute(
            f"INSERT INTO contests ({', '.join(COLUMNS)}) VALUES ({', '.join('?' for _ in COLUMNS)})",
            [getattr(contest, c) for c in COLUMNS],
        )

    logger.debug("contest_created", contest_id=contest.id, user_id=user_id)
    return contest


def get_contest(user_id: str, contest_id: str) -> Contest | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM contests WHERE id = ? AND user_id = ?", (contest_id, user_id)
        ).fetchone()
    return _row_to_record(row) if row else None


def list_contests(
    user_id: str,
    platform: str | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Contest]:
    """A user's contests, most recent start first."""
    clauses = ["user_id = ?"]
    params: list[Any] = [user_id]
    if platform:
        clauses.append("platform = ?")
        params.append(platform)
    if status:
        clauses.append("status = ?")
        params.append(status)

    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM contests WHERE {' AND '.join(clauses)} "
            "ORDER BY start_time DESC LIMIT ? OFFSET ?",
            params + [limit, offset],
        ).fetchall()
    return [_row_to_record(row) for row in rows]


def update_contest(user_id: str, contest_id: str, changes: dict[str, Any]) -> Contest | None:
    updates = {k: v for k, v in changes.items() if k in UPDATABLE_COLUMNS}
    if not updates:
        return get_contest(user_id, contest_id)

    updates["updated_at"] = to_iso(utc_now())
    assignments = ", ".join(f"{column} = ?" for column in updates)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE contests SET {assignments} WHERE id = ? AND user_id = ?",
            list(updates.values()) + [contest_id, user_id],
        )
        if cursor.rowcount == 0:
            return None
    return get_contest(user_id, contest_id)


def delete_contest(user_id: str, contest_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM contests WHERE id = ? AND user_id = ?", (contest_id, user_id)
        )
    return cursor.rowcount > 0

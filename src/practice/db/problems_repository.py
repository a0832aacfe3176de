"""Repository functions for the problems table.

Every query is scoped by user_id; a problem owned by another user is
reported as missing.
"""

from __future__ import annotations

import sqlite3
from dataclasses import fields
from typing import Any

import structlog

from practice.core.models import Problem, ReviewEntry
from practice.db.database import DuplicateError, from_json, get_db, new_id, to_json
from practice.utils.dates import to_iso, utc_now

logger = structlog.get_logger(__name__)

COLUMNS = [f.name for f in fields(Problem)]
JSON_COLUMNS = {"topics", "companies", "sub_patterns", "struggles", "learnings", "review_history"}
BOOL_COLUMNS = {"is_review"}

# Fields a client may set directly
UPDATABLE_COLUMNS = set(COLUMNS) - {"id", "user_id", "created_at", "updated_at"}

DEFAULT_LIST_LIMIT = 100


def _encode(column: str, value: Any) -> Any:
    if column == "review_history":
        return to_json([e.to_dict() if isinstance(e, ReviewEntry) else e for e in value or []])
    if column in JSON_COLUMNS:
        return to_json(list(value or []))
    if column in BOOL_COLUMNS:
        return int(bool(value))
    return value


def _row_to_record(row: sqlite3.Row) -> Problem:
    data: dict[str, Any] = {}
    for column in COLUMNS:
        value = row[column]
        if column == "review_history":
            value = [ReviewEntry.from_dict(e) for e in from_json(value, [])]
        elif column in JSON_COLUMNS:
            value = from_json(value, [])
        elif column in BOOL_COLUMNS:
            value = bool(value)
        data[column] = value
    return Problem(**data)


def build_problem(user_id: str, data: dict[str, Any]) -> Problem:
    """New Problem from client data, with defaults filled in."""
    now = to_iso(utc_now())
    known = {k: v for k, v in data.items() if k in UPDATABLE_COLUMNS and v is not None}
    if not known.get("date_solved"):
        known["date_solved"] = now
    return Problem(
        id=new_id(),
        user_id=user_id,
        created_at=now,
        updated_at=now,
        **known,
    )


def insert_problem(problem: Problem) -> Problem:
    """Insert a problem record.

    Raises:
        DuplicateError: If the user already tracks a problem with this URL
    """
    placeholders = ", ".join("?" for _ in COLUMNS)
    values = [_encode(c, getattr(problem, c)) for c in COLUMNS]
    try:
        with get_db() as conn:
            conn.execute(
                f"INSERT INTO problems ({', '.join(COLUMNS)}) VALUES ({placeholders})",
                values,
            )
    except sqlite3.IntegrityError as e:
        if "UNIQUE" in str(e):
            raise DuplicateError("Problem with this URL already exists") from e
        raise

    logger.debug("problem_inserted", problem_id=problem.id, user_id=problem.user_id)
    return problem


def create_problem(user_id: str, data: dict[str, Any]) -> Problem:
    return insert_problem(build_problem(user_id, data))


def url_exists(user_id: str, url: str) -> bool:
    with get_db() as conn:
        row = conn.execute(
            "SELECT 1 FROM problems WHERE user_id = ? AND url = ?", (user_id, url)
        ).fetchone()
    return row is not None


def get_problem(user_id: str, problem_id: str) -> Problem | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM problems WHERE id = ? AND user_id = ?", (problem_id, user_id)
        ).fetchone()
    return _row_to_record(row) if row else None


def list_problems(
    user_id: str,
    platform: str | None = None,
    status: str | None = None,
    is_review: bool | None = None,
    company: str | None = None,
    topic: str | None = None,
    limit: int | None = DEFAULT_LIST_LIMIT,
    offset: int = 0,
) -> list[Problem]:
    """List a user's problems, newest first.

    Args:
        user_id: Owner
        platform: Only this platform
        status: Only 'active' or 'learned'
        is_review: Only problems in (or out of) the review cycle
        company: Only problems tagged with this company
        topic: Only problems tagged with this topic
        limit: Maximum rows (None for all)
        offset: Rows to skip
    """
    clauses = ["user_id = ?"]
    params: list[Any] = [user_id]

    if platform:
        clauses.append("platform = ?")
        params.append(platform)
    if status:
        clauses.append("status = ?")
        params.append(status)
    if is_review is not None:
        clauses.append("is_review = ?")
        params.append(int(is_review))
    if company:
        clauses.append("EXISTS (SELECT 1 FROM json_each(problems.companies) WHERE value = ?)")
        params.append(company)
    if topic:
        clauses.append("EXISTS (SELECT 1 FROM json_each(problems.topics) WHERE value = ?)")
        params.append(topic)

    sql = f"SELECT * FROM problems WHERE {' AND '.join(clauses)} ORDER BY created_at DESC, rowid DESC"
    if limit is not None:
        sql += " LIMIT ? OFFSET ?"
        params.extend([limit, offset])

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_record(row) for row in rows]


def update_problem(user_id: str, problem_id: str, changes: dict[str, Any]) -> Problem | None:
    """Apply a partial update. Unknown fields are ignored.

    Returns:
        Updated problem, or None if not found

    Raises:
        DuplicateError: If the new URL collides with another problem
    """
    updates = {k: v for k, v in changes.items() if k in UPDATABLE_COLUMNS}
    if not updates:
        return get_problem(user_id, problem_id)

    updates["updated_at"] = to_iso(utc_now())
    assignments = ", ".join(f"{column} = ?" for column in updates)
    values = [_encode(c, v) for c, v in updates.items()]

    try:
        with get_db() as conn:
            cursor = conn.execute(
                f"UPDATE problems SET {assignments} WHERE id = ? AND user_id = ?",
                values + [problem_id, user_id],
            )
            if cursor.rowcount == 0:
                return None
    except sqlite3.IntegrityError as e:
        if "UNIQUE" in str(e):
            raise DuplicateError("Problem with this URL already exists") from e
        raise

    logger.debug("problem_updated", problem_id=problem_id, fields=sorted(updates))
    return get_problem(user_id, problem_id)


def save_problem(problem: Problem) -> Problem:
    """Persist every mutable field of an existing problem."""
    changes = {c: getattr(problem, c) for c in UPDATABLE_COLUMNS}
    updated = update_problem(problem.user_id, problem.id, changes)
    return updated or problem


def delete_problem(user_id: str, problem_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM problems WHERE id = ? AND user_id = ?", (problem_id, user_id)
        )
    return cursor.rowcount > 0


def delete_problems(user_id: str, problem_ids: list[str]) -> int:
    """Delete several problems. Returns how many were removed."""
    if not problem_ids:
        return 0
    placeholders = ", ".join("?" for _ in problem_ids)
    with get_db() as conn:
        cursor = conn.execute(
            f"DELETE FROM problems WHERE user_id = ? AND id IN ({placeholders})",
            [user_id, *problem_ids],
        )
    logger.info("problems_deleted", user_id=user_id, count=cursor.rowcount)
    return cursor.rowcount

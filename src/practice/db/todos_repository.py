"""Repository functions for the todos table.

completed_at is stamped the first time a todo moves to ``completed`` and
cleared whenever it moves to any other status.
"""

from __future__ import annotations

import sqlite3
from dataclasses import fields
from typing import Any

import structlog

from practice.core.models import Todo
from practice.db.database import from_json, get_db, new_id, to_json
from practice.utils.dates import to_iso, utc_now

logger = structlog.get_logger(__name__)

COLUMNS = [f.name for f in fields(Todo)]
UPDATABLE_COLUMNS = set(COLUMNS) - {"id", "user_id", "created_at", "updated_at", "completed_at"}

# Sort order for priorities, most urgent first
PRIORITY_RANK = {"urgent": 0, "high": 1, "medium": 2, "low": 3}


def _row_to_record(row: sqlite3.Row) -> Todo:
    data = {column: row[column] for column in COLUMNS}
    data["tags"] = from_json(data["tags"], [])
    return Todo(**data)


def _encode(column: str, value: Any) -> Any:
    return to_json(list(value or [])) if column == "tags" else value


def create_todo(user_id: str, data: dict[str, Any]) -> Todo:
    now = to_iso(utc_now())
    known = {k: v for k, v in data.items() if k in UPDATABLE_COLUMNS and v is not None}
    todo = Todo(id=new_id(), user_id=user_id, created_at=now, updated_at=now, **known)
    if todo.status == "completed":
        todo.completed_at = now

    with get_db() as conn:
        conn.execute(
            f"INSERT INTO todos ({', '.join(COLUMNS)}) VALUES ({', '.join('?' for _ in COLUMNS)})",
            [_encode(c, getattr(todo, c)) for c in COLUMNS],
        )

    logger.debug("todo_created", todo_id=todo.id, user_id=user_id)
    return todo


def get_todo(user_id: str, todo_id: str) -> Todo | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM todos WHERE id = ? AND user_id = ?", (todo_id, user_id)
        ).fetchone()
    return _row_to_record(row) if row else None


def list_todos(
    user_id: str,
    status: str | None = None,
    priority: str | None = None,
    category: str | None = None,
) -> list[Todo]:
    """A user's todos, most urgent first, then newest."""
    clauses = ["user_id = ?"]
    params: list[Any] = [user_id]
    for column, value in (("status", status), ("priority", priority), ("category", category)):
        if value:
            clauses.append(f"{column} = ?")
            params.append(value)

    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM todos WHERE {' AND '.join(clauses)} ORDER BY created_at DESC",
            params,
        ).fetchall()
    todos = [_row_to_record(row) for row in rows]
    todos.sort(key=lambda t: PRIORITY_RANK.get(t.priority, len(PRIORITY_RANK)))
    return todos


def update_todo(user_id: str, todo_id: str, changes: dict[str, Any]) -> Todo | None:
    todo = get_todo(user_id, todo_id)
    if todo is None:
        return None

    updates = {k: v for k, v in changes.items() if k in UPDATABLE_COLUMNS}
    now = to_iso(utc_now())
    if "status" in updates:
        if updates["status"] == "completed":
            updates["completed_at"] = todo.completed_at or now
        else:
            updates["completed_at"] = None
    if not updates:
        return todo

    updates["updated_at"] = now
    assignments = ", ".join(f"{column} = ?" for column in updates)
    with get_db() as conn:
        conn.execute(
            f"UPDATE todos SET {assignments} WHERE id = ? AND user_id = ?",
            [_encode(c, v) for c, v in updates.items()] + [todo_id, user_id],
        )
    return get_todo(user_id, todo_id)


def delete_todo(user_id: str, todo_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM todos WHERE id = ? AND user_id = ?", (todo_id, user_id)
        )
    return cursor.rowcount > 0

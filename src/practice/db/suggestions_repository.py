"""Cache of failure analysis and suggestions per user and problem."""

from __future__ import annotations

from typing import Any

import structlog

from practice.db.database import from_json, get_db, to_json
from practice.utils.dates import to_iso, utc_now

logger = structlog.get_logger(__name__)


def get_cached_result(user_id: str, problem_id: str) -> dict[str, Any] | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT result FROM suggestions WHERE user_id = ? AND problem_id = ?",
            (user_id, problem_id),
        ).fetchone()
    if row is None:
        return None
    return from_json(row["result"], None)


def get_cached_entry(user_id: str, problem_id: str) -> dict[str, Any] | None:
    """Cached analysis plus the time it was generated (``generated_at``)."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT result, created_at FROM suggestions WHERE user_id = ? AND problem_id = ?",
            (user_id, problem_id),
        ).fetchone()
    if row is None:
        return None
    result = from_json(row["result"], None)
    if not isinstance(result, dict):
        return None
    return {**result, "generated_at": row["created_at"]}


def save_result(user_id: str, problem_id: str, result: dict[str, Any]) -> None:
    """Store (or replace) the analysis of a problem."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO suggestions (user_id, problem_id, result, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, problem_id) DO UPDATE SET
                result = excluded.result,
                created_at = excluded.created_at
            """,
            (user_id, problem_id, to_json(result), to_iso(utc_now())),
        )
    logger.debug("suggestions_cached", user_id=user_id, problem_id=problem_id)


def clear_result(user_id: str, problem_id: str) -> None:
    with get_db() as conn:
        conn.execute(
            "DELETE FROM suggestions WHERE user_id = ? AND problem_id = ?",
            (user_id, problem_id),
        )

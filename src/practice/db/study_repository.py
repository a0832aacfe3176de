"""Repository functions for flashcards, learning paths and code templates."""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, fields
from datetime import timedelta
from typing import Any

import structlog

from practice.core.models import CodeTemplate, Flashcard, LearningPath, Milestone, PathProgress
from practice.db.database import from_json, get_db, new_id, to_json
from practice.utils.dates import to_iso, utc_now

logger = structlog.get_logger(__name__)

DEFAULT_REQUIRED_PROBLEMS = 5

FLASHCARD_COLUMNS = [f.name for f in fields(Flashcard)]
PATH_COLUMNS = [f.name for f in fields(LearningPath)]
TEMPLATE_COLUMNS = [f.name for f in fields(CodeTemplate)]


# =============================================================================
# FLASHCARDS
# =============================================================================


def _row_to_flashcard(row: sqlite3.Row) -> Flashcard:
    data = {column: row[column] for column in FLASHCARD_COLUMNS}
    data["tags"] = from_json(data["tags"], [])
    return Flashcard(**data)


def create_flashcard(
    user_id: str,
    title: str,
    front: str,
    back: str,
    category: str,
    difficulty: str,
    tags: list[str] | None = None,
) -> Flashcard:
    now = to_iso(utc_now())
    card = Flashcard(
        id=new_id(),
        user_id=user_id,
        title=title.strip(),
        front=front.strip(),
        back=back.strip(),
        category=category,
        difficulty=difficulty,
        tags=list(tags or []),
        created_at=now,
        updated_at=now,
    )
    with get_db() as conn:
        conn.execute(
            f"INSERT INTO flashcards ({', '.join(FLASHCARD_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in FLASHCARD_COLUMNS)})",
            [to_json(card.tags) if c == "tags" else getattr(card, c) for c in FLASHCARD_COLUMNS],
        )

    logger.debug("flashcard_created", flashcard_id=card.id, user_id=user_id)
    return card


def get_flashcard(user_id: str, flashcard_id: str) -> Flashcard | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM flashcards WHERE id = ? AND user_id = ?", (flashcard_id, user_id)
        ).fetchone()
    return _row_to_flashcard(row) if row else None


def list_flashcards(
    user_id: str,
    category: str | None = None,
    difficulty: str | None = None,
    due_before: str | None = None,
    limit: int = 50,
    page: int = 1,
) -> tuple[list[Flashcard], int]:
    """A page of flashcards, recently updated first, plus the total count.

    Args:
        due_before: Only cards never reviewed or due at/before this timestamp
    """
    clauses = ["user_id = ?"]
    params: list[Any] = [user_id]
    if category:
        clauses.append("category = ?")
        params.append(category)
    if difficulty:
        clauses.append("difficulty = ?")
        params.append(difficulty)
    if due_before:
        clauses.append("(next_review IS NULL OR next_review <= ?)")
        params.append(due_before)
    where = " AND ".join(clauses)

    with get_db() as conn:
        total = conn.execute(f"SELECT COUNT(*) FROM flashcards WHERE {where}", params).fetchone()[0]
        rows = conn.execute(
            f"SELECT * FROM flashcards WHERE {where} ORDER BY updated_at DESC LIMIT ? OFFSET ?",
            params + [limit, (page - 1) * limit],
        ).fetchall()
    return [_row_to_flashcard(row) for row in rows], total


def save_flashcard_review(card: Flashcard) -> Flashcard:
    """Persist the review counters and schedule of a card."""
    with get_db() as conn:
        conn.execute(
            """
            UPDATE flashcards
            SET review_count = ?, correct_count = ?, confidence = ?,
                last_reviewed = ?, next_review = ?, updated_at = ?
            WHERE id = ? AND user_id = ?
            """,
            (
                card.review_count,
                card.correct_count,
                card.confidence,
                card.last_reviewed,
                card.next_review,
                card.updated_at,
                card.id,
                card.user_id,
            ),
        )
    return card


# =============================================================================
# LEARNING PATHS
# =============================================================================


def _row_to_path(row: sqlite3.Row) -> LearningPath:
    data = {column: row[column] for column in PATH_COLUMNS}
    data["topics"] = from_json(data["topics"], [])
    data["milestones"] = [Milestone(**m) for m in from_json(data["milestones"], [])]
    data["progress"] = PathProgress(**from_json(data["progress"], {}))
    data["is_active"] = bool(data["is_active"])
    return LearningPath(**data)


def _encode_path(path: LearningPath, column: str) -> Any:
    value = getattr(path, column)
    if column == "topics":
        return to_json(value)
    if column == "milestones":
        return to_json([asdict(m) for m in value])
    if column == "progress":
        return to_json(asdict(value))
    if column == "is_active":
        return int(value)
    return value


def create_learning_path(
    user_id: str,
    name: str,
    description: str,
    category: str,
    estimated_duration: int,
    difficulty: str,
    topics: list[str] | None = None,
    milestones: list[dict[str, Any]] | None = None,
) -> LearningPath:
    """Create a path; milestone ids are ``milestone-N`` in order."""
    now = utc_now()
    built = [
        Milestone(
            id=f"milestone-{index + 1}",
            title=m.get("title") or f"Milestone {index + 1}",
            description=m.get("description") or "",
            required_problems=m.get("required_problems") or DEFAULT_REQUIRED_PROBLEMS,
            topics=list(m.get("topics") or []),
        )
        for index, m in enumerate(milestones or [])
    ]
    path = LearningPath(
        id=new_id(),
        user_id=user_id,
        name=name.strip(),
        description=description.strip(),
        category=category,
        estimated_duration=estimated_duration,
        difficulty=difficulty,
        topics=list(topics or []),
        milestones=built,
        progress=PathProgress(
            total_problems=sum(m.required_problems for m in built),
            started_at=to_iso(now),
            estimated_completion=to_iso(now + timedelta(days=estimated_duration)),
        ),
        created_at=to_iso(now),
        updated_at=to_iso(now),
    )
    with get_db() as conn:
        conn.execute(
            f"INSERT INTO learning_paths ({', '.join(PATH_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in PATH_COLUMNS)})",
            [_encode_path(path, c) for c in PATH_COLUMNS],
        )

    logger.info("learning_path_created", path_id=path.id, milestones=len(built))
    return path


def get_learning_path(user_id: str, path_id: str) -> LearningPath | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM learning_paths WHERE id = ? AND user_id = ?", (path_id, user_id)
        ).fetchone()
    return _row_to_path(row) if row else None


def list_learning_paths(
    user_id: str,
    category: str | None = None,
    difficulty: str | None = None,
    is_active: bool | None = None,
) -> list[LearningPath]:
    """A user's paths, active first, then recently updated."""
    clauses = ["user_id = ?"]
    params: list[Any] = [user_id]
    if category:
        clauses.append("category = ?")
        params.append(category)
    if difficulty:
        clauses.append("difficulty = ?")
        params.append(difficulty)
    if is_active is not None:
        clauses.append("is_active = ?")
        params.append(int(is_active))

    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM learning_paths WHERE {' AND '.join(clauses)} "
            "ORDER BY is_active DESC, updated_at DESC",
            params,
        ).fetchall()
    return [_row_to_path(row) for row in rows]


def complete_milestone(user_id: str, path_id: str, milestone_id: str) -> LearningPath | None:
    """Mark a milestone done and recompute progress.

    Returns:
        Updated path, or None if the path or milestone does not exist
    """
    path = get_learning_path(user_id, path_id)
    if path is None:
        return None
    milestone = next((m for m in path.milestones if m.id == milestone_id), None)
    if milestone is None:
        return None

    now = to_iso(utc_now())
    if not milestone.is_completed:
        milestone.is_completed = True
        milestone.completed_at = now

    completed = [m for m in path.milestones if m.is_completed]
    path.progress.completed_milestones = len(completed)
    path.progress.solved_problems = sum(m.required_problems for m in completed)
    path.progress.current_milestone = next(
        (i for i, m in enumerate(path.milestones) if not m.is_completed),
        len(path.milestones),
    )
    path.updated_at = now

    with get_db() as conn:
        conn.execute(
            "UPDATE learning_paths SET milestones = ?, progress = ?, updated_at = ? "
            "WHERE id = ? AND user_id = ?",
            (
                _encode_path(path, "milestones"),
                _encode_path(path, "progress"),
                path.updated_at,
                path.id,
                user_id,
            ),
        )

    logger.info(
        "milestone_completed",
        path_id=path_id,
        milestone_id=milestone_id,
        completed=path.progress.completed_milestones,
    )
    return path


# =============================================================================
# CODE TEMPLATES
# =============================================================================


def _row_to_template(row: sqlite3.Row) -> CodeTemplate:
    data = {column: row[column] for column in TEMPLATE_COLUMNS}
    data["tags"] = from_json(data["tags"], [])
    data["is_public"] = bool(data["is_public"])
    return CodeTemplate(**data)


def _encode_template(template: CodeTemplate, column: str) -> Any:
    value = getattr(template, column)
    if column == "tags":
        return to_json(value)
    if column == "is_public":
        return int(value)
    return value


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def create_code_template(
    user_id: str,
    name: str,
    description: str,
    language: str,
    category: str,
    pattern: str,
    code: str,
    usage: str,
    time_complexity: str | None = None,
    space_complexity: str | None = None,
    tags: list[str] | None = None,
    is_public: bool = False,
) -> CodeTemplate:
    """Store a template; text fields are trimmed, complexities default to O(?)."""
    now = to_iso(utc_now())
    template = CodeTemplate(
        id=new_id(),
        user_id=user_id,
        name=name.strip(),
        description=description.strip(),
        language=language,
        category=category,
        pattern=pattern.strip(),
        code=code.strip(),
        usage=usage.strip(),
        time_complexity=time_complexity or "O(?)",
        space_complexity=space_complexity or "O(?)",
        tags=list(tags or []),
        is_public=is_public,
        created_at=now,
        updated_at=now,
    )
    with get_db() as conn:
        conn.execute(
            f"INSERT INTO code_templates ({', '.join(TEMPLATE_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in TEMPLATE_COLUMNS)})",
            [_encode_template(template, c) for c in TEMPLATE_COLUMNS],
        )

    logger.debug("code_template_created", template_id=template.id, user_id=user_id)
    return template


def list_code_templates(
    user_id: str,
    language: str | None = None,
    category: str | None = None,
    pattern: str | None = None,
    include_public: bool = False,
) -> list[CodeTemplate]:
    """A user's templates (plus public ones if asked), most used first.

    Args:
        pattern: Case-insensitive substring of the template's pattern
    """
    owner = "(user_id = ? OR is_public = 1)" if include_public else "user_id = ?"
    clauses = [owner]
    params: list[Any] = [user_id]
    if language:
        clauses.append("language = ?")
        params.append(language)
    if category:
        clauses.append("category = ?")
        params.append(category)
    if pattern:
        clauses.append("pattern LIKE ? ESCAPE '\\'")
        params.append(_like_pattern(pattern))

    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM code_templates WHERE {' AND '.join(clauses)} "
            "ORDER BY usage_count DESC, updated_at DESC",
            params,
        ).fetchall()
    return [_row_to_template(row) for row in rows]

"""Todo endpoints."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, status

from practice.db import todos_repository
from practice.security.auth import TokenPayload
from practice.web.dependencies import get_current_user, not_found, object_id_or_400
from practice.web.responses import ok
from practice.web.schemas import TodoCreate, TodoUpdate

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/todos", tags=["todos"])


@router.get("")
async def list_todos(
    status_filter: str | None = Query(default=None, alias="status"),
    priority: str | None = None,
    category: str | None = None,
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    """List todos, most urgent first."""
    todos = todos_repository.list_todos(
        user.id, status=status_filter, priority=priority, category=category
    )
    return ok([t.to_dict() for t in todos], count=len(todos))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_todo(
    body: TodoCreate, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    todo = todos_repository.create_todo(user.id, body.model_dump())
    return ok(todo.to_dict())


@router.get("/{todo_id}")
async def get_todo(todo_id: str, user: TokenPayload = Depends(get_current_user)) -> dict[str, Any]:
    todo = todos_repository.get_todo(user.id, object_id_or_400(todo_id, "todo ID"))
    if todo is None:
        raise not_found("Todo")
    return ok(todo.to_dict())


@router.put("/{todo_id}")
async def update_todo(
    todo_id: str,
    body: TodoUpdate,
    user: TokenPayload = Depends(get_current_user),
) -> dict[str, Any]:
    todo = todos_repository.update_todo(
        user.id, object_id_or_400(todo_id, "todo ID"), body.model_dump(exclude_unset=True)
    )
    if todo is None:
        raise not_found("Todo")
    return ok(todo.to_dict())


@router.delete("/{todo_id}")
async def delete_todo(
    todo_id: str, user: TokenPayload = Depends(get_current_user)
) -> dict[str, Any]:
    if not todos_repository.delete_todo(user.id, object_id_or_400(todo_id, "todo ID")):
        raise not_found("Todo")
    return ok(message="Todo deleted successfully")

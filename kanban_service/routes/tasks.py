"""Kanban task endpoints.

Implements:
- POST   /kanban/tasks
- GET    /kanban/tasks/{task_id}
- PATCH  /kanban/tasks/{task_id}        (fields; column_id/position delegate to move)
- POST   /kanban/tasks/{task_id}/move   (drag-and-drop, possibly across columns)
- DELETE /kanban/tasks/{task_id}
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response

from kanban_service.guards.dependencies import get_board, require_actor
from kanban_service.logic.board import Board
from kanban_service.models.kanban import (
    CreateTaskRequest,
    MoveTaskRequest,
    PlacementOut,
    Task,
    UpdateTaskRequest,
)

router = APIRouter(prefix="/kanban")
logger = logging.getLogger(__name__)


def _field_values(payload, exclude: set[str]) -> dict:  # type: ignore[no-untyped-def]
    values = payload.model_dump(exclude_unset=True, exclude=exclude)
    due = values.get("due_date")
    if due is not None:
        values["due_date"] = due.isoformat()
    return values


@router.post("/tasks", response_model=Task, status_code=201)
def create_task(
    payload: CreateTaskRequest,
    actor: str = Depends(require_actor),
    board: Board = Depends(get_board),
) -> dict:
    fields = _field_values(payload, exclude={"column_id", "position"})
    fields.setdefault("title", payload.title)
    task = board.create_task(payload.column_id, fields, actor, position=payload.position)
    logger.info("tasks.create id=%s column=%s position=%s", task["id"], task["column_id"], task["position"])
    return task


@router.get("/tasks/{task_id}", response_model=Task)
def get_task(task_id: str, board: Board = Depends(get_board)) -> dict:
    return board.get_task(task_id)


@router.patch("/tasks/{task_id}", response_model=Task)
def update_task(
    task_id: str,
    payload: UpdateTaskRequest,
    actor: str = Depends(require_actor),
    board: Board = Depends(get_board),
) -> dict:
    fields = _field_values(payload, exclude={"column_id", "position"})
    return board.update_task(
        task_id,
        fields,
        actor,
        column_id=payload.column_id,
        position=payload.position,
    )


@router.post("/tasks/{task_id}/move", response_model=PlacementOut)
def move_task(
    task_id: str,
    payload: MoveTaskRequest,
    actor: str = Depends(require_actor),
    board: Board = Depends(get_board),
) -> dict:
    placement = board.move_task(task_id, payload.target_column_id, payload.target_index, actor)
    return {"id": placement.record_id, "parent_id": placement.parent_key, "position": placement.position}


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(
    task_id: str,
    actor: str = Depends(require_actor),
    board: Board = Depends(get_board),
) -> Response:
    board.delete_task(task_id, actor)
    return Response(status_code=204)


__all__ = ["router"]

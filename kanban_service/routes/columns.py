"""Kanban column endpoints.

Implements:
- GET    /kanban/columns/project/{project_id}
- GET    /kanban/columns/{column_id}
- POST   /kanban/columns
- PATCH  /kanban/columns/{column_id}
- DELETE /kanban/columns/{column_id}
- POST   /kanban/columns/{column_id}/reorder            (task order in a column)
- POST   /kanban/projects/{project_id}/columns/reorder  (column order in a project)

Ordering failures propagate as ``OrderingError`` and are rendered by the
global problem+json handler.
"""

from __future__ import annotations

from typing import List
import logging

from fastapi import APIRouter, Depends, Response

from kanban_service.guards.dependencies import get_board, require_actor
from kanban_service.logic.board import Board
from kanban_service.models.kanban import (
    Column,
    CreateColumnRequest,
    ReorderRequest,
    ReorderResult,
    UpdateColumnRequest,
)

router = APIRouter(prefix="/kanban")
logger = logging.getLogger(__name__)


@router.get("/columns/project/{project_id}", response_model=List[Column])
def list_project_columns(project_id: str, board: Board = Depends(get_board)) -> list:
    return board.list_columns(project_id)


@router.get("/columns/{column_id}", response_model=Column)
def get_column(column_id: str, board: Board = Depends(get_board)) -> dict:
    return board.get_column(column_id)


@router.post("/columns", response_model=Column, status_code=201)
def create_column(
    payload: CreateColumnRequest,
    actor: str = Depends(require_actor),
    board: Board = Depends(get_board),
) -> dict:
    column = board.create_column(payload.project_id, payload.name, actor, position=payload.position)
    logger.info("columns.create id=%s project=%s", column["id"], payload.project_id)
    return column


@router.patch("/columns/{column_id}", response_model=Column)
def update_column(
    column_id: str,
    payload: UpdateColumnRequest,
    actor: str = Depends(require_actor),
    board: Board = Depends(get_board),
) -> dict:
    return board.update_column(column_id, actor, name=payload.name, position=payload.position)


@router.delete("/columns/{column_id}", status_code=204)
def delete_column(
    column_id: str,
    actor: str = Depends(require_actor),
    board: Board = Depends(get_board),
) -> Response:
    board.delete_column(column_id, actor)
    return Response(status_code=204)


@router.post("/columns/{column_id}/reorder", response_model=ReorderResult)
def reorder_column_tasks(
    column_id: str,
    payload: ReorderRequest,
    actor: str = Depends(require_actor),
    board: Board = Depends(get_board),
) -> dict:
    board.reorder_tasks(column_id, payload.ordered_ids, actor)
    return {"success": True, "ordered_ids": payload.ordered_ids}


@router.post("/projects/{project_id}/columns/reorder", response_model=ReorderResult)
def reorder_project_columns(
    project_id: str,
    payload: ReorderRequest,
    actor: str = Depends(require_actor),
    board: Board = Depends(get_board),
) -> dict:
    board.reorder_columns(project_id, payload.ordered_ids, actor)
    return {"success": True, "ordered_ids": payload.ordered_ids}


__all__ = ["router"]

"""Kanban board operations built on two ordered collections.

Tasks are ordered within their column and columns within their project; each
family has its own ``OrderedCollectionManager``. ``Board`` combines them with
the repositories so route handlers make one call per request.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.engine import Connection, Engine

from kanban_service.config import AppConfig
from kanban_service.logging_setup import ORDERING_LOGGER
from kanban_service.logic.access_guard import ProjectMembershipGuard
from kanban_service.logic.errors import NotFound
from kanban_service.logic.ordering import OrderedCollectionManager, Placement
from kanban_service.logic.position_store import COLUMNS_BY_PROJECT, TASKS_BY_COLUMN, PositionStore
from kanban_service.logic import repository_columns as columns_repo
from kanban_service.logic import repository_tasks as tasks_repo


class Board:
    def __init__(
        self,
        engine: Engine,
        tasks: OrderedCollectionManager,
        columns: OrderedCollectionManager,
    ) -> None:
        self.engine = engine
        self.tasks = tasks
        self.columns = columns

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------
    def list_columns(self, project_id: str) -> List[Dict[str, Any]]:
        if not columns_repo.project_exists(self.engine, project_id):
            raise NotFound(f"project {project_id!r} not found", project_id=project_id)
        return columns_repo.list_columns_for_project(self.engine, project_id)

    def get_column(self, column_id: str) -> Dict[str, Any]:
        column = columns_repo.get_column(self.engine, column_id)
        if column is None:
            raise NotFound(f"column {column_id!r} not found", column_id=column_id)
        return column

    def create_column(
        self,
        project_id: str,
        name: str,
        actor: Optional[str],
        position: Optional[int] = None,
    ) -> Dict[str, Any]:
        column_id = str(uuid.uuid4())

        def _create(conn: Connection, tail: int) -> str:
            return columns_repo.insert_column_row(conn, column_id, project_id, name, tail)

        self.columns.insert(project_id, _create, actor, index=position)
        return self.get_column(column_id)

    def update_column(
        self,
        column_id: str,
        actor: Optional[str],
        name: Optional[str] = None,
        position: Optional[int] = None,
    ) -> Dict[str, Any]:
        column = self.get_column(column_id)

        def _rename(conn: Connection, record_id: str) -> None:
            if name is not None and not columns_repo.rename_column(conn, record_id, name):
                raise NotFound(f"column {record_id!r} not found", column_id=record_id)

        if position is not None:
            self.columns.move(column_id, column["project_id"], position, actor, on_move=_rename)
        elif name is not None:
            # Rename only: still an edit of the project's board
            self.columns.authorize(actor, column["project_id"])
            with self.engine.begin() as conn:
                _rename(conn, column_id)
        return self.get_column(column_id)

    def delete_column(self, column_id: str, actor: Optional[str]) -> Placement:
        # The column is also a task group; moves into it must not interleave
        with self.tasks.store.hold_groups([column_id]):
            return self.columns.remove(column_id, actor, on_delete=columns_repo.delete_tasks_of_column)

    def reorder_columns(self, project_id: str, ordered_ids: Sequence[str], actor: Optional[str]) -> None:
        self.columns.reorder(project_id, ordered_ids, actor)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------
    def get_task(self, task_id: str) -> Dict[str, Any]:
        task = tasks_repo.get_task(self.engine, task_id)
        if task is None:
            raise NotFound(f"task {task_id!r} not found", task_id=task_id)
        return task

    def create_task(
        self,
        column_id: str,
        fields: Mapping[str, Any],
        actor: Optional[str],
        position: Optional[int] = None,
    ) -> Dict[str, Any]:
        task_id = str(uuid.uuid4())

        def _create(conn: Connection, tail: int) -> str:
            return tasks_repo.insert_task_row(conn, task_id, column_id, fields, tail)

        self.tasks.insert(column_id, _create, actor, index=position)
        return self.get_task(task_id)

    def update_task(
        self,
        task_id: str,
        fields: Mapping[str, Any],
        actor: Optional[str],
        column_id: Optional[str] = None,
        position: Optional[int] = None,
    ) -> Dict[str, Any]:
        task = self.get_task(task_id)
        target = column_id or task["column_id"]

        def _apply(conn: Connection, record_id: str) -> None:
            if fields and not tasks_repo.update_task_fields(conn, record_id, fields):
                raise NotFound(f"task {record_id!r} not found", task_id=record_id)

        if position is not None or target != task["column_id"]:
            self.tasks.move(task_id, target, position, actor, on_move=_apply)
        else:
            self.tasks.authorize(actor, task["column_id"])
            with self.engine.begin() as conn:
                _apply(conn, task_id)
        return self.get_task(task_id)

    def move_task(
        self,
        task_id: str,
        target_column_id: str,
        target_index: Optional[int],
        actor: Optional[str],
    ) -> Placement:
        return self.tasks.move(task_id, target_column_id, target_index, actor)

    def reorder_tasks(self, column_id: str, ordered_ids: Sequence[str], actor: Optional[str]) -> None:
        self.tasks.reorder(column_id, ordered_ids, actor)

    def delete_task(self, task_id: str, actor: Optional[str]) -> Placement:
        return self.tasks.remove(task_id, actor)


def build_board(engine: Engine, config: AppConfig, log: Optional[logging.Logger] = None) -> Board:
    """Wire stores, guards and managers for one engine."""
    timeout = config.ordering.lock_timeout_ms
    log = log or logging.getLogger(ORDERING_LOGGER)
    tasks = OrderedCollectionManager(
        PositionStore(engine, TASKS_BY_COLUMN, lock_timeout_ms=timeout),
        ProjectMembershipGuard(engine, scope="column"),
        logger=log,
    )
    columns = OrderedCollectionManager(
        PositionStore(engine, COLUMNS_BY_PROJECT, lock_timeout_ms=timeout),
        ProjectMembershipGuard(engine, scope="project"),
        logger=log,
    )
    return Board(engine, tasks=tasks, columns=columns)


__all__ = ["Board", "build_board"]

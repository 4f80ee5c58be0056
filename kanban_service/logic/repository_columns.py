"""Kanban column data access helpers.

Keeps route handlers free of inline SQL. Column positions are never written
here except for the tail slot handed out by the ordering manager on insert.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine

from kanban_service.logic.repository_tasks import list_tasks_for_columns


def _column_row(row: Any) -> Dict[str, Any]:
    return {
        "id": str(row[0]),
        "project_id": str(row[1]),
        "name": row[2],
        "position": int(row[3]),
    }


def insert_column_row(conn: Connection, column_id: str, project_id: str, name: str, position: int) -> str:
    conn.execute(
        sql_text(
            "INSERT INTO kanban_columns (id, project_id, name, position) "
            "VALUES (:id, :project_id, :name, :position)"
        ),
        {"id": column_id, "project_id": project_id, "name": name, "position": int(position)},
    )
    return column_id


def rename_column(conn: Connection, column_id: str, name: str) -> bool:
    result = conn.execute(
        sql_text("UPDATE kanban_columns SET name = :name WHERE id = :id"),
        {"name": name, "id": column_id},
    )
    return result.rowcount == 1


def delete_tasks_of_column(conn: Connection, column_id: str) -> int:
    result = conn.execute(
        sql_text("DELETE FROM kanban_tasks WHERE column_id = :cid"),
        {"cid": column_id},
    )
    return int(result.rowcount or 0)


def get_column(engine: Engine, column_id: str) -> Optional[Dict[str, Any]]:
    """Return a column with its tasks in display order, or None."""
    with engine.connect() as conn:
        row = conn.execute(
            sql_text("SELECT id, project_id, name, position FROM kanban_columns WHERE id = :id"),
            {"id": column_id},
        ).fetchone()
        if row is None:
            return None
        column = _column_row(row)
        column["tasks"] = list_tasks_for_columns(conn, [column["id"]]).get(column["id"], [])
    return column


def list_columns_for_project(engine: Engine, project_id: str) -> List[Dict[str, Any]]:
    """Return the project's columns by position, each with its ordered tasks."""
    with engine.connect() as conn:
        rows = conn.execute(
            sql_text(
                "SELECT id, project_id, name, position FROM kanban_columns "
                "WHERE project_id = :pid ORDER BY position ASC, id ASC"
            ),
            {"pid": project_id},
        ).fetchall()
        columns = [_column_row(r) for r in rows]
        tasks_by_column = list_tasks_for_columns(conn, [c["id"] for c in columns])
    for column in columns:
        column["tasks"] = tasks_by_column.get(column["id"], [])
    return columns


def project_exists(engine: Engine, project_id: str) -> bool:
    with engine.connect() as conn:
        row = conn.execute(
            sql_text("SELECT 1 FROM projects WHERE id = :pid LIMIT 1"),
            {"pid": project_id},
        ).fetchone()
    return row is not None


__all__ = [
    "insert_column_row",
    "rename_column",
    "delete_tasks_of_column",
    "get_column",
    "list_columns_for_project",
    "project_exists",
]

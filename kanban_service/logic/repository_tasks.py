"""Kanban task data access helpers.

Handles the task fields that are opaque to ordering (title, priority, ...).
``column_id`` and ``position`` are owned by the ordering manager.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import bindparam, text as sql_text
from sqlalchemy.engine import Connection, Engine

# Fields a client may edit directly through PATCH
EDITABLE_FIELDS = ("title", "description", "priority", "status", "due_date", "assignee_id")

_SELECT_TASK = (
    "SELECT id, column_id, title, description, priority, status, due_date, assignee_id, position "
    "FROM kanban_tasks"
)


def _task_row(row: Any) -> Dict[str, Any]:
    due = row[6]
    return {
        "id": str(row[0]),
        "column_id": str(row[1]),
        "title": row[2],
        "description": row[3],
        "priority": row[4],
        "status": row[5],
        "due_date": due.isoformat() if hasattr(due, "isoformat") else due,
        "assignee_id": row[7],
        "position": int(row[8]),
    }


def insert_task_row(
    conn: Connection,
    task_id: str,
    column_id: str,
    fields: Mapping[str, Any],
    position: int,
) -> str:
    conn.execute(
        sql_text(
            "INSERT INTO kanban_tasks "
            "(id, column_id, title, description, priority, status, due_date, assignee_id, position) "
            "VALUES (:id, :column_id, :title, :description, :priority, :status, :due_date, :assignee_id, :position)"
        ),
        {
            "id": task_id,
            "column_id": column_id,
            "title": fields["title"],
            "description": fields.get("description"),
            "priority": fields.get("priority") or "media",
            "status": fields.get("status") or "pendiente",
            "due_date": fields.get("due_date"),
            "assignee_id": fields.get("assignee_id"),
            "position": int(position),
        },
    )
    return task_id


def update_task_fields(conn: Connection, task_id: str, fields: Mapping[str, Any]) -> bool:
    """Apply editable field changes within the caller's transaction; unknown keys are ignored."""
    changes = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
    if not changes:
        row = conn.execute(sql_text("SELECT 1 FROM kanban_tasks WHERE id = :id"), {"id": task_id}).fetchone()
        return row is not None
    assignments = ", ".join(f"{k} = :{k}" for k in changes)
    result = conn.execute(
        sql_text(
            f"UPDATE kanban_tasks SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = :task_id"
        ),
        {**changes, "task_id": task_id},
    )
    return result.rowcount == 1


def get_task(engine: Engine, task_id: str) -> Optional[Dict[str, Any]]:
    with engine.connect() as conn:
        row = conn.execute(sql_text(f"{_SELECT_TASK} WHERE id = :id"), {"id": task_id}).fetchone()
    return _task_row(row) if row is not None else None


def list_tasks_for_columns(conn: Connection, column_ids: Sequence[str]) -> Dict[str, List[Dict[str, Any]]]:
    """Group tasks by column, each list ordered by position."""
    if not column_ids:
        return {}
    stmt = sql_text(
        f"{_SELECT_TASK} WHERE column_id IN :cids ORDER BY column_id ASC, position ASC, id ASC"
    ).bindparams(bindparam("cids", expanding=True))
    grouped: Dict[str, List[Dict[str, Any]]] = {str(c): [] for c in column_ids}
    for row in conn.execute(stmt, {"cids": list(column_ids)}).fetchall():
        task = _task_row(row)
        grouped.setdefault(task["column_id"], []).append(task)
    return grouped


__all__ = [
    "EDITABLE_FIELDS",
    "insert_task_row",
    "update_task_fields",
    "get_task",
    "list_tasks_for_columns",
]

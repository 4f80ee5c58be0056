"""Functional test bootstrap for the Kanban service.

Each test gets its own file-backed SQLite database under ``tmp_path`` with the
SQLite migrations applied, plus a small seeded board:

- users ``u-owner`` (creates project ``p-1``), ``u-member`` (in team ``t-1``
  linked to ``p-1``) and ``u-outsider`` (no access)
- project ``p-2`` owned by ``u-outsider``
- columns ``col-1`` and ``col-2`` (positions 0, 1) in ``p-1``; ``col-x`` in ``p-2``
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable

import pytest
from sqlalchemy import text as sql_text

from kanban_service.config import AppConfig, DatabaseConfig, OrderingConfig, ServiceConfig
from kanban_service.db.base import get_engine, reset_engine
from kanban_service.db.migrations_runner import apply_migrations
from kanban_service.logic.board import build_board
from kanban_service.logic.repository_tasks import insert_task_row

_ROOT = Path(__file__).resolve().parents[2]
SQLITE_MIGRATIONS = _ROOT / "sqlite_migrations"

OWNER = "u-owner"
MEMBER = "u-member"
OUTSIDER = "u-outsider"

_SEED = [
    ("INSERT INTO users (id, name, email) VALUES (:id, :name, :email)", [
        {"id": OWNER, "name": "Owner", "email": "owner@example.com"},
        {"id": MEMBER, "name": "Member", "email": "member@example.com"},
        {"id": OUTSIDER, "name": "Outsider", "email": "outsider@example.com"},
    ]),
    ("INSERT INTO projects (id, name, created_by) VALUES (:id, :name, :created_by)", [
        {"id": "p-1", "name": "ERP rollout", "created_by": OWNER},
        {"id": "p-2", "name": "Other", "created_by": OUTSIDER},
    ]),
    ("INSERT INTO teams (id, name) VALUES (:id, :name)", [{"id": "t-1", "name": "Core"}]),
    ("INSERT INTO team_members (team_id, user_id) VALUES (:team_id, :user_id)", [
        {"team_id": "t-1", "user_id": MEMBER},
    ]),
    ("INSERT INTO project_teams (project_id, team_id) VALUES (:project_id, :team_id)", [
        {"project_id": "p-1", "team_id": "t-1"},
    ]),
    ("INSERT INTO kanban_columns (id, project_id, name, position) VALUES (:id, :project_id, :name, :position)", [
        {"id": "col-1", "project_id": "p-1", "name": "Pendiente", "position": 0},
        {"id": "col-2", "project_id": "p-1", "name": "En progreso", "position": 1},
        {"id": "col-x", "project_id": "p-2", "name": "Backlog", "position": 0},
    ]),
]


def make_config(dsn: str, lock_timeout_ms: int = 2000) -> AppConfig:
    return AppConfig(
        database=DatabaseConfig(dsn=dsn),
        ordering=OrderingConfig(lock_timeout_ms=lock_timeout_ms),
        service=ServiceConfig(auto_apply_migrations=False, log_level="INFO"),
    )


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    return f"sqlite+pysqlite:///{tmp_path / 'kanban.db'}"


@pytest.fixture()
def engine(db_url: str, tmp_path: Path):
    eng = get_engine(db_url)
    apply_migrations(eng, SQLITE_MIGRATIONS, journal_path=tmp_path / "_journal.json")
    with eng.begin() as conn:
        for stmt, rows in _SEED:
            conn.execute(sql_text(stmt), rows)
    yield eng
    reset_engine()


@pytest.fixture()
def config(db_url: str) -> AppConfig:
    return make_config(db_url)


@pytest.fixture()
def board(engine, config):
    return build_board(engine, config)


@pytest.fixture()
def add_tasks(engine) -> Callable[[str, Iterable[str]], list[str]]:
    """Append tasks with the given ids to a column, bypassing the manager."""

    def _add(column_id: str, ids: Iterable[str]) -> list[str]:
        ids = list(ids)
        with engine.begin() as conn:
            start = conn.execute(
                sql_text("SELECT COUNT(*) FROM kanban_tasks WHERE column_id = :c"), {"c": column_id}
            ).scalar_one()
            for offset, task_id in enumerate(ids):
                insert_task_row(conn, task_id, column_id, {"title": task_id}, int(start) + offset)
        return ids

    return _add


@pytest.fixture()
def group_state(engine) -> Callable[[str], list[tuple[str, int]]]:
    """Return (id, position) pairs of a column as stored."""

    def _state(column_id: str, table: str = "kanban_tasks", group_column: str = "column_id") -> list[tuple[str, int]]:
        with engine.connect() as conn:
            rows = conn.execute(
                sql_text(f"SELECT id, position FROM {table} WHERE {group_column} = :g ORDER BY position"),
                {"g": column_id},
            ).fetchall()
        return [(str(r[0]), int(r[1])) for r in rows]

    return _state


@pytest.fixture()
def assert_invariant(group_state) -> Callable[..., list[str]]:
    """Assert a group holds positions 0..n-1 exactly once; return its ids."""

    def _check(group: str, **kwargs) -> list[str]:  # type: ignore[no-untyped-def]
        pairs = group_state(group, **kwargs)
        assert [pos for _, pos in pairs] == list(range(len(pairs)))
        assert len({rid for rid, _ in pairs}) == len(pairs)
        return [rid for rid, _ in pairs]

    return _check


@pytest.fixture()
def client(engine, config):
    """TestClient over an app bound to the seeded database."""
    from fastapi.testclient import TestClient

    from kanban_service.main import create_app

    with TestClient(create_app(config)) as c:
        yield c

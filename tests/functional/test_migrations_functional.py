"""SQL migrations runner against a scratch SQLite database."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text as sql_text
from sqlalchemy.exc import IntegrityError

SQLITE_MIGRATIONS = Path(__file__).resolve().parents[2] / "sqlite_migrations"


@pytest.fixture()
def scratch_engine(tmp_path):
    eng = create_engine(f"sqlite+pysqlite:///{tmp_path / 'scratch.db'}")
    yield eng
    eng.dispose()


def test_apply_is_journaled_and_idempotent(scratch_engine, tmp_path):
    from kanban_service.db.migrations_runner import apply_migrations

    journal = tmp_path / "journal.json"

    first = apply_migrations(scratch_engine, SQLITE_MIGRATIONS, journal_path=journal)
    second = apply_migrations(scratch_engine, SQLITE_MIGRATIONS, journal_path=journal)

    assert first == ["001_kanban_schema.sql"]
    assert second == []
    entries = json.loads(journal.read_text(encoding="utf-8"))
    assert [e["filename"] for e in entries] == ["sqlite_migrations/001_kanban_schema.sql"]
    assert entries[0]["applied_at"].endswith("Z")


def test_schema_rejects_duplicate_positions(scratch_engine, tmp_path):
    from kanban_service.db.migrations_runner import apply_migrations

    apply_migrations(scratch_engine, SQLITE_MIGRATIONS, journal_path=tmp_path / "journal.json")
    with scratch_engine.begin() as conn:
        conn.execute(sql_text("INSERT INTO users (id, name) VALUES ('u', 'U')"))
        conn.execute(sql_text("INSERT INTO projects (id, name, created_by) VALUES ('p', 'P', 'u')"))
        conn.execute(sql_text("INSERT INTO kanban_columns (id, project_id, name, position) VALUES ('c1', 'p', 'A', 0)"))

    with pytest.raises(IntegrityError):
        with scratch_engine.begin() as conn:
            conn.execute(
                sql_text("INSERT INTO kanban_columns (id, project_id, name, position) VALUES ('c2', 'p', 'B', 0)")
            )

"""Configuration loading: precedence of env, config/ files and kanban_config.json."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from kanban_service.config import load_config

_ENV_KEYS = (
    "DATABASE_URL",
    "DATABASE_SSL_REQUIRED",
    "ORDER_LOCK_TIMEOUT_MS",
    "AUTO_APPLY_MIGRATIONS",
    "LOG_LEVEL",
)


@pytest.fixture()
def workdir(tmp_path, monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults_without_sources(workdir):
    cfg = load_config()
    assert cfg.database.dsn == "sqlite+pysqlite:///:memory:"
    assert cfg.database.ssl_required is False
    assert cfg.ordering.lock_timeout_ms == 5000
    assert cfg.service.auto_apply_migrations is False
    assert cfg.service.log_level == "INFO"


def test_json_base_is_read(workdir):
    (workdir / "kanban_config.json").write_text(
        json.dumps(
            {
                "database": {"dsn": "postgresql://db/kanban", "ssl_required": True},
                "ordering": {"lock_timeout_ms": 1500},
                "service": {"auto_apply_migrations": True, "log_level": "debug"},
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config()

    assert cfg.database.dsn == "postgresql://db/kanban"
    assert cfg.database.ssl_required is True
    assert cfg.ordering.lock_timeout_ms == 1500
    assert cfg.service.auto_apply_migrations is True
    assert cfg.service.log_level == "DEBUG"


def test_config_files_override_json_and_env_overrides_files(workdir, monkeypatch):
    (workdir / "kanban_config.json").write_text(json.dumps({"ordering": {"lock_timeout_ms": 1500}}), encoding="utf-8")
    (workdir / "config").mkdir()
    (workdir / "config" / "ordering.lock_timeout_ms").write_text("2500\n", encoding="utf-8")
    (workdir / "config" / "database.url").write_text("sqlite+pysqlite:///from-file.db", encoding="utf-8")

    cfg = load_config()
    assert cfg.ordering.lock_timeout_ms == 2500
    assert cfg.database.dsn == "sqlite+pysqlite:///from-file.db"

    monkeypatch.setenv("ORDER_LOCK_TIMEOUT_MS", "300")
    monkeypatch.setenv("DATABASE_URL", "postgresql://env/kanban")
    cfg = load_config()
    assert cfg.ordering.lock_timeout_ms == 300
    assert cfg.database.dsn == "postgresql://env/kanban"


@pytest.mark.parametrize(
    "key, value",
    [
        ("ORDER_LOCK_TIMEOUT_MS", "0"),
        ("ORDER_LOCK_TIMEOUT_MS", "soon"),
        ("LOG_LEVEL", "chatty"),
    ],
)
def test_invalid_values_raise(workdir, monkeypatch, key, value):
    monkeypatch.setenv(key, value)
    with pytest.raises((ValidationError, ValueError)):
        load_config()

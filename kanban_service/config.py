"""Configuration utilities for the Kanban service.

This module loads application configuration with the following rules:
- Primary source: `kanban_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_KANBAN_CONFIG = Path("kanban_config.json")
logger = logging.getLogger(__name__)

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


def _truthy(value: object) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


class DatabaseConfig(BaseModel):
    dsn: str
    ssl_required: bool = Field(default=False)

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class OrderingConfig(BaseModel):
    # Upper bound on how long a reorder/move waits for a busy group
    lock_timeout_ms: int = Field(default=5000, gt=0)


class ServiceConfig(BaseModel):
    auto_apply_migrations: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = (v or "").strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"service.log_level must be one of {sorted(_LOG_LEVELS)}")
        return level


class AppConfig(BaseModel):
    database: DatabaseConfig
    ordering: OrderingConfig
    service: ServiceConfig


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:  # pragma: no cover - defensive
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) kanban_config.json at project root (primary base)
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_KANBAN_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    # Database
    dsn = (
        _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or "sqlite+pysqlite:///:memory:"
    )
    ssl_required_text = (
        _env("DATABASE_SSL_REQUIRED")
        or _read_config_file("database.ssl.required")
        or _base("database.ssl_required", "false")
    )

    # Ordering
    lock_timeout_text = (
        _env("ORDER_LOCK_TIMEOUT_MS")
        or _read_config_file("ordering.lock_timeout_ms")
        or _base("ordering.lock_timeout_ms", "5000")
    )

    # Service
    auto_migrate_text = (
        _env("AUTO_APPLY_MIGRATIONS")
        or _read_config_file("service.auto_apply_migrations")
        or _base("service.auto_apply_migrations", "false")
    )
    log_level = _env("LOG_LEVEL") or _read_config_file("service.log_level") or _base("service.log_level", "INFO")

    try:
        cfg = AppConfig(
            database=DatabaseConfig(dsn=dsn, ssl_required=_truthy(ssl_required_text)),
            ordering=OrderingConfig(lock_timeout_ms=int(str(lock_timeout_text).strip())),
            service=ServiceConfig(
                auto_apply_migrations=_truthy(auto_migrate_text),
                log_level=str(log_level),
            ),
        )
        return cfg
    except (PydanticValidationError, ValueError) as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "OrderingConfig",
    "ServiceConfig",
    "load_config",
]

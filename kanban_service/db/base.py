"""SQLAlchemy engine lifecycle.

The service targets PostgreSQL in production but supports SQLite for local
development and CI. No declarative models are defined here; this module only
manages connection lifecycle.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _db_url() -> str:
    return (
        os.getenv("TEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or "sqlite+pysqlite:///:memory:"
    )


def _busy_timeout_seconds() -> float:
    raw = os.getenv("ORDER_LOCK_TIMEOUT_MS", "5000")
    try:
        return max(int(raw), 1) / 1000.0
    except ValueError:
        logger.warning("Ignoring non-integer ORDER_LOCK_TIMEOUT_MS=%r", raw)
        return 5.0


def _enable_sqlite_foreign_keys(dbapi_conn, _record) -> None:  # type: ignore[no-untyped-def]
    # SQLite ignores REFERENCES / ON DELETE CASCADE unless enabled per connection
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Module-level cached Engine to ensure a single shared connection/engine
_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None


def get_engine(url: str | None = None) -> Engine:
    """Return a singleton SQLAlchemy Engine for the given URL.

    Reuses a module-level Engine so repositories share the same pool.
    For SQLite in-memory URLs, use a StaticPool to keep a single connection
    alive across sessions and threads during tests. File-backed SQLite gets
    a busy timeout so concurrent writers wait instead of failing at once.
    """
    global _ENGINE, _ENGINE_URL
    resolved_url = url or _db_url()

    if _ENGINE is None or _ENGINE_URL != resolved_url:
        kwargs: dict = {"future": True, "pool_pre_ping": True}
        if resolved_url.startswith("sqlite"):
            connect_args: dict = {"check_same_thread": False, "timeout": _busy_timeout_seconds()}
            if ":memory:" in resolved_url:
                # Keep a single in-memory DB connection shared across the process
                kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = connect_args
        if _ENGINE is not None:
            _ENGINE.dispose()
        _ENGINE = create_engine(resolved_url, **kwargs)
        if resolved_url.startswith("sqlite"):
            event.listen(_ENGINE, "connect", _enable_sqlite_foreign_keys)
        _ENGINE_URL = resolved_url

    return _ENGINE


def reset_engine() -> None:
    """Dispose the cached Engine so the next get_engine() builds a fresh one."""
    global _ENGINE, _ENGINE_URL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _ENGINE_URL = None

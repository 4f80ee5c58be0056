"""Database bootstrap utilities for the Kanban service.

This module exposes convenience imports for engine construction and an
optional migrations runner that applies SQL files from the local migrations/
directory. The DB layer is intentionally minimal and does not leak ORM models
into route handlers.
"""

from kanban_service.db.base import get_engine, reset_engine
from kanban_service.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "reset_engine",
    "apply_migrations",
]

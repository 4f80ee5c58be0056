from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from kanban_service.config import AppConfig, load_config
from kanban_service.logging_setup import configure_logging
from kanban_service.db.base import get_engine
from kanban_service.db.migrations_runner import apply_migrations
from kanban_service.routes import api_router
from kanban_service.http.problem import (
    handle_http_exception,
    handle_ordering_error,
    handle_request_validation_error,
    handle_unexpected_error,
)
from kanban_service.http.request_id import RequestIdMiddleware
from kanban_service.logic.board import build_board
from kanban_service.logic.errors import OrderingError

logger = logging.getLogger(__name__)


def _migrations_dir(engine: Engine) -> str:
    return "sqlite_migrations" if engine.dialect.name == "sqlite" else "migrations"


def _health_check(engine: Engine) -> Callable[[], dict]:
    def check() -> dict:
        try:
            with engine.connect() as conn:
                conn.execute(sql_text("SELECT 1"))
            return {"status": "ok", "db": True}
        except SQLAlchemyError as e:
            logger.error("Health DB check failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": str(e)}

    return check


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application.

    Loads configuration when none is given, wires one ``Board`` (ordering
    managers, stores and access guards) onto ``app.state`` and registers the
    problem+json exception handlers.
    """
    config = config or load_config()
    configure_logging(config.service.log_level)

    engine = get_engine(config.database.dsn)

    app = FastAPI(title="Kanban Service")
    app.state.config = config
    app.state.board = build_board(engine, config)

    app.add_exception_handler(OrderingError, handle_ordering_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.add_middleware(RequestIdMiddleware)

    # Apply migrations on startup (guarded) to avoid import-time side effects
    @app.on_event("startup")
    def _apply_migrations() -> None:  # pragma: no cover - exercised via integration
        if not config.service.auto_apply_migrations:
            logger.info("AUTO_APPLY_MIGRATIONS disabled; skipping migrations at startup")
            return
        try:
            applied = apply_migrations(engine, _migrations_dir(engine))
        except SQLAlchemyError:
            logger.error("Failed to apply migrations at startup", exc_info=True)
            raise
        logger.info("startup_migrations_applied files=%s", applied)

    app.include_router(api_router, prefix="/api/v1")

    health_check = _health_check(engine)

    @app.get("/health")
    def health() -> dict:
        return health_check()

    return app


# Intentionally do not instantiate the app at import time to prevent side effects.

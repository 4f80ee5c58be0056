"""FastAPI application package for the Kanban ordering service.

This package exposes a small FastAPI application factory. It wires only
cross-cutting middleware (request-id) and mounts the API routers. Ordering
rules live in `kanban_service/logic/` and route handlers in
`kanban_service/routes/`.
"""

from __future__ import annotations

from kanban_service.main import create_app

__all__ = ["create_app"]

"""APIRouter registration for the Kanban service."""

from __future__ import annotations

from fastapi import APIRouter

from kanban_service.routes.columns import router as columns_router
from kanban_service.routes.tasks import router as tasks_router

api_router = APIRouter()
api_router.include_router(columns_router, tags=["Kanban", "Columns"])
api_router.include_router(tasks_router, tags=["Kanban", "Tasks"])

__all__ = ["api_router"]

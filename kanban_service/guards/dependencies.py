"""Request dependencies shared by route modules.

Session handling belongs to the fronting web layer; by the time a request
reaches this service the authenticated user id travels in ``X-User-Id``.
Write routes depend on ``require_actor``; a missing header is a 401.
``get_board`` hands out the ``Board`` wired at application start.
"""

from __future__ import annotations

from typing import Optional
import logging

from fastapi import Header, HTTPException, Request

from kanban_service.logic.board import Board
from kanban_service.logic.problem_factory import problem_actor_missing


logger = logging.getLogger(__name__)


def require_actor(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> str:
    actor = (x_user_id or "").strip()
    if not actor:
        logger.info("actor.missing")
        raise HTTPException(status_code=401, detail=problem_actor_missing())
    return actor


def get_board(request: Request) -> Board:
    return request.app.state.board


__all__ = ["require_actor", "get_board"]

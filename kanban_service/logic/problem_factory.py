"""Centralised construction of problem+json payloads.

Maps ordering errors and request-level failures to RFC 7807 bodies with
stable ``code`` values, so route modules never embed status numbers or
error strings of their own.
"""

from __future__ import annotations

from typing import Dict, Optional
import logging

from kanban_service.logic.errors import InvalidOrderSet, InvariantViolation, OrderingError


logger = logging.getLogger(__name__)

# Seconds a client should wait before retrying transient failures
RETRY_AFTER_SECONDS = 1


def problem_from_ordering_error(exc: OrderingError, request_id: Optional[str] = None) -> Dict[str, object]:
    """Return the problem body for an ordering failure."""
    problem: Dict[str, object] = {
        "type": "about:blank",
        "title": exc.title,
        "status": exc.status,
        "detail": exc.detail,
        "code": exc.code,
    }
    if exc.retryable:
        problem["retryable"] = True
    if isinstance(exc, InvalidOrderSet):
        problem["missing"] = exc.missing
        problem["foreign"] = exc.foreign
        problem["duplicates"] = exc.duplicates
    if isinstance(exc, InvariantViolation):
        # Storage detail stays in the logs
        problem["detail"] = "position invariant violated"
    if request_id:
        problem["request_id"] = request_id

    if isinstance(exc, InvariantViolation):
        logger.error("error_handler.invariant code=%s detail=%s", exc.code, exc.detail)
    else:
        logger.info("error_handler.handle code=%s status=%s", exc.code, exc.status)
    return problem


def retry_headers(exc: OrderingError) -> Dict[str, str]:
    return {"Retry-After": str(RETRY_AFTER_SECONDS)} if exc.retryable else {}


def problem_actor_missing() -> Dict[str, object]:
    """Return a 401 problem indicating the acting user header is absent."""
    problem = {
        "title": "Unauthorized",
        "status": 401,
        "detail": "X-User-Id header is required",
        "code": "AUTH_ACTOR_MISSING",
    }
    logger.info("error_handler.handle code=%s", problem["code"])
    return problem


__all__ = [
    "RETRY_AFTER_SECONDS",
    "problem_from_ordering_error",
    "retry_headers",
    "problem_actor_missing",
]

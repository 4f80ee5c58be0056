"""Error taxonomy for ordered-collection operations.

Every failure the ordering layer reports is an ``OrderingError`` subclass
carrying a stable ``code``, an HTTP ``status`` and a problem ``title``.
Route handlers do not catch these; the global handler in
``kanban_service.http.problem`` renders them as problem+json.
"""

from __future__ import annotations

from typing import Any, Optional


class OrderingError(Exception):
    code = "ORDER_ERROR"
    status = 500
    title = "Internal Server Error"
    retryable = False

    def __init__(self, detail: str, **context: Any) -> None:
        super().__init__(detail)
        self.detail = detail
        self.context = context


class PermissionDenied(OrderingError):
    code = "ORDER_PERMISSION_DENIED"
    status = 403
    title = "Forbidden"


class InvalidOrderSet(OrderingError):
    """Submitted order does not match the group's current membership."""

    code = "ORDER_INVALID_SET"
    status = 409
    title = "Conflict"

    def __init__(
        self,
        detail: str,
        *,
        missing: Optional[list[str]] = None,
        foreign: Optional[list[str]] = None,
        duplicates: Optional[list[str]] = None,
        **context: Any,
    ) -> None:
        super().__init__(detail, **context)
        self.missing = sorted(missing or [])
        self.foreign = sorted(foreign or [])
        self.duplicates = sorted(duplicates or [])


class NotFound(OrderingError):
    code = "ORDER_NOT_FOUND"
    status = 404
    title = "Not Found"


class Timeout(OrderingError):
    code = "ORDER_TIMEOUT"
    status = 503
    title = "Service Unavailable"
    retryable = True


class Conflict(OrderingError):
    code = "ORDER_CONFLICT"
    status = 409
    title = "Conflict"
    retryable = True


class InvariantViolation(OrderingError):
    """Storage rejected a write that would break per-group position uniqueness."""

    code = "ORDER_INVARIANT_BROKEN"
    status = 500
    title = "Internal Server Error"


__all__ = [
    "OrderingError",
    "PermissionDenied",
    "InvalidOrderSet",
    "NotFound",
    "Timeout",
    "Conflict",
    "InvariantViolation",
]

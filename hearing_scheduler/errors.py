"""
Scheduling error types.

Every error carries a stable machine code that the API returns as ``error``.
Kept in one module so the service, the API handlers and the tests raise and
catch the same classes.
"""

from typing import Any, Dict, List, Optional


class SchedulingError(Exception):
    """Base class for errors surfaced to callers of the scheduling engine."""

    code = "INTERNAL_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(SchedulingError):
    """Malformed or missing input. Never retried automatically."""

    code = "VALIDATION_ERROR"
    http_status = 400


class ConflictError(SchedulingError):
    """Proposed hearing collides with existing scheduled hearings."""

    code = "CONFLICT"
    http_status = 409

    def __init__(self, conflicts: List[Any], message: str = "Hearing conflicts with existing schedules"):
        super().__init__(message)
        self.conflicts = list(conflicts)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["conflicts"] = [c.to_dict() for c in self.conflicts]
        return payload


class InternalError(SchedulingError):
    """Persistence or timeout failure. Safe to retry."""

    code = "INTERNAL_ERROR"
    http_status = 500


class NotFoundError(SchedulingError):
    code = "NOT_FOUND"
    http_status = 404


class ForbiddenError(SchedulingError):
    code = "FORBIDDEN"
    http_status = 403

"""Typed errors raised by the table-session and order lifecycle core.

Every error carries a stable machine ``code``, the HTTP status used when it
reaches the API edge and a human-readable ``message``.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for all lifecycle errors."""

    code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidTransition(DomainError):
    """Target state is not reachable from the current state."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, entity: str, current: Any, target: Any) -> None:
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            f"{entity} cannot move from {current_value} to {target_value}",
            {"entity": entity, "current": current_value, "target": target_value},
        )


class ValidationError(DomainError):
    """Bad or missing input; raised before any write."""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFound(DomainError):
    code = "NOT_FOUND"
    status_code = 404


class Forbidden(DomainError):
    """The actor's role lacks permission for the action."""

    code = "FORBIDDEN"
    status_code = 403


class Conflict(DomainError):
    """A concurrent transition already moved the entity past the expected state."""

    code = "CONFLICT"
    status_code = 409


class ExternalServiceFailure(DomainError):
    """A collaborator (stock, payment) failed.

    Only surfaced to callers when the failing call is the purpose of the
    operation; side-effect failures are logged and swallowed.
    """

    code = "EXTERNAL_SERVICE_FAILURE"
    status_code = 502


__all__ = [
    "DomainError",
    "InvalidTransition",
    "ValidationError",
    "NotFound",
    "Forbidden",
    "Conflict",
    "ExternalServiceFailure",
]

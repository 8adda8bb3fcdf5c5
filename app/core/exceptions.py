"""Domain exceptions raised by the service layer.

Each exception carries a machine-readable ``code``, a human message, optional
``details`` and the HTTP status the API layer should answer with. Handlers in
``app.core.errors`` translate them into the standard response envelope.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class DomainError(Exception):
    """Base exception for all loan dashboard errors."""

    status_code: int = 400
    code: str = "domain_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ValidationError(DomainError):
    """Raised when submitted data violates a field constraint."""

    status_code = 422
    code = "validation_error"

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None) -> None:
        merged = dict(details or {})
        if field:
            merged.setdefault("field", field)
        super().__init__(message, merged)
        self.field = field


class InsufficientBudget(DomainError):
    """Raised when a claim exceeds the remaining allocation of a line item."""

    status_code = 409
    code = "insufficient_budget"

    def __init__(self, requested: Decimal, remaining: Decimal, item_id: Any = None) -> None:
        details: dict[str, Any] = {"requested": str(requested), "remaining": str(remaining)}
        if item_id is not None:
            details["expenditure_item_id"] = str(item_id)
        super().__init__(
            f"Amount exceeds remaining budget: requested {requested}, remaining {remaining}",
            details,
        )
        self.requested = requested
        self.remaining = remaining


class InvalidTransition(DomainError):
    """Raised when an event is not legal from the current state."""

    status_code = 409
    code = "invalid_transition"

    def __init__(self, event: str, current: dict[str, Any], resource: str = "loan_application") -> None:
        summary = ", ".join(f"{key}={value}" for key, value in current.items())
        super().__init__(
            f"Cannot apply '{event}' to {resource} in state ({summary})",
            {"event": event, "current": current, "resource": resource},
        )
        self.event = event
        self.current = current


class UploadRejected(DomainError):
    """Raised when an uploaded file is too large or of a disallowed type."""

    status_code = 400
    code = "upload_rejected"


class NotFound(DomainError):
    status_code = 404
    code = "not_found"

    def __init__(self, resource: str, resource_id: Any = None) -> None:
        message = f"{resource} not found"
        details: dict[str, Any] = {"resource": resource}
        if resource_id is not None:
            message = f"{resource} '{resource_id}' not found"
            details["id"] = str(resource_id)
        super().__init__(message, details)


class Conflict(DomainError):
    """Raised on uniqueness clashes (duplicate email, key, reference number)."""

    status_code = 409
    code = "conflict"


class ConcurrentUpdate(DomainError):
    """Raised when an optimistic-lock check fails."""

    status_code = 409
    code = "concurrent_update"

    def __init__(self, resource: str = "record") -> None:
        super().__init__(
            f"The {resource} was modified by another request; reload and retry",
            {"resource": resource},
        )

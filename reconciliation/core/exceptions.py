"""Custom exception hierarchy for the reconciliation case service.

Every service-layer error inherits from ReconciliationError, giving the API
layer a single base class to catch and translate into structured JSON
responses. Subclasses carry domain-specific context (the full violation
list for validation failures, a details dict for debugging).
"""

from __future__ import annotations

from typing import Any


class ReconciliationError(Exception):
    """Base exception for all case-service errors."""

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.details: dict[str, Any] = details or {}
        super().__init__(message)


class ValidationError(ReconciliationError):
    """Raised when input fails field, enum, or cross-field validation.

    Carries every violation found, not just the first.
    """

    def __init__(
        self,
        errors: list[str],
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.errors = list(errors)
        merged = {"errors": self.errors, **(details or {})}
        super().__init__(f"Validation failed: {', '.join(self.errors)}", details=merged)


class NotFoundError(ReconciliationError):
    """Raised when a case, session, or person does not exist or is soft-deleted."""


class CapacityExceededError(ReconciliationError):
    """Raised when a mediator already holds the maximum number of active cases."""


class ReferentialIntegrityError(ReconciliationError):
    """Raised when a session attendee does not resolve to a known person."""


class InternalError(ReconciliationError):
    """Raised when persistence or a collaborator fails unexpectedly."""

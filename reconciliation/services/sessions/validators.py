"""Session field validation. Violations are collected and raised together."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

from reconciliation.core.exceptions import ValidationError
from reconciliation.models.domain import SessionType
from reconciliation.services.cases.validators import enum_violation

if TYPE_CHECKING:
    from reconciliation.models.domain import CaseSession
    from reconciliation.models.requests import SessionCreate, SessionUpdate

NEXT_DATE_BEFORE_SESSION = "Next session date cannot be before current session date"

_SESSION_TYPES = {member.value for member in SessionType}


def _date_order_violations(session_date: date | None, next_session_date: date | None) -> list[str]:
    if session_date is not None and next_session_date is not None:
        if next_session_date < session_date:
            return [NEXT_DATE_BEFORE_SESSION]
    return []


def validate_new_session(payload: SessionCreate) -> None:
    violations: list[str] = []

    if not payload.case_id:
        violations.append("Case ID is required")
    if payload.session_date is None:
        violations.append("Session date is required")
    if payload.session_type is not None and payload.session_type not in _SESSION_TYPES:
        violations.append(enum_violation("session type", SessionType))
    violations.extend(_date_order_violations(payload.session_date, payload.next_session_date))

    if violations:
        raise ValidationError(violations)


def validate_session_update(current: CaseSession, changes: SessionUpdate) -> dict[str, Any]:
    """Check a partial edit against the stored session; returns the fields to persist."""
    updates = changes.model_dump(exclude_unset=True)
    violations: list[str] = []

    if "session_date" in updates and updates["session_date"] is None:
        violations.append("Session date is required")
    session_type = updates.get("session_type")
    if "session_type" in updates and session_type not in _SESSION_TYPES:
        violations.append(enum_violation("session type", SessionType))

    session_date = updates.get("session_date") or current.session_date
    violations.extend(_date_order_violations(session_date, current.next_session_date))

    if violations:
        raise ValidationError(violations)
    return updates


def validate_next_session_date(session_date: date, next_session_date: date | None) -> None:
    violations = _date_order_violations(session_date, next_session_date)
    if violations:
        raise ValidationError(violations)

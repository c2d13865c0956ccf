"""Case field and cross-field validation.

Every rule runs on every call: violations are collected and raised together
as a single ValidationError, so a caller fixing a payload sees all problems
at once. Reference checks against the person directory happen later in the
registry and fail fast instead.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from reconciliation.core.exceptions import ValidationError
from reconciliation.models.domain import (
    CaseStatus,
    CaseType,
    ConfidentialityLevel,
    Priority,
)

if TYPE_CHECKING:
    from reconciliation.models.domain import Case
    from reconciliation.models.requests import CaseCreate, CaseUpdate

_REQUIRED: tuple[tuple[str, str], ...] = (
    ("title", "Case title is required"),
    ("case_type", "Case type is required"),
    ("filing_date", "Filing date is required"),
)

_ENUM_FIELDS: tuple[tuple[str, str, type[StrEnum]], ...] = (
    ("case_type", "case type", CaseType),
    ("status", "status", CaseStatus),
    ("priority", "priority", Priority),
    ("confidentiality", "confidentiality level", ConfidentialityLevel),
)


def enum_violation(label: str, enum_cls: type[StrEnum]) -> str:
    allowed = ", ".join(member.value for member in enum_cls)
    return f"Invalid {label}. Must be one of: {allowed}"


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _field_violations(fields: Mapping[str, Any], *, required: bool) -> list[str]:
    violations: list[str] = []

    for name, message in _REQUIRED:
        if name in fields or required:
            if _is_blank(fields.get(name)):
                violations.append(message)

    for name, label, enum_cls in _ENUM_FIELDS:
        value = fields.get(name)
        if value is not None and value not in {member.value for member in enum_cls}:
            violations.append(enum_violation(label, enum_cls))

    return violations


def _cross_field_violations(record: Mapping[str, Any]) -> list[str]:
    violations: list[str] = []

    plaintiff = record.get("plaintiff_id")
    defendant = record.get("defendant_id")
    if plaintiff and defendant and plaintiff == defendant:
        violations.append("Plaintiff and defendant cannot be the same person")

    filing_date = record.get("filing_date")
    settlement_date = record.get("settlement_date")
    if filing_date is not None and settlement_date is not None and settlement_date < filing_date:
        violations.append("Settlement date cannot be before filing date")

    amount = record.get("settlement_amount")
    if amount is not None and amount < 0:
        violations.append("Settlement amount cannot be negative")

    return violations


def validate_new_case(payload: CaseCreate) -> None:
    """Check a filing payload; raises ValidationError listing every violation."""
    fields = payload.model_dump()
    violations = _field_violations(fields, required=True) + _cross_field_violations(fields)
    if violations:
        raise ValidationError(violations)


def validate_case_update(current: Case, changes: CaseUpdate) -> dict[str, Any]:
    """Check a partial edit against the merged record.

    Returns only the fields the caller actually set, ready to persist.
    """
    updates = changes.model_dump(exclude_unset=True)
    merged = {**current.model_dump(), **updates}

    violations = _field_violations(updates, required=False) + _cross_field_violations(merged)
    if violations:
        raise ValidationError(violations)
    return updates

"""Inbound payload schemas.

Every request body is parsed through one of these models before reaching
the service layer. Enum-valued fields are typed as plain strings on purpose:
the case and session validators check membership themselves so that every
violation in a payload is reported together.
"""

from datetime import date, time
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from reconciliation.models.domain import Agreement, Attendee, DocumentRef

# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------


class CaseCreate(BaseModel):
    """Fields accepted when filing a new case."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    description: str | None = None
    case_type: str | None = None
    status: str | None = None
    priority: str | None = None
    confidentiality: str | None = None
    plaintiff_id: str | None = None
    defendant_id: str | None = None
    mediator_id: str | None = None
    filing_date: date | None = None
    settlement_date: date | None = None
    settlement_amount: Decimal | None = Field(default=None, decimal_places=2)
    settlement_terms: str | None = None
    follow_up_required: bool = False
    documents: list[DocumentRef] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class CaseUpdate(BaseModel):
    """Partial edit of a case. Status and mediator move through dedicated operations."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    description: str | None = None
    case_type: str | None = None
    priority: str | None = None
    confidentiality: str | None = None
    plaintiff_id: str | None = None
    defendant_id: str | None = None
    filing_date: date | None = None
    settlement_amount: Decimal | None = Field(default=None, decimal_places=2)
    settlement_terms: str | None = None
    follow_up_required: bool | None = None
    documents: list[DocumentRef] | None = None
    metadata: dict[str, Any] | None = None


class StatusUpdateRequest(BaseModel):
    """Move a case to a new status."""

    model_config = ConfigDict(frozen=True)

    status: str = Field(..., min_length=1)
    notes: str = ""


class MediatorAssignmentRequest(BaseModel):
    """Assign a mediator to a case."""

    model_config = ConfigDict(frozen=True)

    mediator_id: str = Field(..., min_length=1)


class SettlementRequest(BaseModel):
    """Record the settlement of a case."""

    model_config = ConfigDict(frozen=True)

    settlement_amount: Decimal | None = Field(default=None, decimal_places=2)
    settlement_terms: str | None = None
    settlement_date: date | None = None
    follow_up_required: bool | None = None


class CaseSearchFilters(BaseModel):
    """Optional filters narrowing a case listing."""

    model_config = ConfigDict(frozen=True)

    case_type: str | None = None
    status: str | None = None
    priority: str | None = None
    mediator_id: str | None = None
    plaintiff_id: str | None = None
    defendant_id: str | None = None
    filing_date_from: date | None = None
    filing_date_to: date | None = None
    settlement_date_from: date | None = None
    settlement_date_to: date | None = None
    search: str | None = Field(
        default=None,
        description="Matched against title and case number",
    )
    confidentiality_levels: list[str] | None = Field(
        default=None,
        description="Restrict to these confidentiality tiers, e.g. ['LOW', 'MEDIUM']",
    )


class StatisticsFilters(BaseModel):
    """Filters for aggregate case statistics."""

    model_config = ConfigDict(frozen=True)

    case_type: str | None = None
    filing_date_from: date | None = None
    filing_date_to: date | None = None


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionCreate(BaseModel):
    """Fields accepted when recording a session."""

    model_config = ConfigDict(frozen=True)

    case_id: str | None = None
    session_type: str | None = None
    session_date: date | None = None
    session_time: time | None = None
    location: str | None = None
    attendees: list[Attendee] = Field(default_factory=list)
    discussion_summary: str | None = None
    agreements: list[Agreement] = Field(default_factory=list)
    next_session_date: date | None = None
    documents: list[DocumentRef] = Field(default_factory=list)
    notes: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SessionUpdate(BaseModel):
    """Partial edit of a session's descriptive fields."""

    model_config = ConfigDict(frozen=True)

    session_type: str | None = None
    session_date: date | None = None
    session_time: time | None = None
    location: str | None = None
    discussion_summary: str | None = None
    documents: list[DocumentRef] | None = None
    metadata: dict[str, Any] | None = None


class SessionOutcome(BaseModel):
    """Outcome recorded after a session took place."""

    model_config = ConfigDict(frozen=True)

    agreements: list[Agreement] | None = Field(
        default=None,
        description="Replaces the stored agreements wholesale when given",
    )
    next_session_date: date | None = None
    notes: str | None = None


class SessionSearchFilters(BaseModel):
    """Optional filters narrowing a session listing."""

    model_config = ConfigDict(frozen=True)

    case_id: str | None = None
    session_type: str | None = None
    session_date_from: date | None = None
    session_date_to: date | None = None
    case_status: str | None = None
    search: str | None = Field(
        default=None,
        description="Matched against case number, case title and discussion summary",
    )

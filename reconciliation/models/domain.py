"""Core domain models and enumerations.

These are the canonical data shapes for the case service. Every service
produces or consumes these types — never raw dicts. Structured values
(attendees, agreements, documents) are typed records here and become JSON
only inside the repository layer.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class CaseType(StrEnum):
    """Kinds of dispute handled by the committee."""

    FAMILY_DISPUTE = "FAMILY_DISPUTE"
    FINANCIAL_DISPUTE = "FINANCIAL_DISPUTE"
    INHERITANCE = "INHERITANCE"
    MARITAL = "MARITAL"
    BUSINESS = "BUSINESS"
    OTHER = "OTHER"


class CaseStatus(StrEnum):
    """Lifecycle status of a case."""

    NEW = "NEW"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    MEDIATION = "MEDIATION"
    SETTLED = "SETTLED"
    DISMISSED = "DISMISSED"
    ESCALATED = "ESCALATED"


class Priority(StrEnum):
    """Case handling priority."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ConfidentialityLevel(StrEnum):
    """Visibility tier of a case; enforced by the caller, stored here."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    TOP_SECRET = "TOP_SECRET"


class SessionType(StrEnum):
    """Kinds of mediation session."""

    INITIAL = "INITIAL"
    MEDIATION = "MEDIATION"
    SETTLEMENT = "SETTLEMENT"
    FOLLOW_UP = "FOLLOW_UP"
    OTHER = "OTHER"


class CaseEventKind(StrEnum):
    """Kinds of entry in the append-only case audit log."""

    CASE_FILED = "CASE_FILED"
    STATUS_CHANGE = "STATUS_CHANGE"
    MEDIATOR_ASSIGNED = "MEDIATOR_ASSIGNED"
    CASE_SETTLED = "CASE_SETTLED"


class TimelineEventType(StrEnum):
    """Entry types of the reconstructed case timeline."""

    CASE_FILED = "CASE_FILED"
    STATUS_CHANGE = "STATUS_CHANGE"
    SESSION = "SESSION"
    SETTLED = "SETTLED"


ACTIVE_STATUSES: frozenset[CaseStatus] = frozenset(
    {CaseStatus.NEW, CaseStatus.ASSIGNED, CaseStatus.IN_PROGRESS, CaseStatus.MEDIATION}
)
TERMINAL_STATUSES: frozenset[CaseStatus] = frozenset(
    {CaseStatus.SETTLED, CaseStatus.DISMISSED, CaseStatus.ESCALATED}
)

# Display order for workload breakdowns; unknown statuses sort last.
STATUS_ORDER: dict[str, int] = {status.value: rank for rank, status in enumerate(CaseStatus, 1)}

PRIORITY_RANK: dict[str, int] = {
    Priority.URGENT: 4,
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}

CASE_NUMBER_PREFIXES: dict[str, str] = {
    CaseType.FAMILY_DISPUTE: "FD",
    CaseType.FINANCIAL_DISPUTE: "FI",
    CaseType.INHERITANCE: "IN",
    CaseType.MARITAL: "MA",
    CaseType.BUSINESS: "BU",
    CaseType.OTHER: "OT",
}
DEFAULT_CASE_NUMBER_PREFIX = "RC"


# ---------------------------------------------------------------------------
# Structured values stored inside cases and sessions
# ---------------------------------------------------------------------------


class DocumentRef(BaseModel):
    """Pointer to a document held by the external upload store."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(..., min_length=1)
    title: str | None = None
    file_path: str | None = None


class Attendee(BaseModel):
    """A person present at a session and the capacity they attended in."""

    model_config = ConfigDict(frozen=True)

    person_id: str = Field(..., min_length=1)
    role: str = Field(default="PARTICIPANT", min_length=1)


class Agreement(BaseModel):
    """A commitment recorded during a session."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(..., min_length=1)
    responsible_party_id: str | None = None
    due_date: date | None = None


class PersonProfile(BaseModel):
    """Subset of a person record returned by the person directory."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    person_id: str
    full_name: str | None = None
    email: str | None = None
    user_type: str | None = None


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class Case(BaseModel):
    """A dispute-resolution matter as stored."""

    model_config = ConfigDict(frozen=True)

    id: str
    case_number: str
    title: str
    description: str | None = None
    case_type: CaseType
    status: CaseStatus = CaseStatus.NEW
    priority: Priority = Priority.MEDIUM
    confidentiality: ConfidentialityLevel = ConfidentialityLevel.MEDIUM
    plaintiff_id: str | None = None
    defendant_id: str | None = None
    mediator_id: str | None = None
    filing_date: date
    settlement_date: date | None = None
    settlement_amount: Decimal | None = None
    settlement_terms: str | None = None
    follow_up_required: bool = False
    follow_up_date: date | None = None
    notes: str | None = None
    documents: list[DocumentRef] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    deleted_by: str | None = None


class CaseSession(BaseModel):
    """A mediation session recorded against a case."""

    model_config = ConfigDict(frozen=True)

    id: str
    case_id: str
    session_type: SessionType = SessionType.MEDIATION
    session_date: date
    session_time: time | None = None
    location: str | None = None
    attendees: list[Attendee] = Field(default_factory=list)
    discussion_summary: str | None = None
    agreements: list[Agreement] = Field(default_factory=list)
    next_session_date: date | None = None
    documents: list[DocumentRef] = Field(default_factory=list)
    notes: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


class CaseEvent(BaseModel):
    """One entry of the append-only case audit log."""

    model_config = ConfigDict(frozen=True)

    id: int
    case_id: str
    kind: CaseEventKind
    occurred_at: datetime
    actor_id: str | None = None
    previous_status: CaseStatus | None = None
    new_status: CaseStatus | None = None
    description: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)


class TimelineEvent(BaseModel):
    """One entry of the reconstructed, chronologically ordered case timeline."""

    model_config = ConfigDict(frozen=True)

    date: datetime
    event: TimelineEventType
    title: str
    description: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Read-side aggregates
# ---------------------------------------------------------------------------


class StatusCount(BaseModel):
    """Number of cases in one status."""

    model_config = ConfigDict(frozen=True)

    status: str
    case_count: int = Field(..., ge=0)


class MediatorWorkload(BaseModel):
    """Caseload and performance summary for one mediator."""

    model_config = ConfigDict(frozen=True)

    mediator_id: str
    workload_by_status: list[StatusCount]
    average_handling_days: int
    success_rate: float = Field(..., ge=0.0, le=100.0)
    total_active_cases: int = Field(..., ge=0)


class FollowUpCase(BaseModel):
    """A settled case awaiting its follow-up check."""

    model_config = ConfigDict(frozen=True)

    case: Case
    days_until_follow_up: int


class CaseDetails(BaseModel):
    """A case with resolved parties, sessions, timeline, and related cases."""

    model_config = ConfigDict(frozen=True)

    case: Case
    plaintiff: PersonProfile | None = None
    defendant: PersonProfile | None = None
    mediator: PersonProfile | None = None
    sessions: list[CaseSession]
    timeline: list[TimelineEvent]
    duration_days: int
    related_cases: list[Case]


class SessionDetails(BaseModel):
    """A session with attendee profiles resolved."""

    model_config = ConfigDict(frozen=True)

    session: CaseSession
    case: Case | None = None
    attendee_profiles: list[PersonProfile]


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a filtered listing."""

    model_config = ConfigDict(frozen=True)

    items: list[T]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)
    has_next: bool
    has_previous: bool

    @classmethod
    def build(cls, items: list[T], *, total: int, page: int, limit: int) -> "Page[T]":
        total_pages = -(-total // limit)
        return cls(
            items=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        )

"""SQLAlchemy 2.0 ORM models for all database tables.

These map directly to the PostgreSQL schema. Domain enums are stored as
VARCHAR via their StrEnum string values. Structured columns use JSONB on
PostgreSQL and plain JSON elsewhere (SQLite in tests). Timestamps are
always handed back timezone-aware in UTC.
"""

import uuid
from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    TypeDecorator,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator[datetime]):
    """DateTime that always round-trips as an aware UTC value.

    SQLite drops tzinfo on storage; values read back naive are UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is not None:
            return value.astimezone(UTC)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """Shared base for all ORM models."""


# ---------------------------------------------------------------------------
# reconciliation_cases
# ---------------------------------------------------------------------------


class CaseRow(Base):
    """A dispute-resolution case."""

    __tablename__ = "reconciliation_cases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    case_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    case_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="NEW", server_default="NEW", index=True
    )
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default="MEDIUM", server_default="MEDIUM"
    )
    confidentiality: Mapped[str] = mapped_column(
        String(20), nullable=False, default="MEDIUM", server_default="MEDIUM"
    )
    plaintiff_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    defendant_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    mediator_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    filing_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    settlement_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    settlement_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    settlement_terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    follow_up_required: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    follow_up_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    documents: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    metadata_json: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    __table_args__ = (
        Index("ix_cases_mediator_status", "mediator_id", "status"),
        Index("ix_cases_type_filing", "case_type", "filing_date"),
    )

    def __repr__(self) -> str:
        return f"<CaseRow id={self.id!r} number={self.case_number!r} status={self.status!r}>"


# ---------------------------------------------------------------------------
# case_sessions
# ---------------------------------------------------------------------------


class SessionRow(Base):
    """A mediation session attached to a case."""

    __tablename__ = "case_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    case_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("reconciliation_cases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="MEDIATION",
        server_default="MEDIATION",
        index=True,
    )
    session_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    session_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    attendees: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    discussion_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    agreements: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    next_session_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    documents: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<SessionRow id={self.id!r} case={self.case_id!r} date={self.session_date}>"


# ---------------------------------------------------------------------------
# case_events
# ---------------------------------------------------------------------------


class CaseEventRow(Base):
    """Append-only audit entry written alongside every case transition."""

    __tablename__ = "case_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    case_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("reconciliation_cases.id", ondelete="CASCADE"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    actor_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    previous_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    __table_args__ = (Index("ix_case_events_case_time", "case_id", "occurred_at"),)

    def __repr__(self) -> str:
        return f"<CaseEventRow id={self.id} case={self.case_id!r} kind={self.kind!r}>"


# ---------------------------------------------------------------------------
# case_number_sequences
# ---------------------------------------------------------------------------


class CaseNumberSequenceRow(Base):
    """Last issued case-number sequence per (prefix, year) partition."""

    __tablename__ = "case_number_sequences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prefix: Mapped[str] = mapped_column(String(10), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (UniqueConstraint("prefix", "year", name="uq_case_number_sequences"),)

    def __repr__(self) -> str:
        return f"<CaseNumberSequenceRow {self.prefix}-{self.year} last={self.last_value}>"

"""Repository for reconciliation case persistence.

All database access for the reconciliation_cases and case_number_sequences
tables is encapsulated here. Rows never leave this module: every read
returns a domain Case, and typed structured fields (documents, metadata)
are converted to and from JSON only at this boundary.
"""

import re
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from sqlalchemy import CursorResult, case, func, literal, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from reconciliation.db.errors import translate_db_errors
from reconciliation.db.filters import (
    AnyOf,
    Comparison,
    Contains,
    Equals,
    Filter,
    Range,
    apply_filters,
)
from reconciliation.models.database import CaseNumberSequenceRow, CaseRow
from reconciliation.models.domain import (
    ACTIVE_STATUSES,
    PRIORITY_RANK,
    Case,
    CaseStatus,
    DocumentRef,
)
from reconciliation.models.requests import CaseSearchFilters, StatisticsFilters

_ACTIVE_STATUS_VALUES = sorted(status.value for status in ACTIVE_STATUSES)

_SCALAR_FIELDS = (
    "id",
    "case_number",
    "title",
    "description",
    "case_type",
    "status",
    "priority",
    "confidentiality",
    "plaintiff_id",
    "defendant_id",
    "mediator_id",
    "filing_date",
    "settlement_date",
    "settlement_amount",
    "settlement_terms",
    "follow_up_required",
    "follow_up_date",
    "notes",
    "created_by",
    "updated_by",
    "created_at",
    "updated_at",
    "deleted_at",
    "deleted_by",
)


def _to_case(row: CaseRow) -> Case:
    data: dict[str, Any] = {name: getattr(row, name) for name in _SCALAR_FIELDS}
    data["documents"] = row.documents or []
    data["metadata"] = row.metadata_json or {}
    return Case.model_validate(data)


def _to_columns(values: dict[str, Any]) -> dict[str, Any]:
    """Map domain field names and typed values onto ORM column attributes."""
    columns = dict(values)
    if "documents" in columns:
        columns["documents"] = [
            DocumentRef.model_validate(doc).model_dump(mode="json")
            for doc in columns["documents"] or []
        ]
    if "metadata" in columns:
        columns["metadata_json"] = dict(columns.pop("metadata") or {})
    return columns


def case_search_filters(criteria: CaseSearchFilters) -> list[Filter]:
    """Translate listing criteria into filter expressions over the case table."""
    return [
        Equals(CaseRow.case_type, criteria.case_type),
        Equals(CaseRow.status, criteria.status),
        Equals(CaseRow.priority, criteria.priority),
        Equals(CaseRow.mediator_id, criteria.mediator_id),
        Equals(CaseRow.plaintiff_id, criteria.plaintiff_id),
        Equals(CaseRow.defendant_id, criteria.defendant_id),
        Range(CaseRow.filing_date, criteria.filing_date_from, criteria.filing_date_to),
        Range(
            CaseRow.settlement_date,
            criteria.settlement_date_from,
            criteria.settlement_date_to,
        ),
        Contains((CaseRow.title, CaseRow.case_number), criteria.search),
        AnyOf(CaseRow.confidentiality, criteria.confidentiality_levels),
    ]


def case_statistics_filters(criteria: StatisticsFilters) -> list[Filter]:
    return [
        Equals(CaseRow.case_type, criteria.case_type),
        Range(CaseRow.filing_date, criteria.filing_date_from, criteria.filing_date_to),
    ]


class CaseRepo:
    """Async repository for reconciliation cases."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def _dialect(self) -> str:
        return self._session.get_bind().dialect.name

    # -------------------------------------------------------------------
    # Single-row reads and writes
    # -------------------------------------------------------------------

    @translate_db_errors
    async def create(self, values: dict[str, Any]) -> Case:
        """Insert a case and return it with generated fields populated."""
        row = CaseRow(**_to_columns(values))
        self._session.add(row)
        await self._session.flush()
        return _to_case(row)

    @translate_db_errors
    async def get(
        self,
        case_id: str,
        *,
        include_deleted: bool = False,
        for_update: bool = False,
    ) -> Case | None:
        """Fetch a case by primary key; soft-deleted cases are hidden by default."""
        stmt = select(CaseRow).where(CaseRow.id == case_id)
        if not include_deleted:
            stmt = stmt.where(CaseRow.deleted_at.is_(None))
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        return _to_case(row) if row is not None else None

    @translate_db_errors
    async def update_fields(self, case_id: str, values: dict[str, Any]) -> bool:
        """Partially update a live case. Returns True if the row existed."""
        stmt = (
            update(CaseRow)
            .where(CaseRow.id == case_id, CaseRow.deleted_at.is_(None))
            .values(**_to_columns(values))
            .execution_options(synchronize_session=False)
        )
        cursor: CursorResult[tuple[()]] = await self._session.execute(stmt)  # type: ignore[assignment]
        return cursor.rowcount > 0

    @translate_db_errors
    async def prepend_note(self, case_id: str, line: str) -> bool:
        """Atomically put an annotation line in front of the existing notes."""
        stmt = (
            update(CaseRow)
            .where(CaseRow.id == case_id)
            .values(notes=literal(line) + func.coalesce(CaseRow.notes, ""))
            .execution_options(synchronize_session=False)
        )
        cursor: CursorResult[tuple[()]] = await self._session.execute(stmt)  # type: ignore[assignment]
        return cursor.rowcount > 0

    async def soft_delete(self, case_id: str, *, actor_id: str, at: datetime) -> bool:
        """Mark a case deleted. Returns False if it was missing or already deleted."""
        return await self.update_fields(
            case_id, {"deleted_at": at, "deleted_by": actor_id, "updated_by": actor_id}
        )

    # -------------------------------------------------------------------
    # Case numbers
    # -------------------------------------------------------------------

    @translate_db_errors
    async def next_sequence(self, prefix: str, year: int) -> int:
        """Reserve the next case-number sequence for a (prefix, year) partition.

        The counter row is created on first use, seeded from the highest
        number already issued. The increment is a single UPDATE, so the row
        lock serializes concurrent callers.
        """
        key = (CaseNumberSequenceRow.prefix == prefix, CaseNumberSequenceRow.year == year)

        existing = await self._session.execute(select(CaseNumberSequenceRow.id).where(*key))
        if existing.scalar_one_or_none() is None:
            seed = await self._highest_issued(prefix, year)
            insert_fn = pg_insert if self._dialect == "postgresql" else sqlite_insert
            stmt = (
                insert_fn(CaseNumberSequenceRow)
                .values(prefix=prefix, year=year, last_value=seed)
                .on_conflict_do_nothing(index_elements=["prefix", "year"])
            )
            await self._session.execute(stmt)

        await self._session.execute(
            update(CaseNumberSequenceRow)
            .where(*key)
            .values(last_value=CaseNumberSequenceRow.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(
            select(CaseNumberSequenceRow.last_value).where(*key)
        )
        return result.scalar_one()

    async def _highest_issued(self, prefix: str, year: int) -> int:
        pattern = f"{prefix}-{year}-"
        stmt = (
            select(CaseRow.case_number)
            .where(CaseRow.case_number.startswith(pattern, autoescape=True))
            .order_by(func.length(CaseRow.case_number).desc(), CaseRow.case_number.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        latest = result.scalar_one_or_none()
        if latest is None:
            return 0
        match = re.search(r"(\d+)$", latest)
        return int(match.group(1)) if match else 0

    # -------------------------------------------------------------------
    # Mediator capacity
    # -------------------------------------------------------------------

    @translate_db_errors
    async def lock_mediator(self, mediator_id: str) -> None:
        """Serialize assignment for one mediator until the transaction ends.

        Uses a transaction-scoped advisory lock on PostgreSQL; other
        backends rely on the conditional update alone.
        """
        if self._dialect != "postgresql":
            return
        await self._session.execute(select(func.pg_advisory_xact_lock(func.hashtext(mediator_id))))

    @translate_db_errors
    async def count_active_for_mediator(self, mediator_id: str) -> int:
        stmt = select(func.count(CaseRow.id)).where(
            CaseRow.mediator_id == mediator_id,
            CaseRow.status.in_(_ACTIVE_STATUS_VALUES),
            CaseRow.deleted_at.is_(None),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    @translate_db_errors
    async def assign_mediator_within_capacity(
        self,
        case_id: str,
        mediator_id: str,
        *,
        capacity: int,
        actor_id: str,
    ) -> bool:
        """Assign the mediator only if they still hold fewer than `capacity` active cases.

        The count is re-evaluated inside the UPDATE itself. Returns False
        when the guard rejected the write.
        """
        held = aliased(CaseRow)
        active_count = (
            select(func.count(held.id))
            .where(
                held.mediator_id == mediator_id,
                held.status.in_(_ACTIVE_STATUS_VALUES),
                held.deleted_at.is_(None),
            )
            .scalar_subquery()
        )
        stmt = (
            update(CaseRow)
            .where(
                CaseRow.id == case_id,
                CaseRow.deleted_at.is_(None),
                active_count < capacity,
            )
            .values(
                mediator_id=mediator_id,
                status=CaseStatus.ASSIGNED.value,
                updated_by=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        cursor: CursorResult[tuple[()]] = await self._session.execute(stmt)  # type: ignore[assignment]
        return cursor.rowcount > 0

    @translate_db_errors
    async def list_for_mediator(self, mediator_id: str) -> list[Case]:
        """Every live case the mediator has been assigned, oldest filing first."""
        stmt = (
            select(CaseRow)
            .where(CaseRow.mediator_id == mediator_id, CaseRow.deleted_at.is_(None))
            .order_by(CaseRow.filing_date.asc(), CaseRow.case_number.asc())
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_case(row) for row in result.scalars().all()]

    # -------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------

    @translate_db_errors
    async def search(
        self,
        filters: Sequence[Filter],
        *,
        limit: int,
        offset: int,
    ) -> tuple[list[Case], int]:
        """Return one page of live cases matching every filter, plus the total."""
        base = apply_filters(select(CaseRow).where(CaseRow.deleted_at.is_(None)), filters)

        count_stmt = select(func.count()).select_from(base.subquery())
        total = (await self._session.execute(count_stmt)).scalar_one()

        priority_rank = case(PRIORITY_RANK, value=CaseRow.priority, else_=0)
        stmt = (
            base.order_by(
                priority_rank.desc(),
                CaseRow.filing_date.desc(),
                CaseRow.case_number.desc(),
            )
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_case(row) for row in result.scalars().all()], total

    @translate_db_errors
    async def list_matching(self, filters: Sequence[Filter]) -> list[Case]:
        """All live cases matching the filters, unpaginated."""
        stmt = (
            apply_filters(select(CaseRow).where(CaseRow.deleted_at.is_(None)), filters)
            .order_by(CaseRow.filing_date.asc())
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_case(row) for row in result.scalars().all()]

    @translate_db_errors
    async def find_related(self, subject: Case, *, limit: int) -> list[Case]:
        """Other live cases sharing a plaintiff or defendant with `subject`."""
        parties = [p for p in (subject.plaintiff_id, subject.defendant_id) if p]
        if not parties:
            return []
        stmt = (
            select(CaseRow)
            .where(
                CaseRow.id != subject.id,
                CaseRow.deleted_at.is_(None),
                or_(CaseRow.plaintiff_id.in_(parties), CaseRow.defendant_id.in_(parties)),
            )
            .order_by(CaseRow.filing_date.desc(), CaseRow.case_number.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_case(row) for row in result.scalars().all()]

    @translate_db_errors
    async def follow_up_due(self, today: date) -> list[Case]:
        """Settled cases whose follow-up date is today or later, soonest first."""
        due = [
            Equals(CaseRow.status, CaseStatus.SETTLED.value),
            Equals(CaseRow.follow_up_required, True),
            Comparison(CaseRow.follow_up_date, ">=", today),
        ]
        stmt = (
            apply_filters(select(CaseRow).where(CaseRow.deleted_at.is_(None)), due)
            .order_by(CaseRow.follow_up_date.asc(), CaseRow.case_number.asc())
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_case(row) for row in result.scalars().all()]

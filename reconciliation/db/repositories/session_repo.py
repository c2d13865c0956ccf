"""Repository for mediation session persistence.

Attendees, agreements, and documents are typed lists in the domain and
JSON arrays in the table; the conversion happens only here.
"""

from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from sqlalchemy import CursorResult, func, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reconciliation.db.errors import translate_db_errors
from reconciliation.db.filters import Contains, Equals, Filter, Range, apply_filters
from reconciliation.models.database import CaseRow, SessionRow
from reconciliation.models.domain import Agreement, Attendee, CaseSession, DocumentRef
from reconciliation.models.requests import SessionSearchFilters

_SCALAR_FIELDS = (
    "id",
    "case_id",
    "session_type",
    "session_date",
    "session_time",
    "location",
    "discussion_summary",
    "next_session_date",
    "notes",
    "created_by",
    "created_at",
    "updated_at",
    "deleted_at",
)

_LIST_FIELDS: dict[str, type[Attendee] | type[Agreement] | type[DocumentRef]] = {
    "attendees": Attendee,
    "agreements": Agreement,
    "documents": DocumentRef,
}


def _to_session(row: SessionRow) -> CaseSession:
    data: dict[str, Any] = {name: getattr(row, name) for name in _SCALAR_FIELDS}
    for name in _LIST_FIELDS:
        data[name] = getattr(row, name) or []
    data["metadata"] = row.metadata_json or {}
    return CaseSession.model_validate(data)


def _to_columns(values: dict[str, Any]) -> dict[str, Any]:
    columns = dict(values)
    for name, model in _LIST_FIELDS.items():
        if name in columns:
            columns[name] = [
                model.model_validate(item).model_dump(mode="json")
                for item in columns[name] or []
            ]
    if "metadata" in columns:
        columns["metadata_json"] = dict(columns.pop("metadata") or {})
    return columns


def session_search_filters(criteria: SessionSearchFilters) -> list[Filter]:
    """Translate listing criteria into filters over sessions joined with their case."""
    return [
        Equals(SessionRow.case_id, criteria.case_id),
        Equals(SessionRow.session_type, criteria.session_type),
        Range(SessionRow.session_date, criteria.session_date_from, criteria.session_date_to),
        Equals(CaseRow.status, criteria.case_status),
        Contains(
            (CaseRow.case_number, CaseRow.title, SessionRow.discussion_summary),
            criteria.search,
        ),
    ]


def session_statistics_filters(
    case_id: str | None,
    date_from: date | None,
    date_to: date | None,
) -> list[Filter]:
    return [
        Equals(SessionRow.case_id, case_id),
        Range(SessionRow.session_date, date_from, date_to),
    ]


def _live_sessions() -> Any:
    """Sessions that are not deleted and whose case is not deleted either."""
    return (
        select(SessionRow)
        .join(CaseRow, CaseRow.id == SessionRow.case_id)
        .where(SessionRow.deleted_at.is_(None), CaseRow.deleted_at.is_(None))
    )


class SessionRepo:
    """Async repository for case sessions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @translate_db_errors
    async def create(self, values: dict[str, Any]) -> CaseSession:
        """Insert a session and return it with generated fields populated."""
        row = SessionRow(**_to_columns(values))
        self._session.add(row)
        await self._session.flush()
        return _to_session(row)

    @translate_db_errors
    async def get(
        self,
        session_id: str,
        *,
        for_update: bool = False,
    ) -> CaseSession | None:
        """Fetch a live session by primary key."""
        stmt = select(SessionRow).where(
            SessionRow.id == session_id, SessionRow.deleted_at.is_(None)
        )
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        return _to_session(row) if row is not None else None

    @translate_db_errors
    async def update_fields(self, session_id: str, values: dict[str, Any]) -> bool:
        stmt = (
            update(SessionRow)
            .where(SessionRow.id == session_id, SessionRow.deleted_at.is_(None))
            .values(**_to_columns(values))
            .execution_options(synchronize_session=False)
        )
        cursor: CursorResult[tuple[()]] = await self._session.execute(stmt)  # type: ignore[assignment]
        return cursor.rowcount > 0

    @translate_db_errors
    async def prepend_note(self, session_id: str, line: str) -> bool:
        """Atomically put an annotation line in front of the existing notes."""
        stmt = (
            update(SessionRow)
            .where(SessionRow.id == session_id)
            .values(notes=literal(line) + func.coalesce(SessionRow.notes, ""))
            .execution_options(synchronize_session=False)
        )
        cursor: CursorResult[tuple[()]] = await self._session.execute(stmt)  # type: ignore[assignment]
        return cursor.rowcount > 0

    async def soft_delete(self, session_id: str, *, at: datetime) -> bool:
        return await self.update_fields(session_id, {"deleted_at": at})

    @translate_db_errors
    async def list_for_case(
        self,
        case_id: str,
        *,
        session_type: str | None = None,
    ) -> list[CaseSession]:
        """Live sessions of a case, ascending by date then time."""
        stmt = select(SessionRow).where(
            SessionRow.case_id == case_id, SessionRow.deleted_at.is_(None)
        )
        if session_type is not None:
            stmt = stmt.where(SessionRow.session_type == session_type)
        stmt = stmt.order_by(
            SessionRow.session_date.asc(),
            SessionRow.session_time.asc().nulls_first(),
            SessionRow.created_at.asc(),
        ).execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return [_to_session(row) for row in result.scalars().all()]

    @translate_db_errors
    async def search(
        self,
        filters: Sequence[Filter],
        *,
        limit: int,
        offset: int,
    ) -> tuple[list[CaseSession], int]:
        """One page of live sessions, newest first, plus the total.

        Filters may reference CaseRow columns; the owning case is joined.
        """
        base = apply_filters(_live_sessions(), filters)

        count_stmt = select(func.count()).select_from(base.subquery())
        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = (
            base.order_by(
                SessionRow.session_date.desc(),
                SessionRow.session_time.desc().nulls_last(),
                SessionRow.created_at.desc(),
            )
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_session(row) for row in result.scalars().all()], total

    @translate_db_errors
    async def list_between(self, start: date, end: date) -> list[CaseSession]:
        """Live sessions dated within [start, end], soonest first."""
        stmt = (
            _live_sessions()
            .where(SessionRow.session_date >= start, SessionRow.session_date <= end)
            .order_by(
                SessionRow.session_date.asc(),
                SessionRow.session_time.asc().nulls_first(),
            )
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_session(row) for row in result.scalars().all()]

    @translate_db_errors
    async def count_by_type(self, filters: Sequence[Filter]) -> dict[str, int]:
        """Number of live sessions per session type."""
        stmt = apply_filters(
            select(SessionRow.session_type, func.count(SessionRow.id))
            .join(CaseRow, CaseRow.id == SessionRow.case_id)
            .where(SessionRow.deleted_at.is_(None), CaseRow.deleted_at.is_(None)),
            filters,
        ).group_by(SessionRow.session_type)
        result = await self._session.execute(stmt)
        return {session_type: count for session_type, count in result.all()}

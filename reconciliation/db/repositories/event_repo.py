"""Repository for the append-only case event log.

Rows are only ever inserted; there is no update or delete path.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reconciliation.db.errors import translate_db_errors
from reconciliation.models.database import CaseEventRow
from reconciliation.models.domain import CaseEvent, CaseEventKind, CaseStatus


def _to_event(row: CaseEventRow) -> CaseEvent:
    return CaseEvent(
        id=row.id,
        case_id=row.case_id,
        kind=CaseEventKind(row.kind),
        occurred_at=row.occurred_at,
        actor_id=row.actor_id,
        previous_status=row.previous_status,
        new_status=row.new_status,
        description=row.description,
        payload=row.payload or {},
    )


class CaseEventRepo:
    """Async repository for case audit events."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @translate_db_errors
    async def append(
        self,
        case_id: str,
        kind: CaseEventKind,
        *,
        occurred_at: datetime,
        actor_id: str | None,
        previous_status: CaseStatus | None = None,
        new_status: CaseStatus | None = None,
        description: str = "",
        payload: dict[str, Any] | None = None,
    ) -> CaseEvent:
        """Record one event. Payload values must be JSON-serializable."""
        row = CaseEventRow(
            case_id=case_id,
            kind=kind.value,
            occurred_at=occurred_at,
            actor_id=actor_id,
            previous_status=previous_status.value if previous_status else None,
            new_status=new_status.value if new_status else None,
            description=description,
            payload=payload or {},
        )
        self._session.add(row)
        await self._session.flush()
        return _to_event(row)

    @translate_db_errors
    async def list_for_case(
        self,
        case_id: str,
        *,
        kind: CaseEventKind | None = None,
    ) -> list[CaseEvent]:
        """Events of one case in the order they happened."""
        stmt = select(CaseEventRow).where(CaseEventRow.case_id == case_id)
        if kind is not None:
            stmt = stmt.where(CaseEventRow.kind == kind.value)
        stmt = stmt.order_by(CaseEventRow.occurred_at.asc(), CaseEventRow.id.asc())
        result = await self._session.execute(stmt)
        return [_to_event(row) for row in result.scalars().all()]

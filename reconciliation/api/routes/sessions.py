"""Session API endpoints.

GET    /sessions                      — filtered, paginated listing
GET    /sessions/upcoming             — sessions dated within the next N days
GET    /sessions/statistics           — counts by session type
GET    /sessions/{session_id}         — one session with its case and attendees
PUT    /sessions/{session_id}         — descriptive edit
PUT    /sessions/{session_id}/outcome — agreements, next date, outcome notes
DELETE /sessions/{session_id}         — soft delete
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from reconciliation.api.dependencies import get_actor_id, get_ledger
from reconciliation.models.domain import CaseSession, Page, SessionDetails
from reconciliation.models.requests import (  # noqa: TC001
    SessionOutcome,
    SessionSearchFilters,
    SessionUpdate,
)
from reconciliation.models.responses import DataResponse, SessionStatistics
from reconciliation.services.sessions.ledger import SessionLedger  # noqa: TC001

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get(
    "",
    response_model=DataResponse[Page[CaseSession]],
    summary="List sessions",
)
async def list_sessions(
    case_id: str | None = None,
    session_type: str | None = None,
    session_date_from: date | None = None,
    session_date_to: date | None = None,
    case_status: str | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    ledger: SessionLedger = Depends(get_ledger),
) -> DataResponse[Page[CaseSession]]:
    criteria = SessionSearchFilters(
        case_id=case_id,
        session_type=session_type,
        session_date_from=session_date_from,
        session_date_to=session_date_to,
        case_status=case_status,
        search=search,
    )
    result = await ledger.search_sessions(criteria, page=page, limit=limit)
    return DataResponse[Page[CaseSession]](
        message="Sessions retrieved successfully", data=result
    )


@router.get(
    "/upcoming",
    response_model=DataResponse[list[CaseSession]],
    summary="Upcoming sessions",
)
async def get_upcoming_sessions(
    days_ahead: int | None = Query(default=None, ge=0),
    ledger: SessionLedger = Depends(get_ledger),
) -> DataResponse[list[CaseSession]]:
    sessions = await ledger.get_upcoming_sessions(days_ahead)
    return DataResponse[list[CaseSession]](
        message="Upcoming sessions retrieved successfully", data=sessions
    )


@router.get(
    "/statistics",
    response_model=DataResponse[SessionStatistics],
    summary="Session statistics",
)
async def get_session_statistics(
    case_id: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    ledger: SessionLedger = Depends(get_ledger),
) -> DataResponse[SessionStatistics]:
    stats = await ledger.get_session_statistics(
        case_id=case_id, date_from=date_from, date_to=date_to
    )
    return DataResponse[SessionStatistics](
        message="Session statistics retrieved successfully", data=stats
    )


@router.get(
    "/{session_id}",
    response_model=DataResponse[SessionDetails],
    summary="Get a session",
)
async def get_session(
    session_id: str,
    ledger: SessionLedger = Depends(get_ledger),
) -> DataResponse[SessionDetails]:
    details = await ledger.get_session(session_id)
    return DataResponse[SessionDetails](message="Session retrieved successfully", data=details)


@router.put(
    "/{session_id}",
    response_model=DataResponse[CaseSession],
    summary="Edit a session",
)
async def update_session(
    session_id: str,
    changes: SessionUpdate,
    actor_id: str = Depends(get_actor_id),
    ledger: SessionLedger = Depends(get_ledger),
) -> DataResponse[CaseSession]:
    session = await ledger.update_session(session_id, changes, actor_id)
    return DataResponse[CaseSession](message="Session updated successfully", data=session)


@router.put(
    "/{session_id}/outcome",
    response_model=DataResponse[CaseSession],
    summary="Record a session outcome",
)
async def update_session_outcome(
    session_id: str,
    outcome: SessionOutcome,
    actor_id: str = Depends(get_actor_id),
    ledger: SessionLedger = Depends(get_ledger),
) -> DataResponse[CaseSession]:
    session = await ledger.update_session_outcome(session_id, outcome, actor_id)
    return DataResponse[CaseSession](
        message="Session outcome updated successfully", data=session
    )


@router.delete(
    "/{session_id}",
    response_model=DataResponse[None],
    summary="Delete a session",
)
async def delete_session(
    session_id: str,
    actor_id: str = Depends(get_actor_id),
    ledger: SessionLedger = Depends(get_ledger),
) -> DataResponse[None]:
    await ledger.delete_session(session_id, actor_id)
    return DataResponse[None](message="Session deleted successfully", data=None)

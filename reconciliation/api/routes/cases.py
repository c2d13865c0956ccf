"""Case API endpoints.

POST /cases                     — file a case (201)
GET  /cases                     — filtered, paginated listing
GET  /cases/statistics          — aggregate figures
GET  /cases/follow-up           — settled cases with a pending follow-up
GET  /cases/{case_id}           — one case
GET  /cases/{case_id}/details   — case with parties, sessions, timeline, related cases
PUT  /cases/{case_id}           — partial edit
DELETE /cases/{case_id}         — soft delete
PUT  /cases/{case_id}/status    — status transition
PUT  /cases/{case_id}/mediator  — mediator assignment (409 at capacity)
PUT  /cases/{case_id}/settle    — settlement
GET  /cases/{case_id}/timeline  — reconstructed timeline
GET  /cases/{case_id}/events    — raw lifecycle event log
POST /cases/{case_id}/sessions  — record a session for the case
GET  /cases/{case_id}/sessions  — sessions of the case
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from reconciliation.api.dependencies import (
    get_actor_id,
    get_assignment,
    get_ledger,
    get_lifecycle,
    get_registry,
    get_timeline,
)
from reconciliation.models.domain import (
    Case,
    CaseDetails,
    CaseEvent,
    CaseSession,
    FollowUpCase,
    Page,
    TimelineEvent,
)
from reconciliation.models.requests import (  # noqa: TC001
    CaseCreate,
    CaseSearchFilters,
    CaseUpdate,
    MediatorAssignmentRequest,
    SessionCreate,
    SettlementRequest,
    StatisticsFilters,
    StatusUpdateRequest,
)
from reconciliation.models.responses import CaseStatistics, DataResponse
from reconciliation.services.cases.assignment import MediatorAssignmentService  # noqa: TC001
from reconciliation.services.cases.lifecycle import LifecycleController  # noqa: TC001
from reconciliation.services.cases.registry import CaseRegistry  # noqa: TC001
from reconciliation.services.cases.timeline import TimelineReconstructor  # noqa: TC001
from reconciliation.services.sessions.ledger import SessionLedger  # noqa: TC001

router = APIRouter(prefix="/cases", tags=["cases"])


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=DataResponse[Case],
    status_code=201,
    summary="File a new case",
)
async def create_case(
    payload: CaseCreate,
    actor_id: str = Depends(get_actor_id),
    registry: CaseRegistry = Depends(get_registry),
) -> DataResponse[Case]:
    case = await registry.create_case(payload, actor_id)
    return DataResponse[Case](message="Case created successfully", data=case)


@router.get(
    "",
    response_model=DataResponse[Page[Case]],
    summary="List cases",
)
async def list_cases(
    case_type: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    mediator_id: str | None = None,
    plaintiff_id: str | None = None,
    defendant_id: str | None = None,
    filing_date_from: date | None = None,
    filing_date_to: date | None = None,
    settlement_date_from: date | None = None,
    settlement_date_to: date | None = None,
    search: str | None = None,
    confidentiality_levels: list[str] | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    registry: CaseRegistry = Depends(get_registry),
) -> DataResponse[Page[Case]]:
    """Newest and most urgent first: priority, then filing date, then case number."""
    criteria = CaseSearchFilters(
        case_type=case_type,
        status=status,
        priority=priority,
        mediator_id=mediator_id,
        plaintiff_id=plaintiff_id,
        defendant_id=defendant_id,
        filing_date_from=filing_date_from,
        filing_date_to=filing_date_to,
        settlement_date_from=settlement_date_from,
        settlement_date_to=settlement_date_to,
        search=search,
        confidentiality_levels=confidentiality_levels,
    )
    result = await registry.search_cases(criteria, page=page, limit=limit)
    return DataResponse[Page[Case]](message="Cases retrieved successfully", data=result)


@router.get(
    "/statistics",
    response_model=DataResponse[CaseStatistics],
    summary="Case statistics",
)
async def get_case_statistics(
    case_type: str | None = None,
    filing_date_from: date | None = None,
    filing_date_to: date | None = None,
    registry: CaseRegistry = Depends(get_registry),
) -> DataResponse[CaseStatistics]:
    criteria = StatisticsFilters(
        case_type=case_type,
        filing_date_from=filing_date_from,
        filing_date_to=filing_date_to,
    )
    stats = await registry.get_case_statistics(criteria)
    return DataResponse[CaseStatistics](
        message="Case statistics retrieved successfully", data=stats
    )


@router.get(
    "/follow-up",
    response_model=DataResponse[list[FollowUpCase]],
    summary="Cases requiring follow-up",
)
async def get_follow_up_cases(
    lifecycle: LifecycleController = Depends(get_lifecycle),
) -> DataResponse[list[FollowUpCase]]:
    due = await lifecycle.get_cases_requiring_follow_up()
    return DataResponse[list[FollowUpCase]](
        message="Follow-up cases retrieved successfully", data=due
    )


# ---------------------------------------------------------------------------
# Single case
# ---------------------------------------------------------------------------


@router.get(
    "/{case_id}",
    response_model=DataResponse[Case],
    summary="Get a case",
)
async def get_case(
    case_id: str,
    registry: CaseRegistry = Depends(get_registry),
) -> DataResponse[Case]:
    case = await registry.get_case(case_id)
    return DataResponse[Case](message="Case retrieved successfully", data=case)


@router.get(
    "/{case_id}/details",
    response_model=DataResponse[CaseDetails],
    summary="Get a case with its parties, sessions and timeline",
)
async def get_case_details(
    case_id: str,
    registry: CaseRegistry = Depends(get_registry),
) -> DataResponse[CaseDetails]:
    details = await registry.get_case_details(case_id)
    return DataResponse[CaseDetails](
        message="Case details retrieved successfully", data=details
    )


@router.put(
    "/{case_id}",
    response_model=DataResponse[Case],
    summary="Edit a case",
)
async def update_case(
    case_id: str,
    changes: CaseUpdate,
    actor_id: str = Depends(get_actor_id),
    registry: CaseRegistry = Depends(get_registry),
) -> DataResponse[Case]:
    case = await registry.update_case(case_id, changes, actor_id)
    return DataResponse[Case](message="Case updated successfully", data=case)


@router.delete(
    "/{case_id}",
    response_model=DataResponse[None],
    summary="Delete a case",
)
async def delete_case(
    case_id: str,
    actor_id: str = Depends(get_actor_id),
    registry: CaseRegistry = Depends(get_registry),
) -> DataResponse[None]:
    await registry.delete_case(case_id, actor_id)
    return DataResponse[None](message="Case deleted successfully", data=None)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.put(
    "/{case_id}/status",
    response_model=DataResponse[Case],
    summary="Change case status",
)
async def update_case_status(
    case_id: str,
    request: StatusUpdateRequest,
    actor_id: str = Depends(get_actor_id),
    lifecycle: LifecycleController = Depends(get_lifecycle),
) -> DataResponse[Case]:
    case = await lifecycle.update_case_status(case_id, request.status, request.notes, actor_id)
    return DataResponse[Case](message="Case status updated successfully", data=case)


@router.put(
    "/{case_id}/mediator",
    response_model=DataResponse[Case],
    summary="Assign a mediator",
)
async def assign_mediator(
    case_id: str,
    request: MediatorAssignmentRequest,
    actor_id: str = Depends(get_actor_id),
    assignment: MediatorAssignmentService = Depends(get_assignment),
) -> DataResponse[Case]:
    case = await assignment.assign_mediator(case_id, request.mediator_id, actor_id)
    return DataResponse[Case](message="Mediator assigned successfully", data=case)


@router.put(
    "/{case_id}/settle",
    response_model=DataResponse[Case],
    summary="Settle a case",
)
async def settle_case(
    case_id: str,
    request: SettlementRequest,
    actor_id: str = Depends(get_actor_id),
    lifecycle: LifecycleController = Depends(get_lifecycle),
) -> DataResponse[Case]:
    case = await lifecycle.settle_case(case_id, request, actor_id)
    return DataResponse[Case](message="Case settled successfully", data=case)


@router.get(
    "/{case_id}/timeline",
    response_model=DataResponse[list[TimelineEvent]],
    summary="Reconstructed case timeline",
)
async def get_case_timeline(
    case_id: str,
    timeline: TimelineReconstructor = Depends(get_timeline),
) -> DataResponse[list[TimelineEvent]]:
    entries = await timeline.get_case_timeline(case_id)
    return DataResponse[list[TimelineEvent]](
        message="Case timeline retrieved successfully", data=entries
    )


@router.get(
    "/{case_id}/events",
    response_model=DataResponse[list[CaseEvent]],
    summary="Lifecycle event log",
)
async def get_case_events(
    case_id: str,
    timeline: TimelineReconstructor = Depends(get_timeline),
) -> DataResponse[list[CaseEvent]]:
    events = await timeline.get_case_events(case_id)
    return DataResponse[list[CaseEvent]](
        message="Case events retrieved successfully", data=events
    )


# ---------------------------------------------------------------------------
# Sessions of a case
# ---------------------------------------------------------------------------


@router.post(
    "/{case_id}/sessions",
    response_model=DataResponse[CaseSession],
    status_code=201,
    summary="Record a session",
)
async def create_case_session(
    case_id: str,
    payload: SessionCreate,
    actor_id: str = Depends(get_actor_id),
    ledger: SessionLedger = Depends(get_ledger),
) -> DataResponse[CaseSession]:
    """The case in the path wins over any case_id in the body."""
    session = await ledger.create_session(payload.model_copy(update={"case_id": case_id}), actor_id)
    return DataResponse[CaseSession](message="Session created successfully", data=session)


@router.get(
    "/{case_id}/sessions",
    response_model=DataResponse[list[CaseSession]],
    summary="Sessions of a case",
)
async def get_case_sessions(
    case_id: str,
    session_type: str | None = None,
    ledger: SessionLedger = Depends(get_ledger),
) -> DataResponse[list[CaseSession]]:
    sessions = await ledger.get_case_sessions(case_id, session_type)
    return DataResponse[list[CaseSession]](
        message="Case sessions retrieved successfully", data=sessions
    )

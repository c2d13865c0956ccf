"""Mediator API endpoints.

GET /mediators/{mediator_id}/workload — caseload by status, handling time, settlement rate
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from reconciliation.api.dependencies import get_assignment
from reconciliation.models.domain import MediatorWorkload
from reconciliation.models.responses import DataResponse
from reconciliation.services.cases.assignment import MediatorAssignmentService  # noqa: TC001

router = APIRouter(prefix="/mediators", tags=["mediators"])


@router.get(
    "/{mediator_id}/workload",
    response_model=DataResponse[MediatorWorkload],
    summary="Mediator workload",
)
async def get_mediator_workload(
    mediator_id: str,
    assignment: MediatorAssignmentService = Depends(get_assignment),
) -> DataResponse[MediatorWorkload]:
    workload = await assignment.get_mediator_workload(mediator_id)
    return DataResponse[MediatorWorkload](
        message="Mediator workload retrieved successfully", data=workload
    )

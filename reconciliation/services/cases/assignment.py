"""Mediator Assignment Service.

A mediator may hold at most `mediator_case_capacity` cases in an active
status (NEW, ASSIGNED, IN_PROGRESS, MEDIATION). The same guard runs when a
case is filed with a mediator already named. Assignment takes a
per-mediator lock, counts, and then writes through a conditional UPDATE
that repeats the count, so two concurrent assignments cannot both pass
at the cap.
"""

from __future__ import annotations

from collections import Counter
from decimal import Decimal
from typing import TYPE_CHECKING, NoReturn

import structlog

from reconciliation.core.clock import utcnow
from reconciliation.core.exceptions import CapacityExceededError, NotFoundError
from reconciliation.core.metrics import CAPACITY_REJECTIONS
from reconciliation.models.domain import (
    ACTIVE_STATUSES,
    STATUS_ORDER,
    CaseEventKind,
    CaseStatus,
    MediatorWorkload,
    StatusCount,
)
from reconciliation.utils.annotations import MEDIATOR_ASSIGNED, format_annotation
from reconciliation.utils.numbers import mean_half_up, round_half_up

if TYPE_CHECKING:
    from reconciliation.core.clock import Clock
    from reconciliation.core.config import Settings
    from reconciliation.db.repositories import CaseEventRepo, CaseRepo
    from reconciliation.models.domain import Case
    from reconciliation.services.people.directory import PersonDirectory

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


async def ensure_mediator_capacity(
    cases: CaseRepo,
    mediator_id: str,
    capacity: int,
    *,
    case_id: str | None = None,
) -> int:
    """Lock the mediator's caseload and return its active count.

    Raises CapacityExceededError when the mediator already holds `capacity`
    active cases. The lock is held until the surrounding transaction ends.
    """
    await cases.lock_mediator(mediator_id)
    active = await cases.count_active_for_mediator(mediator_id)
    if active >= capacity:
        reject_over_capacity(mediator_id, active, capacity, case_id=case_id)
    return active


def reject_over_capacity(
    mediator_id: str,
    active: int,
    capacity: int,
    *,
    case_id: str | None = None,
) -> NoReturn:
    CAPACITY_REJECTIONS.inc()
    logger.warning(
        "mediator_capacity_exceeded",
        case_id=case_id,
        mediator_id=mediator_id,
        active_cases=active,
        capacity=capacity,
    )
    raise CapacityExceededError(
        "Mediator has too many active cases",
        details={"mediator_id": mediator_id, "active_cases": active, "capacity": capacity},
    )


class MediatorAssignmentService:
    """Assigns mediators under the workload cap and reports their workload."""

    def __init__(
        self,
        cases: CaseRepo,
        events: CaseEventRepo,
        people: PersonDirectory,
        settings: Settings,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._cases = cases
        self._events = events
        self._people = people
        self._capacity = settings.mediator_case_capacity
        self._clock = clock

    async def assign_mediator(self, case_id: str, mediator_id: str, actor_id: str) -> Case:
        """Assign `mediator_id` to the case and move it to ASSIGNED.

        Raises CapacityExceededError, leaving the case untouched, when the
        mediator already holds the maximum number of active cases.
        """
        current = await self._cases.get(case_id, for_update=True)
        if current is None:
            raise NotFoundError("Case not found", details={"case_id": case_id})
        if not await self._people.exists(mediator_id):
            raise NotFoundError("Mediator not found", details={"mediator_id": mediator_id})

        active = await ensure_mediator_capacity(
            self._cases, mediator_id, self._capacity, case_id=case_id
        )
        assigned = await self._cases.assign_mediator_within_capacity(
            case_id, mediator_id, capacity=self._capacity, actor_id=actor_id
        )
        if not assigned:
            reject_over_capacity(mediator_id, active, self._capacity, case_id=case_id)

        now = self._clock()
        await self._cases.prepend_note(
            case_id,
            format_annotation(MEDIATOR_ASSIGNED, now, f"Assigned to mediator {mediator_id}"),
        )
        await self._events.append(
            case_id,
            CaseEventKind.MEDIATOR_ASSIGNED,
            occurred_at=now,
            actor_id=actor_id,
            previous_status=current.status,
            new_status=CaseStatus.ASSIGNED,
            description=f"Assigned to mediator {mediator_id}",
            payload={
                "mediator_id": mediator_id,
                "previous_mediator_id": current.mediator_id,
            },
        )

        logger.info(
            "mediator_assigned",
            case_id=case_id,
            mediator_id=mediator_id,
            active_cases=active + 1,
            actor_id=actor_id,
        )
        case = await self._cases.get(case_id)
        if case is None:
            raise NotFoundError("Case not found", details={"case_id": case_id})
        return case

    async def get_mediator_workload(self, mediator_id: str) -> MediatorWorkload:
        """Caseload by status, average handling time, and settlement rate."""
        cases = await self._cases.list_for_mediator(mediator_id)
        today = self._clock().date()

        counts = Counter(case.status.value for case in cases)
        workload = [
            StatusCount(status=status, case_count=count)
            for status, count in sorted(
                counts.items(), key=lambda item: (STATUS_ORDER.get(item[0], 99), item[0])
            )
        ]

        durations = [((case.settlement_date or today) - case.filing_date).days for case in cases]
        average_days = mean_half_up(durations) or Decimal(0)

        total = len(cases)
        settled = counts.get(CaseStatus.SETTLED.value, 0)
        success_rate = (
            float(round_half_up(Decimal(settled) * 100 / Decimal(total), 2)) if total else 0.0
        )
        total_active = sum(counts.get(status.value, 0) for status in ACTIVE_STATUSES)

        return MediatorWorkload(
            mediator_id=mediator_id,
            workload_by_status=workload,
            average_handling_days=int(average_days),
            success_rate=success_rate,
            total_active_cases=total_active,
        )


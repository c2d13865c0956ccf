"""Case Registry: filing, lookup, editing, and listing of cases.

Filing runs:
    field validation → party resolution → mediator capacity → case number
    → insert → CASE_FILED event

Field validation is exhaustive (every violation reported at once); party
resolution stops at the first id the person directory does not know.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, cast

import structlog

from reconciliation.core.clock import utcnow
from reconciliation.core.exceptions import NotFoundError
from reconciliation.core.metrics import CASES_CREATED
from reconciliation.db.repositories.case_repo import case_search_filters, case_statistics_filters
from reconciliation.models.domain import (
    ACTIVE_STATUSES,
    CASE_NUMBER_PREFIXES,
    DEFAULT_CASE_NUMBER_PREFIX,
    Case,
    CaseDetails,
    CaseEventKind,
    CaseStatus,
    CaseType,
    ConfidentialityLevel,
    Page,
    Priority,
)
from reconciliation.models.responses import (
    CaseStatistics,
    CaseTypeBreakdown,
    MediatorPerformance,
)
from reconciliation.services.cases.assignment import ensure_mediator_capacity
from reconciliation.services.cases.validators import validate_case_update, validate_new_case
from reconciliation.utils.numbers import mean_half_up, page_window

if TYPE_CHECKING:
    from reconciliation.core.clock import Clock
    from reconciliation.core.config import Settings
    from reconciliation.db.repositories import CaseEventRepo, CaseRepo, SessionRepo
    from reconciliation.models.requests import (
        CaseCreate,
        CaseSearchFilters,
        CaseUpdate,
        StatisticsFilters,
    )
    from reconciliation.services.cases.timeline import TimelineReconstructor
    from reconciliation.services.people.directory import PersonDirectory

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


def format_case_number(prefix: str, year: int, sequence: int) -> str:
    return f"{prefix}-{year}-{sequence:04d}"


class CaseRegistry:
    """Creates and reads cases."""

    def __init__(
        self,
        cases: CaseRepo,
        sessions: SessionRepo,
        events: CaseEventRepo,
        people: PersonDirectory,
        timeline: TimelineReconstructor,
        settings: Settings,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._cases = cases
        self._sessions = sessions
        self._events = events
        self._people = people
        self._timeline = timeline
        self._settings = settings
        self._clock = clock

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------

    async def create_case(self, payload: CaseCreate, actor_id: str) -> Case:
        """File a new case in status NEW (unless another status is given).

        A case filed as SETTLED gets the same settlement defaults as a
        transition to SETTLED. A named mediator must have room under the
        active-case cap when the case is filed in an active status.
        """
        now = self._clock()
        if payload.status == CaseStatus.SETTLED.value and payload.settlement_date is None:
            payload = payload.model_copy(update={"settlement_date": now.date()})
        validate_new_case(payload)
        await self._require_people(
            plaintiff_id=payload.plaintiff_id,
            defendant_id=payload.defendant_id,
            mediator_id=payload.mediator_id,
        )

        status = CaseStatus(payload.status or CaseStatus.NEW.value)
        if payload.mediator_id and status in ACTIVE_STATUSES:
            await ensure_mediator_capacity(
                self._cases, payload.mediator_id, self._settings.mediator_case_capacity
            )

        # Presence of these three was checked by validate_new_case.
        title = cast(str, payload.title).strip()
        case_type = CaseType(cast(str, payload.case_type))
        filing_date = cast(date, payload.filing_date)
        case_number = await self.generate_case_number(case_type, filing_date)

        values: dict[str, Any] = payload.model_dump()
        if status == CaseStatus.SETTLED and payload.follow_up_required:
            values["follow_up_date"] = cast(date, payload.settlement_date) + timedelta(
                days=self._settings.follow_up_days
            )
        values.update(
            case_number=case_number,
            title=title,
            status=status.value,
            priority=payload.priority or Priority.MEDIUM.value,
            confidentiality=payload.confidentiality or ConfidentialityLevel.MEDIUM.value,
            created_by=actor_id,
            updated_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        case = await self._cases.create(values)

        await self._events.append(
            case.id,
            CaseEventKind.CASE_FILED,
            occurred_at=now,
            actor_id=actor_id,
            new_status=case.status,
            description=f"Case {case.case_number} filed",
            payload={"case_number": case.case_number, "case_type": case.case_type.value},
        )

        CASES_CREATED.labels(case_type=case.case_type.value).inc()
        logger.info(
            "case_created",
            case_id=case.id,
            case_number=case.case_number,
            case_type=case.case_type.value,
            actor_id=actor_id,
        )
        return case

    async def generate_case_number(self, case_type: CaseType, filing_date: date) -> str:
        """Next number in the (type prefix, filing year) partition, e.g. FD-2024-0007."""
        prefix = CASE_NUMBER_PREFIXES.get(case_type, DEFAULT_CASE_NUMBER_PREFIX)
        sequence = await self._cases.next_sequence(prefix, filing_date.year)
        return format_case_number(prefix, filing_date.year, sequence)

    async def update_case(self, case_id: str, changes: CaseUpdate, actor_id: str) -> Case:
        """Apply a validated partial edit. Status and mediator are not editable here."""
        current = await self._cases.get(case_id, for_update=True)
        if current is None:
            raise NotFoundError("Case not found", details={"case_id": case_id})

        updates = validate_case_update(current, changes)
        await self._require_people(
            plaintiff_id=updates.get("plaintiff_id"),
            defendant_id=updates.get("defendant_id"),
        )
        if not updates:
            return current

        updates["updated_by"] = actor_id
        await self._cases.update_fields(case_id, updates)
        logger.info(
            "case_updated",
            case_id=case_id,
            fields=sorted(k for k in updates if k != "updated_by"),
            actor_id=actor_id,
        )
        return await self.get_case(case_id)

    async def delete_case(self, case_id: str, actor_id: str) -> None:
        """Soft-delete a case; it disappears from every default read."""
        deleted = await self._cases.soft_delete(case_id, actor_id=actor_id, at=self._clock())
        if not deleted:
            raise NotFoundError("Case not found", details={"case_id": case_id})
        logger.info("case_deleted", case_id=case_id, actor_id=actor_id)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    async def get_case(self, case_id: str) -> Case:
        case = await self._cases.get(case_id)
        if case is None:
            raise NotFoundError("Case not found", details={"case_id": case_id})
        return case

    async def get_case_details(self, case_id: str) -> CaseDetails:
        """A case with party profiles, sessions, timeline, duration, and related cases."""
        case = await self.get_case(case_id)

        plaintiff = await self._people.lookup(case.plaintiff_id) if case.plaintiff_id else None
        defendant = await self._people.lookup(case.defendant_id) if case.defendant_id else None
        mediator = await self._people.lookup(case.mediator_id) if case.mediator_id else None

        sessions = await self._sessions.list_for_case(case_id)
        timeline = await self._timeline.get_case_timeline(case_id)
        related = await self._cases.find_related(case, limit=self._settings.related_cases_limit)

        end = case.settlement_date or self._clock().date()
        return CaseDetails(
            case=case,
            plaintiff=plaintiff,
            defendant=defendant,
            mediator=mediator,
            sessions=sessions,
            timeline=timeline,
            duration_days=(end - case.filing_date).days,
            related_cases=related,
        )

    async def search_cases(
        self,
        criteria: CaseSearchFilters,
        *,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[Case]:
        page, limit, offset = page_window(
            page,
            limit,
            default=self._settings.default_page_size,
            maximum=self._settings.max_page_size,
        )
        items, total = await self._cases.search(
            case_search_filters(criteria), limit=limit, offset=offset
        )
        return Page[Case].build(items, total=total, page=page, limit=limit)

    async def get_case_statistics(self, criteria: StatisticsFilters) -> CaseStatistics:
        """Counts per status and type, settlement averages, and mediator standings.

        Durations run from filing to settlement, or to today for open cases.
        """
        cases = await self._cases.list_matching(case_statistics_filters(criteria))
        today = self._clock().date()

        status_counts = Counter(case.status for case in cases)
        amounts = [c.settlement_amount for c in cases if c.settlement_amount is not None]
        average_amount = mean_half_up(amounts, places=2)

        by_type: list[CaseTypeBreakdown] = []
        for case_type in CaseType:
            of_type = [c for c in cases if c.case_type == case_type]
            if not of_type:
                continue
            by_type.append(
                CaseTypeBreakdown(
                    case_type=case_type,
                    count=len(of_type),
                    settled_count=_settled_count(of_type),
                    average_duration_days=_average_duration(of_type, today),
                )
            )

        filing_dates = [c.filing_date for c in cases]
        return CaseStatistics(
            total_cases=len(cases),
            by_status={status: status_counts.get(status, 0) for status in CaseStatus},
            average_settlement_amount=average_amount,
            oldest_filing_date=min(filing_dates, default=None),
            newest_filing_date=max(filing_dates, default=None),
            by_type=by_type,
            mediator_performance=await self._mediator_performance(cases, today),
        )

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------

    async def _mediator_performance(
        self, cases: list[Case], today: date
    ) -> list[MediatorPerformance]:
        """Per-mediator totals, most settlements first."""
        by_mediator: dict[str, list[Case]] = {}
        for case in cases:
            if case.mediator_id:
                by_mediator.setdefault(case.mediator_id, []).append(case)

        ranked = sorted(
            by_mediator.items(),
            key=lambda item: (-_settled_count(item[1]), -len(item[1]), item[0]),
        )[: self._settings.top_mediators_limit]

        performance: list[MediatorPerformance] = []
        for mediator_id, held in ranked:
            profile = await self._people.lookup(mediator_id)
            performance.append(
                MediatorPerformance(
                    mediator_id=mediator_id,
                    mediator_name=profile.full_name if profile else None,
                    total_cases=len(held),
                    settled_cases=_settled_count(held),
                    average_duration_days=_average_duration(held, today),
                )
            )
        return performance

    async def _require_people(self, **person_ids: str | None) -> None:
        """Fail on the first id the directory cannot resolve, in argument order."""
        for field, person_id in person_ids.items():
            if not person_id:
                continue
            if not await self._people.exists(person_id):
                role = field.removesuffix("_id").capitalize()
                raise NotFoundError(f"{role} not found", details={field: person_id})


def _settled_count(cases: list[Case]) -> int:
    return sum(1 for case in cases if case.status == CaseStatus.SETTLED)


def _average_duration(cases: list[Case], today: date) -> int | None:
    average = mean_half_up([((c.settlement_date or today) - c.filing_date).days for c in cases])
    return int(average) if average is not None else None

"""Lifecycle Controller: status transitions, settlement, and follow-up scheduling.

Any status may follow any other; only membership in CaseStatus is checked.
Each transition writes, in one transaction:
    field update → prepended notes annotation → case_events row
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog

from reconciliation.core.clock import utcnow
from reconciliation.core.exceptions import NotFoundError, ValidationError
from reconciliation.core.metrics import STATUS_CHANGES
from reconciliation.models.domain import CaseEventKind, CaseStatus, FollowUpCase
from reconciliation.services.cases.validators import enum_violation
from reconciliation.utils.annotations import (
    CASE_SETTLED,
    format_annotation,
    status_change_label,
)

if TYPE_CHECKING:
    from reconciliation.core.clock import Clock
    from reconciliation.core.config import Settings
    from reconciliation.db.repositories import CaseEventRepo, CaseRepo
    from reconciliation.models.domain import Case
    from reconciliation.models.requests import SettlementRequest

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

_STATUS_VALUES = {status.value for status in CaseStatus}


class LifecycleController:
    """Drives cases through their statuses."""

    def __init__(
        self,
        cases: CaseRepo,
        events: CaseEventRepo,
        settings: Settings,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._cases = cases
        self._events = events
        self._follow_up_days = settings.follow_up_days
        self._clock = clock

    async def update_case_status(
        self,
        case_id: str,
        new_status: str,
        notes: str,
        actor_id: str,
    ) -> Case:
        """Move a case to `new_status`.

        Moving to SETTLED fills settlement_date with today when it is unset
        and schedules the follow-up when the case requires one. A case filed
        after today cannot be settled that way and raises ValidationError.
        """
        current = await self._load_for_update(case_id)
        if new_status not in _STATUS_VALUES:
            raise ValidationError([enum_violation("status", CaseStatus)])

        status = CaseStatus(new_status)
        now = self._clock()
        updates: dict[str, Any] = {"status": status.value, "updated_by": actor_id}

        if status == CaseStatus.SETTLED:
            settlement_date = current.settlement_date
            if settlement_date is None:
                settlement_date = now.date()
                if settlement_date < current.filing_date:
                    raise ValidationError(["Settlement date cannot be before filing date"])
                updates["settlement_date"] = settlement_date
            follow_up = self._follow_up_date(current, settlement_date, current.follow_up_required)
            if follow_up is not None:
                updates["follow_up_date"] = follow_up

        await self._cases.update_fields(case_id, updates)
        await self._cases.prepend_note(
            case_id, format_annotation(status_change_label(status.value), now, notes)
        )
        await self._events.append(
            case_id,
            CaseEventKind.STATUS_CHANGE,
            occurred_at=now,
            actor_id=actor_id,
            previous_status=current.status,
            new_status=status,
            description=notes,
        )

        STATUS_CHANGES.labels(new_status=status.value).inc()
        logger.info(
            "case_status_changed",
            case_id=case_id,
            previous_status=current.status.value,
            new_status=status.value,
            actor_id=actor_id,
        )
        return await self._reload(case_id)

    async def settle_case(
        self,
        case_id: str,
        settlement: SettlementRequest,
        actor_id: str,
    ) -> Case:
        """Record a settlement and force the case into SETTLED."""
        current = await self._load_for_update(case_id)
        now = self._clock()
        settlement_date = settlement.settlement_date or now.date()

        violations: list[str] = []
        if settlement_date < current.filing_date:
            violations.append("Settlement date cannot be before filing date")
        if settlement.settlement_amount is not None and settlement.settlement_amount < 0:
            violations.append("Settlement amount cannot be negative")
        if violations:
            raise ValidationError(violations)

        follow_up_required = current.follow_up_required or bool(settlement.follow_up_required)
        updates: dict[str, Any] = {
            "status": CaseStatus.SETTLED.value,
            "settlement_date": settlement_date,
            "updated_by": actor_id,
        }
        if settlement.settlement_amount is not None:
            updates["settlement_amount"] = settlement.settlement_amount
        if settlement.settlement_terms is not None:
            updates["settlement_terms"] = settlement.settlement_terms
        if follow_up_required and not current.follow_up_required:
            updates["follow_up_required"] = True
        follow_up = self._follow_up_date(current, settlement_date, follow_up_required)
        if follow_up is not None:
            updates["follow_up_date"] = follow_up

        terms = settlement.settlement_terms or "Settlement reached"
        await self._cases.update_fields(case_id, updates)
        await self._cases.prepend_note(case_id, format_annotation(CASE_SETTLED, now, terms))
        await self._events.append(
            case_id,
            CaseEventKind.CASE_SETTLED,
            occurred_at=now,
            actor_id=actor_id,
            previous_status=current.status,
            new_status=CaseStatus.SETTLED,
            description=terms,
            payload={
                "settlement_date": settlement_date.isoformat(),
                "settlement_amount": _amount_text(settlement.settlement_amount),
            },
        )

        STATUS_CHANGES.labels(new_status=CaseStatus.SETTLED.value).inc()
        logger.info(
            "case_settled",
            case_id=case_id,
            settlement_date=settlement_date.isoformat(),
            follow_up_date=follow_up.isoformat() if follow_up else None,
            actor_id=actor_id,
        )
        return await self._reload(case_id)

    async def get_cases_requiring_follow_up(self) -> list[FollowUpCase]:
        """Settled cases with a follow-up due today or later, soonest first."""
        today = self._clock().date()
        due = await self._cases.follow_up_due(today)
        return [
            FollowUpCase(
                case=case,
                days_until_follow_up=(case.follow_up_date - today).days
                if case.follow_up_date
                else 0,
            )
            for case in due
        ]

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------

    def _follow_up_date(
        self,
        current: Case,
        settlement_date: date,
        follow_up_required: bool,
    ) -> date | None:
        """The follow-up date to set, or None. An existing date is never moved."""
        if not follow_up_required or current.follow_up_date is not None:
            return None
        return settlement_date + timedelta(days=self._follow_up_days)

    async def _load_for_update(self, case_id: str) -> Case:
        case = await self._cases.get(case_id, for_update=True)
        if case is None:
            raise NotFoundError("Case not found", details={"case_id": case_id})
        return case

    async def _reload(self, case_id: str) -> Case:
        case = await self._cases.get(case_id)
        if case is None:
            raise NotFoundError("Case not found", details={"case_id": case_id})
        return case


def _amount_text(amount: Decimal | None) -> str | None:
    return str(amount) if amount is not None else None

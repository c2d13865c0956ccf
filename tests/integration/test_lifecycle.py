"""Tests for status transitions, settlement, and follow-up scheduling."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from reconciliation.core.exceptions import NotFoundError, ValidationError
from reconciliation.db.repositories import CaseEventRepo
from reconciliation.models.domain import CaseEventKind, CaseStatus
from reconciliation.models.requests import SettlementRequest
from reconciliation.services.cases.lifecycle import LifecycleController
from reconciliation.services.cases.registry import CaseRegistry
from tests.conftest import ACTOR_ID, FrozenClock, make_case_create

pytestmark = pytest.mark.integration


class TestUpdateCaseStatus:
    async def test_settling_with_follow_up(
        self, registry: CaseRegistry, lifecycle: LifecycleController
    ):
        case = await registry.create_case(make_case_create(follow_up_required=True), ACTOR_ID)

        settled = await lifecycle.update_case_status(case.id, "SETTLED", "Agreed terms", ACTOR_ID)

        assert settled.status == CaseStatus.SETTLED
        assert settled.settlement_date == date(2024, 3, 15)
        assert settled.follow_up_date == date(2024, 4, 14)
        assert settled.updated_by == ACTOR_ID
        assert settled.notes is not None
        assert settled.notes.startswith(
            "[Status Change: SETTLED] 2024-03-15T09:30:00.000Z: Agreed terms\n"
        )

    async def test_settling_keeps_existing_settlement_date(
        self, registry: CaseRegistry, lifecycle: LifecycleController
    ):
        case = await registry.create_case(
            make_case_create(settlement_date=date(2024, 3, 1), follow_up_required=True),
            ACTOR_ID,
        )
        settled = await lifecycle.update_case_status(case.id, "SETTLED", "", ACTOR_ID)
        assert settled.settlement_date == date(2024, 3, 1)
        assert settled.follow_up_date == date(2024, 3, 31)

    async def test_no_follow_up_unless_required(
        self, registry: CaseRegistry, lifecycle: LifecycleController
    ):
        case = await registry.create_case(make_case_create(), ACTOR_ID)
        settled = await lifecycle.update_case_status(case.id, "SETTLED", "", ACTOR_ID)
        assert settled.follow_up_date is None

    async def test_settling_before_filing_date_rejected(
        self, registry: CaseRegistry, lifecycle: LifecycleController
    ):
        case = await registry.create_case(
            make_case_create(filing_date=date(2024, 6, 1), follow_up_required=True), ACTOR_ID
        )

        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.update_case_status(case.id, "SETTLED", "Agreed terms", ACTOR_ID)

        assert exc_info.value.errors == ["Settlement date cannot be before filing date"]
        unchanged = await registry.get_case(case.id)
        assert unchanged.status == CaseStatus.NEW
        assert unchanged.settlement_date is None
        assert unchanged.follow_up_date is None
        assert unchanged.notes is None

    async def test_follow_up_date_is_set_once(
        self,
        registry: CaseRegistry,
        lifecycle: LifecycleController,
        clock: FrozenClock,
    ):
        case = await registry.create_case(make_case_create(follow_up_required=True), ACTOR_ID)
        await lifecycle.update_case_status(case.id, "SETTLED", "", ACTOR_ID)
        await lifecycle.update_case_status(case.id, "IN_PROGRESS", "Reopened", ACTOR_ID)
        clock.advance(days=10)

        again = await lifecycle.update_case_status(case.id, "SETTLED", "", ACTOR_ID)

        assert again.settlement_date == date(2024, 3, 15)
        assert again.follow_up_date == date(2024, 4, 14)

    async def test_any_status_may_follow_any_other(
        self, registry: CaseRegistry, lifecycle: LifecycleController
    ):
        case = await registry.create_case(make_case_create(), ACTOR_ID)
        for status in ("DISMISSED", "NEW", "ESCALATED", "MEDIATION"):
            case = await lifecycle.update_case_status(case.id, status, "", ACTOR_ID)
            assert case.status == status

    async def test_annotations_newest_first(
        self,
        registry: CaseRegistry,
        lifecycle: LifecycleController,
        clock: FrozenClock,
    ):
        case = await registry.create_case(make_case_create(), ACTOR_ID)
        await lifecycle.update_case_status(case.id, "IN_PROGRESS", "first", ACTOR_ID)
        clock.advance(hours=2)
        updated = await lifecycle.update_case_status(case.id, "MEDIATION", "second", ACTOR_ID)

        assert updated.notes == (
            "[Status Change: MEDIATION] 2024-03-15T11:30:00.000Z: second\n"
            "[Status Change: IN_PROGRESS] 2024-03-15T09:30:00.000Z: first\n"
        )

    async def test_transition_is_logged(
        self,
        registry: CaseRegistry,
        lifecycle: LifecycleController,
        event_repo: CaseEventRepo,
    ):
        case = await registry.create_case(make_case_create(), ACTOR_ID)
        await lifecycle.update_case_status(case.id, "IN_PROGRESS", "Work started", "user-2")

        [event] = await event_repo.list_for_case(case.id, kind=CaseEventKind.STATUS_CHANGE)
        assert event.previous_status == CaseStatus.NEW
        assert event.new_status == CaseStatus.IN_PROGRESS
        assert event.description == "Work started"
        assert event.actor_id == "user-2"

    async def test_unknown_status_rejected(
        self, registry: CaseRegistry, lifecycle: LifecycleController
    ):
        case = await registry.create_case(make_case_create(), ACTOR_ID)
        with pytest.raises(ValidationError, match="Invalid status"):
            await lifecycle.update_case_status(case.id, "CLOSED", "", ACTOR_ID)
        assert (await registry.get_case(case.id)).status == CaseStatus.NEW

    async def test_missing_case(self, lifecycle: LifecycleController):
        with pytest.raises(NotFoundError, match="Case not found"):
            await lifecycle.update_case_status("missing", "SETTLED", "", ACTOR_ID)


class TestSettleCase:
    async def test_records_settlement(
        self,
        registry: CaseRegistry,
        lifecycle: LifecycleController,
        event_repo: CaseEventRepo,
    ):
        case = await registry.create_case(make_case_create(), ACTOR_ID)
        settled = await lifecycle.settle_case(
            case.id,
            SettlementRequest(
                settlement_amount=Decimal("2500.00"),
                settlement_terms="Orchard split by rows",
                settlement_date=date(2024, 3, 10),
                follow_up_required=True,
            ),
            ACTOR_ID,
        )

        assert settled.status == CaseStatus.SETTLED
        assert settled.settlement_amount == Decimal("2500.00")
        assert settled.settlement_terms == "Orchard split by rows"
        assert settled.follow_up_required is True
        assert settled.follow_up_date == date(2024, 4, 9)
        assert settled.notes is not None
        assert settled.notes.startswith("[Case Settled] 2024-03-15T09:30:00.000Z: Orchard split")

        [event] = await event_repo.list_for_case(case.id, kind=CaseEventKind.CASE_SETTLED)
        assert event.payload == {"settlement_date": "2024-03-10", "settlement_amount": "2500.00"}

    async def test_defaults_to_today(
        self, registry: CaseRegistry, lifecycle: LifecycleController
    ):
        case = await registry.create_case(make_case_create(), ACTOR_ID)
        settled = await lifecycle.settle_case(case.id, SettlementRequest(), ACTOR_ID)
        assert settled.settlement_date == date(2024, 3, 15)
        assert settled.follow_up_date is None
        assert settled.notes is not None
        assert settled.notes.startswith(
            "[Case Settled] 2024-03-15T09:30:00.000Z: Settlement reached"
        )

    async def test_rejects_every_violation(
        self, registry: CaseRegistry, lifecycle: LifecycleController
    ):
        case = await registry.create_case(make_case_create(), ACTOR_ID)
        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.settle_case(
                case.id,
                SettlementRequest(
                    settlement_amount=Decimal("-1.00"), settlement_date=date(2023, 12, 1)
                ),
                ACTOR_ID,
            )
        assert exc_info.value.errors == [
            "Settlement date cannot be before filing date",
            "Settlement amount cannot be negative",
        ]
        assert (await registry.get_case(case.id)).status == CaseStatus.NEW

    async def test_missing_case(self, lifecycle: LifecycleController):
        with pytest.raises(NotFoundError):
            await lifecycle.settle_case("missing", SettlementRequest(), ACTOR_ID)


class TestFollowUpQueue:
    async def test_due_cases_soonest_first(
        self, registry: CaseRegistry, lifecycle: LifecycleController
    ):
        for settlement_date in (None, date(2024, 3, 1), date(2024, 1, 15)):
            case = await registry.create_case(
                make_case_create(follow_up_required=True), ACTOR_ID
            )
            await lifecycle.settle_case(
                case.id, SettlementRequest(settlement_date=settlement_date), ACTOR_ID
            )
        await registry.create_case(make_case_create(follow_up_required=True), ACTOR_ID)

        due = await lifecycle.get_cases_requiring_follow_up()

        assert [d.case.follow_up_date for d in due] == [date(2024, 3, 31), date(2024, 4, 14)]
        assert [d.days_until_follow_up for d in due] == [16, 30]

    async def test_due_today_counts(
        self,
        registry: CaseRegistry,
        lifecycle: LifecycleController,
        clock: FrozenClock,
    ):
        case = await registry.create_case(make_case_create(follow_up_required=True), ACTOR_ID)
        await lifecycle.settle_case(case.id, SettlementRequest(), ACTOR_ID)
        clock.advance(days=30)

        [due] = await lifecycle.get_cases_requiring_follow_up()
        assert due.days_until_follow_up == 0

    async def test_reopened_case_leaves_queue(
        self, registry: CaseRegistry, lifecycle: LifecycleController
    ):
        case = await registry.create_case(make_case_create(follow_up_required=True), ACTOR_ID)
        await lifecycle.settle_case(case.id, SettlementRequest(), ACTOR_ID)
        await lifecycle.update_case_status(case.id, "IN_PROGRESS", "Terms breached", ACTOR_ID)
        assert await lifecycle.get_cases_requiring_follow_up() == []

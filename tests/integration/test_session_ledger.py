"""Tests for recording, editing, and reading mediation sessions."""

from __future__ import annotations

from datetime import date, time

import pytest

from reconciliation.core.exceptions import (
    NotFoundError,
    ReferentialIntegrityError,
    ValidationError,
)
from reconciliation.db.repositories import SessionRepo
from reconciliation.models.domain import Agreement, Attendee, Case, SessionType
from reconciliation.models.requests import (
    SessionOutcome,
    SessionSearchFilters,
    SessionUpdate,
)
from reconciliation.services.cases.registry import CaseRegistry
from reconciliation.services.sessions.ledger import SessionLedger
from tests.conftest import (
    ACTOR_ID,
    ATTENDEE_ID,
    DEFENDANT_ID,
    PLAINTIFF_ID,
    StaticPersonDirectory,
    make_case_create,
    make_session_create,
)

pytestmark = pytest.mark.integration


@pytest.fixture
async def case(registry: CaseRegistry) -> Case:
    return await registry.create_case(make_case_create(), ACTOR_ID)


class TestCreateSession:
    async def test_records_session(self, ledger: SessionLedger, case: Case):
        session = await ledger.create_session(
            make_session_create(
                case.id,
                session_time=time(14, 0),
                attendees=[
                    {"person_id": PLAINTIFF_ID, "role": "PLAINTIFF"},
                    {"person_id": DEFENDANT_ID, "role": "DEFENDANT"},
                ],
                agreements=[{"description": "Survey the orchard boundary"}],
                next_session_date=date(2024, 2, 15),
            ),
            ACTOR_ID,
        )

        assert session.case_id == case.id
        assert session.session_type == SessionType.MEDIATION
        assert session.session_time == time(14, 0)
        assert session.attendees == [
            Attendee(person_id=PLAINTIFF_ID, role="PLAINTIFF"),
            Attendee(person_id=DEFENDANT_ID, role="DEFENDANT"),
        ]
        assert session.agreements == [Agreement(description="Survey the orchard boundary")]
        assert session.created_by == ACTOR_ID

    async def test_next_date_before_session_date(self, ledger: SessionLedger, case: Case):
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_session(
                make_session_create(
                    case.id,
                    session_date=date(2024, 2, 1),
                    next_session_date=date(2024, 1, 20),
                ),
                ACTOR_ID,
            )
        assert exc_info.value.errors == [
            "Next session date cannot be before current session date"
        ]

    async def test_every_field_violation_reported(self, ledger: SessionLedger):
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_session(
                make_session_create("", session_date=None, session_type="LUNCH"), ACTOR_ID
            )
        assert exc_info.value.errors == [
            "Case ID is required",
            "Session date is required",
            "Invalid session type. Must be one of: "
            "INITIAL, MEDIATION, SETTLEMENT, FOLLOW_UP, OTHER",
        ]

    async def test_unknown_attendee_stores_nothing(
        self, ledger: SessionLedger, session_repo: SessionRepo, case: Case
    ):
        attendees = [
            {"person_id": PLAINTIFF_ID, "role": "PLAINTIFF"},
            {"person_id": "ghost", "role": "WITNESS"},
        ]
        with pytest.raises(ReferentialIntegrityError, match="Attendee with ID ghost not found"):
            await ledger.create_session(
                make_session_create(case.id, attendees=attendees), ACTOR_ID
            )
        assert await session_repo.list_for_case(case.id) == []

    async def test_case_must_be_live(self, ledger: SessionLedger, registry: CaseRegistry):
        case = await registry.create_case(make_case_create(), ACTOR_ID)
        await registry.delete_case(case.id, ACTOR_ID)
        with pytest.raises(NotFoundError, match="Case not found"):
            await ledger.create_session(make_session_create(case.id), ACTOR_ID)


class TestCaseSessions:
    async def test_ascending_by_date_then_time(self, ledger: SessionLedger, case: Case):
        for day, at in (
            (date(2024, 2, 10), time(14, 0)),
            (date(2024, 2, 1), None),
            (date(2024, 2, 10), time(9, 0)),
            (date(2024, 2, 10), None),
        ):
            await ledger.create_session(
                make_session_create(case.id, session_date=day, session_time=at), ACTOR_ID
            )

        sessions = await ledger.get_case_sessions(case.id)

        assert [(s.session_date, s.session_time) for s in sessions] == [
            (date(2024, 2, 1), None),
            (date(2024, 2, 10), None),
            (date(2024, 2, 10), time(9, 0)),
            (date(2024, 2, 10), time(14, 0)),
        ]

    async def test_filter_by_type(self, ledger: SessionLedger, case: Case):
        await ledger.create_session(make_session_create(case.id, session_type="INITIAL"), ACTOR_ID)
        await ledger.create_session(make_session_create(case.id), ACTOR_ID)

        initial = await ledger.get_case_sessions(case.id, session_type="INITIAL")
        assert [s.session_type for s in initial] == [SessionType.INITIAL]

    async def test_unknown_type_rejected(self, ledger: SessionLedger, case: Case):
        with pytest.raises(ValidationError, match="Invalid session type"):
            await ledger.get_case_sessions(case.id, session_type="LUNCH")

    async def test_missing_case(self, ledger: SessionLedger):
        with pytest.raises(NotFoundError):
            await ledger.get_case_sessions("missing")


class TestSessionOutcome:
    async def test_agreements_replaced_and_notes_prepended(
        self, ledger: SessionLedger, case: Case
    ):
        session = await ledger.create_session(
            make_session_create(case.id, agreements=[{"description": "Initial draft"}]),
            ACTOR_ID,
        )

        updated = await ledger.update_session_outcome(
            session.id,
            SessionOutcome(
                agreements=[
                    Agreement(description="Split harvest 60/40", responsible_party_id=PLAINTIFF_ID),
                ],
                next_session_date=date(2024, 3, 1),
                notes="Both parties signed",
            ),
            ACTOR_ID,
        )

        assert [a.description for a in updated.agreements] == ["Split harvest 60/40"]
        assert updated.next_session_date == date(2024, 3, 1)
        assert updated.notes == "[Session Outcome] 2024-03-15T09:30:00.000Z: Both parties signed\n"

    async def test_omitted_agreements_kept(self, ledger: SessionLedger, case: Case):
        session = await ledger.create_session(
            make_session_create(case.id, agreements=[{"description": "Keep me"}]), ACTOR_ID
        )
        updated = await ledger.update_session_outcome(
            session.id, SessionOutcome(notes="No change to terms"), ACTOR_ID
        )
        assert [a.description for a in updated.agreements] == ["Keep me"]

    async def test_next_date_checked(self, ledger: SessionLedger, case: Case):
        session = await ledger.create_session(make_session_create(case.id), ACTOR_ID)
        with pytest.raises(ValidationError, match="Next session date cannot be before"):
            await ledger.update_session_outcome(
                session.id, SessionOutcome(next_session_date=date(2024, 1, 1)), ACTOR_ID
            )

    async def test_missing_session(self, ledger: SessionLedger):
        with pytest.raises(NotFoundError, match="Session not found"):
            await ledger.update_session_outcome("missing", SessionOutcome(), ACTOR_ID)


class TestEditAndDelete:
    async def test_descriptive_edit(self, ledger: SessionLedger, case: Case):
        session = await ledger.create_session(make_session_create(case.id), ACTOR_ID)
        updated = await ledger.update_session(
            session.id,
            SessionUpdate(location="Committee Hall B", session_type="SETTLEMENT"),
            ACTOR_ID,
        )
        assert updated.location == "Committee Hall B"
        assert updated.session_type == SessionType.SETTLEMENT
        assert updated.session_date == session.session_date

    async def test_moving_past_next_session_rejected(self, ledger: SessionLedger, case: Case):
        session = await ledger.create_session(
            make_session_create(case.id, next_session_date=date(2024, 2, 8)), ACTOR_ID
        )
        with pytest.raises(ValidationError):
            await ledger.update_session(
                session.id, SessionUpdate(session_date=date(2024, 2, 9)), ACTOR_ID
            )

    async def test_delete(self, ledger: SessionLedger, case: Case):
        session = await ledger.create_session(make_session_create(case.id), ACTOR_ID)
        await ledger.delete_session(session.id, ACTOR_ID)

        assert await ledger.get_case_sessions(case.id) == []
        with pytest.raises(NotFoundError):
            await ledger.get_session(session.id)
        with pytest.raises(NotFoundError):
            await ledger.delete_session(session.id, ACTOR_ID)


class TestSessionReads:
    async def test_details_resolve_attendees(
        self, ledger: SessionLedger, people: StaticPersonDirectory, case: Case
    ):
        people.add(ATTENDEE_ID, full_name="Nadia Karim", user_type="ELDER")
        session = await ledger.create_session(
            make_session_create(
                case.id,
                attendees=[
                    {"person_id": PLAINTIFF_ID, "role": "PLAINTIFF"},
                    {"person_id": ATTENDEE_ID, "role": "WITNESS"},
                ],
            ),
            ACTOR_ID,
        )

        details = await ledger.get_session(session.id)

        assert details.session.id == session.id
        assert details.case is not None
        assert details.case.id == case.id
        assert [p.person_id for p in details.attendee_profiles] == [PLAINTIFF_ID, ATTENDEE_ID]
        assert details.attendee_profiles[1].full_name == "Nadia Karim"

    async def test_upcoming_window(self, ledger: SessionLedger, case: Case):
        for day in (date(2024, 3, 14), date(2024, 3, 22), date(2024, 3, 15), date(2024, 3, 23)):
            await ledger.create_session(make_session_create(case.id, session_date=day), ACTOR_ID)

        upcoming = await ledger.get_upcoming_sessions()
        assert [s.session_date for s in upcoming] == [date(2024, 3, 15), date(2024, 3, 22)]

        today_only = await ledger.get_upcoming_sessions(days_ahead=0)
        assert [s.session_date for s in today_only] == [date(2024, 3, 15)]

    async def test_upcoming_rejects_negative_window(self, ledger: SessionLedger):
        with pytest.raises(ValidationError):
            await ledger.get_upcoming_sessions(days_ahead=-1)

    async def test_search(self, ledger: SessionLedger, registry: CaseRegistry, case: Case):
        other = await registry.create_case(
            make_case_create(case_type="BUSINESS", title="Unpaid supplier invoices"), ACTOR_ID
        )
        await ledger.create_session(
            make_session_create(case.id, session_date=date(2024, 2, 1)), ACTOR_ID
        )
        await ledger.create_session(
            make_session_create(
                case.id,
                session_date=date(2024, 2, 20),
                discussion_summary="Agreed to commission a land survey.",
            ),
            ACTOR_ID,
        )
        await ledger.create_session(
            make_session_create(other.id, session_date=date(2024, 2, 10)), ACTOR_ID
        )

        everything = await ledger.search_sessions(SessionSearchFilters())
        assert everything.total == 3
        assert [s.session_date for s in everything.items] == [
            date(2024, 2, 20),
            date(2024, 2, 10),
            date(2024, 2, 1),
        ]

        by_case_title = await ledger.search_sessions(SessionSearchFilters(search="supplier"))
        assert [s.case_id for s in by_case_title.items] == [other.id]

        by_summary = await ledger.search_sessions(SessionSearchFilters(search="LAND SURVEY"))
        assert by_summary.total == 1

        february_start = await ledger.search_sessions(
            SessionSearchFilters(
                case_id=case.id,
                session_date_from=date(2024, 2, 1),
                session_date_to=date(2024, 2, 10),
            )
        )
        assert [s.session_date for s in february_start.items] == [date(2024, 2, 1)]

        paged = await ledger.search_sessions(SessionSearchFilters(), page=2, limit=2)
        assert len(paged.items) == 1
        assert paged.has_previous

    async def test_statistics(self, ledger: SessionLedger, registry: CaseRegistry, case: Case):
        other = await registry.create_case(make_case_create(), ACTOR_ID)
        await ledger.create_session(make_session_create(case.id, session_type="INITIAL"), ACTOR_ID)
        await ledger.create_session(make_session_create(case.id), ACTOR_ID)
        await ledger.create_session(
            make_session_create(case.id, session_date=date(2024, 3, 1)), ACTOR_ID
        )
        await ledger.create_session(make_session_create(other.id), ACTOR_ID)

        overall = await ledger.get_session_statistics()
        assert overall.total_sessions == 4
        assert overall.by_type == {"INITIAL": 1, "MEDIATION": 3}

        for_case = await ledger.get_session_statistics(
            case_id=case.id, date_from=date(2024, 2, 15)
        )
        assert for_case.total_sessions == 1
        assert for_case.by_type == {"MEDIATION": 1}

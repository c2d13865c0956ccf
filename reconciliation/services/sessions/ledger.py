"""Session Ledger: mediation sessions recorded against a case.

Creating a session checks, in order:
    field validation (exhaustive) → owning case is live → every attendee resolves

A session is only ever changed by an outcome update or a descriptive edit,
and only ever soft-deleted.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

import structlog

from reconciliation.core.clock import utcnow
from reconciliation.core.exceptions import (
    NotFoundError,
    ReferentialIntegrityError,
    ValidationError,
)
from reconciliation.core.metrics import SESSIONS_RECORDED
from reconciliation.db.repositories.session_repo import (
    session_search_filters,
    session_statistics_filters,
)
from reconciliation.models.domain import (
    CaseSession,
    Page,
    PersonProfile,
    SessionDetails,
    SessionType,
)
from reconciliation.models.responses import SessionStatistics
from reconciliation.services.cases.validators import enum_violation
from reconciliation.services.sessions.validators import (
    validate_new_session,
    validate_next_session_date,
    validate_session_update,
)
from reconciliation.utils.annotations import SESSION_OUTCOME, format_annotation
from reconciliation.utils.numbers import page_window

if TYPE_CHECKING:
    from reconciliation.core.clock import Clock
    from reconciliation.core.config import Settings
    from reconciliation.db.repositories import CaseRepo, SessionRepo
    from reconciliation.models.requests import (
        SessionCreate,
        SessionOutcome,
        SessionSearchFilters,
        SessionUpdate,
    )
    from reconciliation.services.people.directory import PersonDirectory

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

_SESSION_TYPES = {member.value for member in SessionType}


class SessionLedger:
    """Records and reads mediation sessions."""

    def __init__(
        self,
        sessions: SessionRepo,
        cases: CaseRepo,
        people: PersonDirectory,
        settings: Settings,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._sessions = sessions
        self._cases = cases
        self._people = people
        self._settings = settings
        self._clock = clock

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------

    async def create_session(self, payload: SessionCreate, actor_id: str) -> CaseSession:
        validate_new_session(payload)

        case = await self._cases.get(payload.case_id or "")
        if case is None:
            raise NotFoundError("Case not found", details={"case_id": payload.case_id})

        for attendee in payload.attendees:
            if not await self._people.exists(attendee.person_id):
                raise ReferentialIntegrityError(
                    f"Attendee with ID {attendee.person_id} not found",
                    details={"person_id": attendee.person_id},
                )

        now = self._clock()
        values: dict[str, Any] = payload.model_dump()
        values.update(
            session_type=payload.session_type or SessionType.MEDIATION.value,
            created_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        session = await self._sessions.create(values)

        SESSIONS_RECORDED.labels(session_type=session.session_type.value).inc()
        logger.info(
            "session_created",
            session_id=session.id,
            case_id=session.case_id,
            session_type=session.session_type.value,
            session_date=session.session_date.isoformat(),
            attendees=len(session.attendees),
            actor_id=actor_id,
        )
        return session

    async def update_session_outcome(
        self,
        session_id: str,
        outcome: SessionOutcome,
        actor_id: str,
    ) -> CaseSession:
        """Record what came out of a session.

        Agreements, when given, replace the stored list wholesale. Notes are
        prepended as a timestamped "[Session Outcome]" annotation.
        """
        current = await self._require_session(session_id, for_update=True)

        updates: dict[str, Any] = {}
        if outcome.agreements is not None:
            updates["agreements"] = outcome.agreements
        if outcome.next_session_date is not None:
            validate_next_session_date(current.session_date, outcome.next_session_date)
            updates["next_session_date"] = outcome.next_session_date

        if updates:
            await self._sessions.update_fields(session_id, updates)
        if outcome.notes:
            await self._sessions.prepend_note(
                session_id, format_annotation(SESSION_OUTCOME, self._clock(), outcome.notes)
            )

        logger.info(
            "session_outcome_recorded",
            session_id=session_id,
            fields=sorted(updates) + (["notes"] if outcome.notes else []),
            actor_id=actor_id,
        )
        return await self._require_session(session_id)

    async def update_session(
        self,
        session_id: str,
        changes: SessionUpdate,
        actor_id: str,
    ) -> CaseSession:
        """Edit descriptive fields of a session."""
        current = await self._require_session(session_id, for_update=True)
        updates = validate_session_update(current, changes)
        if not updates:
            return current

        await self._sessions.update_fields(session_id, updates)
        logger.info(
            "session_updated",
            session_id=session_id,
            fields=sorted(updates),
            actor_id=actor_id,
        )
        return await self._require_session(session_id)

    async def delete_session(self, session_id: str, actor_id: str) -> None:
        deleted = await self._sessions.soft_delete(session_id, at=self._clock())
        if not deleted:
            raise NotFoundError("Session not found", details={"session_id": session_id})
        logger.info("session_deleted", session_id=session_id, actor_id=actor_id)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    async def get_case_sessions(
        self,
        case_id: str,
        session_type: str | None = None,
    ) -> list[CaseSession]:
        """Sessions of a live case, ascending by (session_date, session_time)."""
        if session_type is not None and session_type not in _SESSION_TYPES:
            raise ValidationError([enum_violation("session type", SessionType)])
        if await self._cases.get(case_id) is None:
            raise NotFoundError("Case not found", details={"case_id": case_id})
        return await self._sessions.list_for_case(case_id, session_type=session_type)

    async def get_session(self, session_id: str) -> SessionDetails:
        """A session with its case and the resolved attendee profiles."""
        session = await self._require_session(session_id)
        case = await self._cases.get(session.case_id)

        profiles: list[PersonProfile] = []
        for attendee in session.attendees:
            profile = await self._people.lookup(attendee.person_id)
            if profile is not None:
                profiles.append(profile)

        return SessionDetails(session=session, case=case, attendee_profiles=profiles)

    async def search_sessions(
        self,
        criteria: SessionSearchFilters,
        *,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[CaseSession]:
        page, limit, offset = page_window(
            page,
            limit,
            default=self._settings.default_page_size,
            maximum=self._settings.max_page_size,
        )
        items, total = await self._sessions.search(
            session_search_filters(criteria), limit=limit, offset=offset
        )
        return Page[CaseSession].build(items, total=total, page=page, limit=limit)

    async def get_upcoming_sessions(self, days_ahead: int | None = None) -> list[CaseSession]:
        """Sessions dated from today through `days_ahead` days out."""
        days = self._settings.upcoming_sessions_days if days_ahead is None else days_ahead
        if days < 0:
            raise ValidationError(["days_ahead cannot be negative"])
        today = self._clock().date()
        return await self._sessions.list_between(today, today + timedelta(days=days))

    async def get_session_statistics(
        self,
        *,
        case_id: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> SessionStatistics:
        counts = await self._sessions.count_by_type(
            session_statistics_filters(case_id, date_from, date_to)
        )
        ordered = {
            session_type.value: counts[session_type.value]
            for session_type in SessionType
            if session_type.value in counts
        }
        return SessionStatistics(total_sessions=sum(counts.values()), by_type=ordered)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------

    async def _require_session(self, session_id: str, *, for_update: bool = False) -> CaseSession:
        session = await self._sessions.get(session_id, for_update=for_update)
        if session is None:
            raise NotFoundError("Session not found", details={"session_id": session_id})
        return session

"""Timeline reconstruction.

A case timeline is the chronological union of:
    filing → status changes → sessions → settlement

Status changes come from the append-only case_events log. Cases whose log
holds no status changes (records that predate the log) fall back to the
"[Status Change: ...]" annotations embedded in their notes. Everything
else is derived from the current case and session rows, so the feed can
be rebuilt at any time.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from typing import TYPE_CHECKING

import structlog

from reconciliation.core.exceptions import NotFoundError
from reconciliation.models.domain import CaseEventKind, TimelineEvent, TimelineEventType
from reconciliation.utils.annotations import parse_status_changes

if TYPE_CHECKING:
    from reconciliation.db.repositories import CaseEventRepo, CaseRepo, SessionRepo
    from reconciliation.models.domain import Case, CaseEvent, CaseSession

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

SUMMARY_PREVIEW_CHARS = 100


def _at_midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def _preview(summary: str | None) -> str:
    if not summary:
        return ""
    if len(summary) <= SUMMARY_PREVIEW_CHARS:
        return summary
    return summary[:SUMMARY_PREVIEW_CHARS] + "..."


def _filed_entry(case: Case) -> TimelineEvent:
    return TimelineEvent(
        date=_at_midnight(case.filing_date),
        event=TimelineEventType.CASE_FILED,
        title="Case Filed",
        description=f"Case {case.case_number} filed",
        data={
            "title": case.title,
            "type": case.case_type.value,
            "priority": case.priority.value,
        },
    )


def _status_entries(case: Case, status_events: list[CaseEvent]) -> list[TimelineEvent]:
    if status_events:
        return [
            TimelineEvent(
                date=event.occurred_at,
                event=TimelineEventType.STATUS_CHANGE,
                title=f"Status Changed to {event.new_status}",
                description=event.description,
                data={
                    "new_status": event.new_status.value if event.new_status else None,
                    "previous_status": (
                        event.previous_status.value if event.previous_status else None
                    ),
                    "actor_id": event.actor_id,
                },
            )
            for event in status_events
        ]

    return [
        TimelineEvent(
            date=parsed.occurred_at,
            event=TimelineEventType.STATUS_CHANGE,
            title=f"Status Changed to {parsed.status}",
            description=parsed.text,
            data={"new_status": parsed.status},
        )
        for parsed in parse_status_changes(case.notes)
    ]


def _session_entry(session: CaseSession) -> TimelineEvent:
    return TimelineEvent(
        date=_at_midnight(session.session_date),
        event=TimelineEventType.SESSION,
        title=f"{session.session_type.value} Session",
        description=_preview(session.discussion_summary),
        data={
            "session_id": session.id,
            "session_type": session.session_type.value,
            "location": session.location,
            "attendees_count": len(session.attendees),
        },
    )


def _settled_entry(case: Case) -> TimelineEvent | None:
    if case.settlement_date is None:
        return None
    amount = case.settlement_amount
    return TimelineEvent(
        date=_at_midnight(case.settlement_date),
        event=TimelineEventType.SETTLED,
        title="Case Settled",
        description=f"Case settled with amount: {amount if amount is not None else 'N/A'}",
        data={
            "settlement_amount": str(amount) if amount is not None else None,
            "settlement_terms": case.settlement_terms,
        },
    )


def build_timeline(
    case: Case,
    sessions: list[CaseSession],
    status_events: list[CaseEvent],
) -> list[TimelineEvent]:
    """Merge case state, status history, and sessions into one ascending feed.

    Date-only values are placed at UTC midnight. The sort is stable, so
    entries sharing a timestamp keep the filed/status/session/settled order.
    """
    entries = [_filed_entry(case)]
    entries.extend(_status_entries(case, status_events))
    entries.extend(_session_entry(session) for session in sessions)
    settled = _settled_entry(case)
    if settled is not None:
        entries.append(settled)
    return sorted(entries, key=lambda entry: entry.date)


class TimelineReconstructor:
    """Read-side assembly of a case's audit feed."""

    def __init__(
        self,
        cases: CaseRepo,
        sessions: SessionRepo,
        events: CaseEventRepo,
    ) -> None:
        self._cases = cases
        self._sessions = sessions
        self._events = events

    async def get_case_timeline(self, case_id: str) -> list[TimelineEvent]:
        case = await self._cases.get(case_id)
        if case is None:
            raise NotFoundError("Case not found", details={"case_id": case_id})

        sessions = await self._sessions.list_for_case(case_id)
        status_events = await self._events.list_for_case(
            case_id, kind=CaseEventKind.STATUS_CHANGE
        )
        timeline = build_timeline(case, sessions, status_events)
        logger.debug("timeline_built", case_id=case_id, entries=len(timeline))
        return timeline

    async def get_case_events(self, case_id: str) -> list[CaseEvent]:
        """The raw audit log of a case, oldest first."""
        case = await self._cases.get(case_id)
        if case is None:
            raise NotFoundError("Case not found", details={"case_id": case_id})
        return await self._events.list_for_case(case_id)

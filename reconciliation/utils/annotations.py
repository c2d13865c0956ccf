"""Timestamped annotation lines kept in the free-text notes of cases and sessions.

Every transition prepends one line of the form

    [<Label>] <ISO-8601 UTC time>: <text>

so the newest annotation is always first. The append-only case_events table
is the authoritative history; the status-change lines are still parsed for
cases migrated from before that table existed.

Example: "[Status Change: SETTLED] 2024-03-01T09:30:00.000Z: Agreed terms"
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime

STATUS_CHANGE = "Status Change"
MEDIATOR_ASSIGNED = "Mediator Assigned"
CASE_SETTLED = "Case Settled"
SESSION_OUTCOME = "Session Outcome"

_STATUS_CHANGE_RE = re.compile(
    r"""
    ^\[Status\ Change:\ (?P<status>\w+)\]   # label with the new status
    \s+
    (?P<timestamp>\S+?)                     # ISO timestamp
    :(?:\s(?P<text>.*))?$                   # separator and free text
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class ParsedStatusChange:
    """One status-change annotation recovered from a notes field."""

    status: str
    occurred_at: datetime
    text: str


def format_timestamp(at: datetime) -> str:
    """Render an aware datetime as millisecond-precision ISO in UTC with a Z suffix."""
    return at.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_annotation(label: str, at: datetime, text: str) -> str:
    """Build one annotation line, newline-terminated, ready to prepend."""
    return f"[{label}] {format_timestamp(at)}: {text}\n"


def status_change_label(status: str) -> str:
    return f"{STATUS_CHANGE}: {status}"


def parse_status_changes(notes: str | None) -> list[ParsedStatusChange]:
    """Extract status-change annotations in the order they appear.

    Lines with an unparseable timestamp are skipped.
    """
    if not notes:
        return []

    results: list[ParsedStatusChange] = []
    for line in notes.splitlines():
        match = _STATUS_CHANGE_RE.match(line.strip())
        if match is None:
            continue
        try:
            occurred_at = datetime.fromisoformat(match.group("timestamp"))
        except ValueError:
            continue
        if occurred_at.tzinfo is None:
            occurred_at = occurred_at.replace(tzinfo=UTC)
        results.append(
            ParsedStatusChange(
                status=match.group("status"),
                occurred_at=occurred_at,
                text=match.group("text") or "",
            )
        )
    return results

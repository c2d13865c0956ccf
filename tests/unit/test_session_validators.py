"""Tests for session payload validation."""

from __future__ import annotations

from datetime import date

import pytest

from reconciliation.core.exceptions import ValidationError
from reconciliation.models.requests import SessionCreate, SessionUpdate
from reconciliation.services.sessions.validators import (
    NEXT_DATE_BEFORE_SESSION,
    validate_new_session,
    validate_next_session_date,
    validate_session_update,
)
from tests.conftest import make_case_session, make_session_create


class TestValidateNewSession:
    def test_valid_payload_passes(self):
        validate_new_session(make_session_create("case-1"))

    def test_missing_case_and_date(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_new_session(SessionCreate())
        assert exc_info.value.errors == ["Case ID is required", "Session date is required"]

    def test_unknown_session_type(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_new_session(make_session_create("case-1", session_type="PHONE_CALL"))
        assert exc_info.value.errors == [
            "Invalid session type. Must be one of: INITIAL, MEDIATION, SETTLEMENT, "
            "FOLLOW_UP, OTHER"
        ]

    def test_next_session_before_session_rejected(self):
        payload = make_session_create(
            "case-1",
            session_date=date(2024, 2, 1),
            next_session_date=date(2024, 1, 20),
        )
        with pytest.raises(ValidationError) as exc_info:
            validate_new_session(payload)
        assert exc_info.value.errors == [NEXT_DATE_BEFORE_SESSION]
        assert NEXT_DATE_BEFORE_SESSION == "Next session date cannot be before current session date"

    def test_next_session_on_same_day_allowed(self):
        validate_new_session(
            make_session_create(
                "case-1", session_date=date(2024, 2, 1), next_session_date=date(2024, 2, 1)
            )
        )

    def test_all_violations_reported_together(self):
        payload = SessionCreate(session_type="NAP")
        with pytest.raises(ValidationError) as exc_info:
            validate_new_session(payload)
        assert len(exc_info.value.errors) == 3


class TestValidateSessionUpdate:
    def test_returns_set_fields(self):
        updates = validate_session_update(make_case_session(), SessionUpdate(location="Room 4"))
        assert updates == {"location": "Room 4"}

    def test_explicit_null_session_type_rejected(self):
        with pytest.raises(ValidationError, match="Invalid session type"):
            validate_session_update(make_case_session(), SessionUpdate(session_type=None))

    def test_explicit_null_session_date_rejected(self):
        with pytest.raises(ValidationError, match="Session date is required"):
            validate_session_update(make_case_session(), SessionUpdate(session_date=None))

    def test_moving_session_past_next_session_rejected(self):
        current = make_case_session(
            session_date=date(2024, 2, 1), next_session_date=date(2024, 2, 15)
        )
        with pytest.raises(ValidationError, match="Next session date cannot be before"):
            validate_session_update(current, SessionUpdate(session_date=date(2024, 2, 20)))


class TestValidateNextSessionDate:
    def test_later_date_passes(self):
        validate_next_session_date(date(2024, 2, 1), date(2024, 3, 1))

    def test_none_passes(self):
        validate_next_session_date(date(2024, 2, 1), None)

    def test_earlier_date_rejected(self):
        with pytest.raises(ValidationError):
            validate_next_session_date(date(2024, 2, 1), date(2024, 1, 31))

"""
Unit tests for the session state machine helpers

Tests token minting arithmetic, start time parsing and session derivation.
"""
import uuid
from datetime import datetime, timezone
import pytest

from swap import config
from swap.models.request import Request
from swap.models.session import Session, SessionStatus
from swap.services.errors import AlreadyCompleted, NotAuthorized, ValidationError
from swap.services.session_machine import (
    ensure_not_done,
    ensure_party,
    new_session_from_request,
    parse_start_at,
    tokens_for_minutes,
)


class TestTokensForMinutes:
    """Floor division by MINUTES_PER_TOKEN"""

    def test_one_hour_earns_one_token(self):
        assert tokens_for_minutes(60) == 1

    def test_partial_hours_round_down(self):
        assert tokens_for_minutes(45) == 0
        assert tokens_for_minutes(90) == 1
        assert tokens_for_minutes(179) == 2

    def test_non_positive_minutes_earn_nothing(self):
        assert tokens_for_minutes(0) == 0
        assert tokens_for_minutes(-30) == 0

    def test_rate_is_configurable(self, monkeypatch):
        monkeypatch.setattr(config, "MINUTES_PER_TOKEN", 30)
        assert tokens_for_minutes(90) == 3


class TestParseStartAt:
    def test_zulu_suffix(self):
        parsed = parse_start_at("2026-10-20T15:00:00Z")
        assert parsed == datetime(2026, 10, 20, 15, 0, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        parsed = parse_start_at("2026-10-20T17:00:00+02:00")
        assert parsed == datetime(2026, 10, 20, 15, 0, tzinfo=timezone.utc)

    def test_naive_treated_as_utc(self):
        parsed = parse_start_at(datetime(2026, 10, 20, 15, 0))
        assert parsed.tzinfo is not None
        assert parsed.hour == 15

    @pytest.mark.parametrize("value", ["", "tomorrow", None, 12345])
    def test_invalid_values_rejected(self, value):
        with pytest.raises(ValidationError, match="ISO-8601"):
            parse_start_at(value)


class TestSessionDerivation:
    def test_recipient_teaches_sender_learns(self):
        sender, recipient = uuid.uuid4(), uuid.uuid4()
        request = Request(
            id=uuid.uuid4(),
            from_user_id=sender,
            to_user_id=recipient,
            course_code="MATH221",
            minutes=90,
        )

        session = new_session_from_request(request)

        assert session.teacher_id == recipient
        assert session.learner_id == sender
        assert session.course_code == "MATH221"
        assert session.minutes == 90
        assert session.status == SessionStatus.SCHEDULED.value
        assert session.start_at is None

    def test_party_and_done_guards(self):
        teacher, learner = uuid.uuid4(), uuid.uuid4()
        session = Session(teacher_id=teacher, learner_id=learner, status=SessionStatus.DONE.value)

        ensure_party(session, teacher)
        ensure_party(session, learner)
        with pytest.raises(NotAuthorized):
            ensure_party(session, uuid.uuid4())
        with pytest.raises(AlreadyCompleted):
            ensure_not_done(session)

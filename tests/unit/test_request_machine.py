"""
Unit tests for the request state machine

Tests creation validation and the transition table.
"""
import uuid
import pytest

from swap import config
from swap.models.request import Request, RequestStatus
from swap.services.errors import AlreadyResolved, NotAuthorized, SelfRequest, ValidationError
from swap.services.request_machine import (
    TERMINAL_STATES,
    can_transition,
    ensure_pending,
    ensure_recipient,
    ensure_sender,
    validate_new_request,
)

ALICE = uuid.uuid4()
BOB = uuid.uuid4()


class TestValidateNewRequest:
    """Creation preconditions checked before touching the database"""

    def test_self_request_rejected(self):
        with pytest.raises(SelfRequest, match="yourself"):
            validate_new_request(ALICE, ALICE, "CS101", 60)

    def test_self_request_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            validate_new_request(ALICE, ALICE, "CS101", 60)

    @pytest.mark.parametrize("minutes", [0, -60])
    def test_non_positive_minutes_rejected(self, minutes):
        with pytest.raises(ValidationError, match="positive"):
            validate_new_request(ALICE, BOB, "CS101", minutes)

    def test_minutes_must_match_granularity(self, monkeypatch):
        monkeypatch.setattr(config, "SCHEDULING_GRANULARITY_MINUTES", 15)
        with pytest.raises(ValidationError, match="multiple of 15"):
            validate_new_request(ALICE, BOB, "CS101", 50)
        assert validate_new_request(ALICE, BOB, "CS101", 45) == 45

    def test_missing_minutes_defaults(self, monkeypatch):
        monkeypatch.setattr(config, "DEFAULT_REQUEST_MINUTES", 60)
        assert validate_new_request(ALICE, BOB, "CS101", None) == 60

    def test_blank_course_rejected(self):
        with pytest.raises(ValidationError, match="course"):
            validate_new_request(ALICE, BOB, "   ", 60)

    def test_boolean_minutes_rejected(self):
        with pytest.raises(ValidationError):
            validate_new_request(ALICE, BOB, "CS101", True)


class TestTransitions:
    """PENDING is the only state with outgoing transitions"""

    @pytest.mark.parametrize("target", sorted(TERMINAL_STATES, key=lambda s: s.value))
    def test_pending_reaches_every_terminal_state(self, target):
        assert can_transition(RequestStatus.PENDING, target)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATES, key=lambda s: s.value))
    def test_terminal_states_are_sinks(self, terminal):
        for target in RequestStatus:
            assert not can_transition(terminal, target)

    def test_pending_cannot_loop(self):
        assert not can_transition(RequestStatus.PENDING, RequestStatus.PENDING)


class TestGuards:
    def _request(self, status=RequestStatus.PENDING):
        return Request(
            id=uuid.uuid4(),
            from_user_id=ALICE,
            to_user_id=BOB,
            course_code="CS101",
            minutes=60,
            status=status.value,
            version=1,
        )

    def test_only_recipient_may_answer(self):
        request = self._request()
        ensure_recipient(request, BOB, "accept")
        with pytest.raises(NotAuthorized):
            ensure_recipient(request, ALICE, "accept")

    def test_only_sender_may_cancel(self):
        request = self._request()
        ensure_sender(request, ALICE, "cancel")
        with pytest.raises(NotAuthorized):
            ensure_sender(request, BOB, "cancel")

    def test_resolved_request_is_rejected(self):
        with pytest.raises(AlreadyResolved) as exc_info:
            ensure_pending(self._request(RequestStatus.DECLINED))
        assert exc_info.value.details == {"status": "DECLINED"}

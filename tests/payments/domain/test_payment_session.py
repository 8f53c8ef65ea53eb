"""Tests for the PaymentSession state machine."""

from decimal import Decimal

import pydantic
import pytest
from shared.exceptions import InvalidTransition

from payments.mpesa.session import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL_MS,
    TERMINAL_STATES,
    PaymentSession,
    PaymentState,
)


def _make_session(**overrides):
    return PaymentSession(order_id="ord-001", amount=Decimal("1500"), **overrides)


def _awaiting():
    return (
        _make_session()
        .transition(PaymentState.INITIATING, phone="254712345678")
        .transition(PaymentState.AWAITING_CONFIRMATION, checkout_request_id="ws_CO_1")
    )


class TestDefaults:
    def test_new_session(self):
        session = _make_session()
        assert session.state is PaymentState.INPUT
        assert session.attempts_made == 0
        assert session.max_attempts == DEFAULT_MAX_ATTEMPTS == 30
        assert session.poll_interval_ms == DEFAULT_POLL_INTERVAL_MS == 10_000
        assert session.poll_interval_seconds == 10.0
        assert session.is_active

    def test_confirmation_window_is_five_minutes(self):
        session = _make_session()
        assert session.max_attempts * session.poll_interval_ms == 300_000

    def test_amount_must_be_positive(self):
        with pytest.raises(pydantic.ValidationError):
            PaymentSession(order_id="ord-001", amount=Decimal("0"))


class TestTransitions:
    def test_happy_path(self):
        session = _awaiting().transition(PaymentState.SUCCEEDED, transaction_id="QK123")
        assert session.state is PaymentState.SUCCEEDED
        assert session.is_terminal
        assert session.checkout_request_id == "ws_CO_1"

    def test_invalid_phone_stays_in_input(self):
        session = _make_session().transition(PaymentState.INPUT, failure_reason="bad phone")
        assert session.state is PaymentState.INPUT

    def test_initiation_can_fail(self):
        session = _make_session().transition(PaymentState.INITIATING).transition(PaymentState.FAILED)
        assert session.is_terminal

    def test_cannot_skip_initiation(self):
        with pytest.raises(InvalidTransition):
            _make_session().transition(PaymentState.AWAITING_CONFIRMATION)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATES, key=lambda s: s.value))
    def test_terminal_states_are_final(self, terminal):
        session = _awaiting().transition(terminal)
        for target in PaymentState:
            with pytest.raises(InvalidTransition):
                session.transition(target)

    def test_transitions_return_new_sessions(self):
        session = _make_session()
        session.transition(PaymentState.INITIATING)
        assert session.state is PaymentState.INPUT


class TestAttempts:
    def test_record_attempt(self):
        session = _awaiting().record_attempt().record_attempt()
        assert session.attempts_made == 2
        assert session.attempts_remaining == 28

    def test_attempts_only_while_awaiting(self):
        with pytest.raises(InvalidTransition):
            _make_session().record_attempt()


class TestCancelAndRestart:
    def test_cancelled_session_is_inert(self):
        session = _awaiting().cancel()
        assert session.cancelled
        assert session.state is PaymentState.AWAITING_CONFIRMATION
        assert not session.is_active
        with pytest.raises(InvalidTransition):
            session.transition(PaymentState.SUCCEEDED)
        with pytest.raises(InvalidTransition):
            session.record_attempt()

    def test_restart_from_terminal(self):
        failed = _awaiting().record_attempt().transition(PaymentState.FAILED, failure_reason="declined")
        fresh = failed.restarted()

        assert fresh.state is PaymentState.INPUT
        assert fresh.attempts_made == 0
        assert fresh.failure_reason is None
        assert fresh.checkout_request_id is None
        assert fresh.order_id == failed.order_id
        assert failed.state is PaymentState.FAILED

    def test_restart_from_cancelled(self):
        fresh = _awaiting().cancel().restarted()
        assert fresh.state is PaymentState.INPUT
        assert not fresh.cancelled

    def test_restart_keeps_polling_settings(self):
        session = _make_session(max_attempts=3, poll_interval_ms=500)
        fresh = session.transition(PaymentState.INITIATING).transition(PaymentState.FAILED).restarted()
        assert fresh.max_attempts == 3
        assert fresh.poll_interval_ms == 500

    def test_active_session_cannot_restart(self):
        with pytest.raises(InvalidTransition):
            _awaiting().restarted()

"""PaymentSession: one attempt at confirming an STK push payment.

State machine:

    INPUT ──► INITIATING ──► AWAITING_CONFIRMATION ──► SUCCEEDED
      ▲  │          │                 │
      └──┘          ▼                 ├──────────────► FAILED
    (bad phone)   FAILED              └──────────────► TIMED_OUT

SUCCEEDED, FAILED and TIMED_OUT are terminal: a terminal session is never
changed again, and retrying means building a fresh session with
``restarted()``. Sessions are immutable; every step returns a new one.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from shared.exceptions import InvalidTransition

DEFAULT_POLL_INTERVAL_MS = 10_000
DEFAULT_MAX_ATTEMPTS = 30

INITIATION_FAILED_MESSAGE = "Failed to initiate payment"
PAYMENT_FAILED_MESSAGE = "Payment was cancelled or failed"
TIMEOUT_MESSAGE = "Payment timeout. Please try again."
UNVERIFIED_MESSAGE = "Unable to verify payment status"


class PaymentState(Enum):
    INPUT = "input"
    INITIATING = "initiating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset({PaymentState.SUCCEEDED, PaymentState.FAILED, PaymentState.TIMED_OUT})

_VALID_TRANSITIONS = {
    PaymentState.INPUT: {PaymentState.INPUT, PaymentState.INITIATING},  # INPUT → INPUT on a rejected phone
    PaymentState.INITIATING: {PaymentState.AWAITING_CONFIRMATION, PaymentState.FAILED},
    PaymentState.AWAITING_CONFIRMATION: {PaymentState.SUCCEEDED, PaymentState.FAILED, PaymentState.TIMED_OUT},
    PaymentState.SUCCEEDED: set(),  # Terminal
    PaymentState.FAILED: set(),  # Terminal
    PaymentState.TIMED_OUT: set(),  # Terminal
}


class PaymentSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    phone: str | None = None
    checkout_request_id: str | None = None
    transaction_id: str | None = None
    attempts_made: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    poll_interval_ms: int = Field(default=DEFAULT_POLL_INTERVAL_MS, ge=0)
    state: PaymentState = PaymentState.INPUT
    failure_reason: str | None = None
    cancelled: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_active(self) -> bool:
        """Still able to change state: neither finished nor cancelled."""
        return not self.is_terminal and not self.cancelled

    @property
    def attempts_remaining(self) -> int:
        return max(0, self.max_attempts - self.attempts_made)

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000

    def _assert_can_transition(self, target: PaymentState) -> None:
        if self.cancelled:
            raise InvalidTransition("Payment session was cancelled")
        if target not in _VALID_TRANSITIONS.get(self.state, set()):
            raise InvalidTransition(f"Cannot transition from {self.state.value} to {target.value}")

    def transition(self, target: PaymentState, **changes) -> "PaymentSession":
        self._assert_can_transition(target)
        return self.model_copy(update={"state": target, **changes})

    def record_attempt(self) -> "PaymentSession":
        """Count one unconfirmed poll (pending answer or transport error)."""
        if self.state is not PaymentState.AWAITING_CONFIRMATION or self.cancelled:
            raise InvalidTransition(f"Cannot record a poll while {self.state.value}")
        return self.model_copy(update={"attempts_made": self.attempts_made + 1})

    def cancel(self) -> "PaymentSession":
        return self.model_copy(update={"cancelled": True})

    def restarted(self) -> "PaymentSession":
        """A fresh INPUT session for the same order, keeping the polling settings."""
        if self.is_active:
            raise InvalidTransition("Only a finished or cancelled payment can be restarted")
        return PaymentSession(
            order_id=self.order_id,
            amount=self.amount,
            phone=self.phone,
            max_attempts=self.max_attempts,
            poll_interval_ms=self.poll_interval_ms,
        )

"""PaymentConfirmationEngine: drives one order's STK push to a terminal outcome.

    engine = PaymentConfirmationEngine(order_id, amount, gateway)
    await engine.submit("0712 345 678")   # INPUT → INITIATING → AWAITING_CONFIRMATION
    session = await engine.wait()           # SUCCEEDED | FAILED | TIMED_OUT

After a successful push the engine polls the order's payment status once
per interval. A ``completed`` answer succeeds, ``failed`` fails, and anything
else (including a transport error) counts as one unconfirmed attempt. When
the attempts run out the session times out. The first poll happens one
interval after the push, so ``max_attempts`` polls span exactly
``max_attempts * poll_interval_ms``.
"""

import asyncio
from collections.abc import Callable
from decimal import Decimal

import structlog
from shared.exceptions import InvalidPhoneNumber, InvalidTransition, StorefrontError, ValidationError

from payments.gateway import get_gateway
from payments.gateway.port import MobileMoneyGateway, StkPushResult
from payments.mpesa.events import PaymentStateChanged
from payments.mpesa.phone import KENYA, PhoneNumber, PhoneNumberPlan
from payments.mpesa.scheduler import PollScheduler, Sleep
from payments.mpesa.session import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL_MS,
    INITIATION_FAILED_MESSAGE,
    PAYMENT_FAILED_MESSAGE,
    TIMEOUT_MESSAGE,
    UNVERIFIED_MESSAGE,
    PaymentSession,
    PaymentState,
)

logger = structlog.get_logger(__name__)

Listener = Callable[[PaymentStateChanged], None]


class PaymentConfirmationEngine:
    def __init__(
        self,
        order_id: str,
        amount: Decimal,
        gateway: MobileMoneyGateway | None = None,
        *,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        plan: PhoneNumberPlan = KENYA,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if amount <= 0:
            raise ValidationError({"amount": ["Amount must be greater than zero"]})
        self.gateway = gateway or get_gateway()
        self.plan = plan
        self._sleep = sleep
        self._session = PaymentSession(
            order_id=order_id,
            amount=amount,
            poll_interval_ms=poll_interval_ms,
            max_attempts=max_attempts,
        )
        self._scheduler: PollScheduler | None = None
        self._listeners: list[Listener] = []

    @property
    def session(self) -> PaymentSession:
        return self._session

    @property
    def state(self) -> PaymentState:
        return self._session.state

    @property
    def polls_fired(self) -> int:
        return self._scheduler.polls_fired if self._scheduler else 0

    # -------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, event: PaymentStateChanged) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Payment listener failed", order_id=self._session.order_id)

    def _transition(self, target: PaymentState, **changes) -> PaymentSession:
        previous = self._session
        self._session = previous.transition(target, **changes)
        logger.info(
            "Payment state changed",
            order_id=previous.order_id,
            from_state=previous.state.value,
            to_state=target.value,
            attempts_made=self._session.attempts_made,
            reason=self._session.failure_reason,
        )
        self._publish(PaymentStateChanged(previous=previous, session=self._session))
        return self._session

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    async def submit(self, raw_phone: str) -> PaymentSession:
        """Validate the phone number and push the payment prompt to it.

        An invalid number raises InvalidPhoneNumber and leaves the session in
        INPUT. Any failure to start the push ends the session in FAILED.
        """
        session = self._session
        if session.state is not PaymentState.INPUT or session.cancelled:
            raise InvalidTransition(f"Cannot submit a payment while {session.state.value}")

        try:
            phone = PhoneNumber.parse(raw_phone, self.plan)
        except InvalidPhoneNumber as e:
            self._transition(PaymentState.INPUT, failure_reason=e.message)
            raise

        session = self._transition(PaymentState.INITIATING, phone=phone.digits, failure_reason=None)
        try:
            result = await self.gateway.initiate_stk_push(session.order_id, phone.digits, session.amount)
        except StorefrontError as e:
            logger.warning("STK push failed", order_id=session.order_id, error=e.message)
            result = StkPushResult(success=False)
        except Exception:
            logger.exception("STK push crashed", order_id=session.order_id)
            if not self._session.cancelled:
                self._transition(PaymentState.FAILED, failure_reason=INITIATION_FAILED_MESSAGE)
            raise

        if self._session.cancelled:
            return self._session
        if not result.success:
            return self._transition(PaymentState.FAILED, failure_reason=result.failure_reason or INITIATION_FAILED_MESSAGE)

        session = self._transition(PaymentState.AWAITING_CONFIRMATION, checkout_request_id=result.checkout_request_id)
        self._scheduler = PollScheduler(session.poll_interval_seconds, sleep=self._sleep)
        self._scheduler.start(self._poll)
        return session

    async def _poll(self) -> bool:
        order_id = self._session.order_id
        try:
            status = await self.gateway.payment_status(order_id)
        except StorefrontError as e:
            if self._session.cancelled:
                return False
            logger.warning(
                "Payment status check failed",
                order_id=order_id,
                attempt=self._session.attempts_made + 1,
                error=e.message,
            )
            return self._unconfirmed(errored=True)

        # The answer may arrive after cancel(); it must not be applied
        if self._session.cancelled:
            return False

        if status.is_completed:
            self._transition(PaymentState.SUCCEEDED, transaction_id=status.transaction_id)
            return False
        if status.is_failed:
            self._transition(PaymentState.FAILED, failure_reason=PAYMENT_FAILED_MESSAGE)
            return False
        return self._unconfirmed(errored=False)

    def _unconfirmed(self, errored: bool) -> bool:
        self._session = self._session.record_attempt()
        if self._session.attempts_made < self._session.max_attempts:
            return True
        self._transition(PaymentState.TIMED_OUT, failure_reason=UNVERIFIED_MESSAGE if errored else TIMEOUT_MESSAGE)
        return False

    def cancel(self) -> PaymentSession:
        """Stop polling; the session becomes inert and publishes nothing more."""
        if not self._session.is_active:
            return self._session
        if self._scheduler is not None:
            self._scheduler.cancel()
        self._session = self._session.cancel()
        logger.info(
            "Payment confirmation cancelled",
            order_id=self._session.order_id,
            state=self._session.state.value,
            attempts_made=self._session.attempts_made,
        )
        return self._session

    def restart(self) -> PaymentSession:
        """Start over with a fresh INPUT session for the same order."""
        previous = self._session
        self._session = previous.restarted()
        self._scheduler = None
        logger.info("Payment restarted", order_id=previous.order_id, from_state=previous.state.value)
        self._publish(PaymentStateChanged(previous=previous, session=self._session))
        return self._session

    async def wait(self) -> PaymentSession:
        """Wait until polling stops and return the final session."""
        if self._scheduler is not None:
            await self._scheduler.wait()
        return self._session

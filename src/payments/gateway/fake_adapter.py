"""Configurable fake mobile-money gateway for development and testing.

This adapter simulates the STK push flow without any external calls. It can
be configured at runtime to reject or fail the push, and scripted with the
sequence of answers successive status polls receive, making it useful for:
- Driving the confirmation engine through every terminal state in tests
- Development without M-Pesa sandbox credentials

Scripted answers are consumed in order; once exhausted every poll answers
``default_status``. An exception in the script is raised by that poll.
"""

from collections.abc import Callable
from decimal import Decimal
from uuid import uuid4

from shared.exceptions import ServiceUnavailable

from payments.gateway.port import (
    PAYMENT_COMPLETED,
    PAYMENT_PENDING,
    MobileMoneyGateway,
    PaymentStatusResult,
    StkPushResult,
)


class FakeMpesaGateway(MobileMoneyGateway):
    """Configurable fake mobile-money gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Failed to initiate payment"
        self.online: bool = True
        self.statuses: list[str | Exception] = []
        self.default_status: str = PAYMENT_PENDING
        self.calls: list[dict] = []
        self.on_status: Callable[[int], None] | None = None

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Failed to initiate payment",
        statuses: list[str | Exception] | None = None,
        default_status: str = PAYMENT_PENDING,
        online: bool = True,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.statuses = list(statuses or [])
        self.default_status = default_status
        self.online = online

    @property
    def status_calls(self) -> int:
        return sum(1 for call in self.calls if call["method"] == "payment_status")

    async def initiate_stk_push(self, order_id: str, phone_number: str, amount: Decimal) -> StkPushResult:
        call = {
            "method": "initiate_stk_push",
            "order_id": order_id,
            "phone_number": phone_number,
            "amount": amount,
        }
        self.calls.append(call)

        if not self.online:
            raise ServiceUnavailable()
        if self.should_succeed:
            return StkPushResult(
                success=True,
                checkout_request_id=f"ws_CO_{uuid4().hex[:16]}",
                merchant_request_id=f"fake_mr_{uuid4().hex[:12]}",
                gateway_response="Success. Request accepted for processing",
            )
        return StkPushResult(success=False, failure_reason=self.failure_reason)

    async def payment_status(self, order_id: str) -> PaymentStatusResult:
        self.calls.append({"method": "payment_status", "order_id": order_id})
        if self.on_status is not None:
            self.on_status(self.status_calls)

        answer = self.statuses.pop(0) if self.statuses else self.default_status
        if isinstance(answer, Exception):
            raise answer

        return PaymentStatusResult(
            order_id=order_id,
            payment_status=answer,
            transaction_id=f"fake_mpesa_{uuid4().hex[:10]}" if answer == PAYMENT_COMPLETED else None,
        )

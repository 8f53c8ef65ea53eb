"""Mobile-money gateway port (abstract interface).

Defines the contract the payment confirmation engine needs: start an STK
push for an order, then ask for the order's payment status. This enables
swapping between FakeMpesaGateway (dev/test) and HttpMpesaGateway
(storefront API) without changing the engine.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"


@dataclass(frozen=True)
class StkPushResult:
    """Result of asking the gateway to push a payment prompt to a handset."""

    success: bool
    checkout_request_id: str | None = None
    merchant_request_id: str | None = None
    gateway_response: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class PaymentStatusResult:
    """The order's payment status as last recorded by the gateway."""

    order_id: str
    payment_status: str = PAYMENT_PENDING
    transaction_id: str | None = None
    amount: Decimal | None = None

    @property
    def is_completed(self) -> bool:
        return self.payment_status == PAYMENT_COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.payment_status == PAYMENT_FAILED


class MobileMoneyGateway(ABC):
    """Abstract mobile-money gateway interface."""

    @abstractmethod
    async def initiate_stk_push(self, order_id: str, phone_number: str, amount: Decimal) -> StkPushResult:
        """Push a payment prompt to ``phone_number`` for an order.

        Business rejections come back as an unsuccessful result; transport
        failures raise ServiceUnavailable.
        """
        ...

    @abstractmethod
    async def payment_status(self, order_id: str) -> PaymentStatusResult:
        """Fetch the order's payment status. Raises ServiceUnavailable when unreachable."""
        ...

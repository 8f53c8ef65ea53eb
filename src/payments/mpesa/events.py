"""Notifications published by the PaymentConfirmationEngine."""

from dataclasses import dataclass

from payments.mpesa.session import PaymentSession, PaymentState


@dataclass(frozen=True)
class PaymentStateChanged:
    previous: PaymentSession
    session: PaymentSession

    @property
    def state(self) -> PaymentState:
        return self.session.state

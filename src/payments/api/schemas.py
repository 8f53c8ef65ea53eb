"""Pydantic wire schemas for the mobile-money payments API.

These are external contracts (anti-corruption layer), separate from the
PaymentSession the confirmation engine works with.
"""

from decimal import Decimal

from pydantic import Field
from shared.schemas import WireModel


class StkPushRequest(WireModel):
    order_id: str
    phone_number: str = Field(pattern=r"^\d{10,15}$")
    amount: float = Field(gt=0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "orderId": "665f1c2e9b1d4a0012a3b4c5",
                    "phoneNumber": "254712345678",
                    "amount": 1500,
                }
            ]
        }
    }


class StkPushResponseSchema(WireModel):
    checkout_request_id: str
    merchant_request_id: str | None = None
    response_code: str | None = None
    response_description: str | None = None


class PaymentStatusSchema(WireModel):
    order_id: str | None = None
    payment_status: str = "pending"
    payment_method: str | None = None
    transaction_id: str | None = None
    amount: Decimal | None = None

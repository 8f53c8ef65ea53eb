"""Mobile-money gateway backed by the storefront payments API.

The storefront server talks to the M-Pesa Daraja API on the client's
behalf; this adapter only reaches the two storefront endpoints.
"""

from decimal import Decimal
from urllib.parse import quote

import pydantic
import structlog
from shared.exceptions import ApiError, ServiceUnavailable
from shared.http import ApiClient

from payments.api.schemas import PaymentStatusSchema, StkPushRequest, StkPushResponseSchema
from payments.gateway.port import MobileMoneyGateway, PaymentStatusResult, StkPushResult

logger = structlog.get_logger(__name__)


class HttpMpesaGateway(MobileMoneyGateway):
    def __init__(self, api: ApiClient) -> None:
        self.api = api

    async def initiate_stk_push(self, order_id: str, phone_number: str, amount: Decimal) -> StkPushResult:
        body = StkPushRequest(order_id=order_id, phone_number=phone_number, amount=float(amount))
        try:
            data = await self.api.post("/payments/mpesa/stk-push", json=body.to_wire())
        except ApiError as e:
            logger.info("STK push rejected", order_id=order_id, reason=e.message, status_code=e.status_code)
            return StkPushResult(success=False, failure_reason=e.message)

        try:
            response = StkPushResponseSchema.model_validate(data)
        except pydantic.ValidationError as e:
            raise ServiceUnavailable("Malformed STK push response") from e

        return StkPushResult(
            success=True,
            checkout_request_id=response.checkout_request_id,
            merchant_request_id=response.merchant_request_id,
            gateway_response=response.response_description,
        )

    async def payment_status(self, order_id: str) -> PaymentStatusResult:
        data = await self.api.get(f"/payments/status/{quote(order_id, safe='')}")
        try:
            status = PaymentStatusSchema.model_validate(data)
        except pydantic.ValidationError as e:
            raise ServiceUnavailable("Malformed payment status response") from e

        return PaymentStatusResult(
            order_id=status.order_id or order_id,
            payment_status=status.payment_status,
            transaction_id=status.transaction_id,
            amount=status.amount,
        )

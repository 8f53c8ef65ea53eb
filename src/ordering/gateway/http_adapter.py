"""Cart gateway backed by the storefront REST API.

Business rejections come back as 4xx answers with a ``message``; they are
translated into the cart's own ValidationError subclasses here so the engine
never inspects HTTP details. Transport failures arrive from ApiClient as
ServiceUnavailable and pass through untouched, as does an answer that does
not parse.
"""

from decimal import Decimal
from urllib.parse import quote

import pydantic
import structlog
from shared.exceptions import (
    ApiError,
    CouponExpired,
    CouponInvalid,
    CouponMinimumNotMet,
    ServiceUnavailable,
    StockExceeded,
    ValidationError,
)
from shared.http import ApiClient

from ordering.api.schemas import (
    AddCartItemRequest,
    ApplyCouponRequest,
    CartSnapshotSchema,
    CouponValidationSchema,
    RemoveCartItemRequest,
    UpdateCartItemRequest,
    variants_payload,
)
from ordering.cart.cart import Cart
from ordering.cart.coupons import Coupon
from ordering.cart.items import Options, Product
from ordering.gateway.port import CartGateway

logger = structlog.get_logger(__name__)


def translate_cart_error(error: ApiError) -> ValidationError:
    message = error.message
    if "stock" in message.lower():
        return StockExceeded(message)
    return error


def parse_cart(data) -> Cart:
    try:
        return CartSnapshotSchema.model_validate(data).to_cart()
    except pydantic.ValidationError as e:
        raise ServiceUnavailable("Malformed cart response") from e


def translate_coupon_error(error: ApiError) -> CouponInvalid:
    message = error.message
    lowered = message.lower()
    if "expired" in lowered:
        return CouponExpired(message)
    if lowered.startswith("minimum order amount"):
        return CouponMinimumNotMet(message)
    return CouponInvalid(message)


class HttpCartGateway(CartGateway):
    """Cart collaborator reached over HTTP."""

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    async def _cart_call(self, method: str, path: str, body: dict | None = None) -> Cart:
        try:
            data = await self.api.request(method, path, json=body)
        except ApiError as e:
            raise translate_cart_error(e) from e
        return parse_cart(data)

    async def fetch_cart(self) -> Cart:
        return await self._cart_call("GET", "/cart")

    async def add_item(self, product: Product, quantity: int, options: Options) -> Cart:
        body = AddCartItemRequest(
            product_id=product.id,
            quantity=quantity,
            selected_variants=variants_payload(options),
        )
        return await self._cart_call("POST", "/cart/add", body.to_wire())

    async def update_item(self, product_id: str, options: Options, quantity: int) -> Cart:
        body = UpdateCartItemRequest(
            product_id=product_id,
            quantity=quantity,
            selected_variants=variants_payload(options),
        )
        return await self._cart_call("PUT", "/cart/update", body.to_wire())

    async def remove_item(self, product_id: str, options: Options) -> Cart:
        body = RemoveCartItemRequest(selected_variants=variants_payload(options))
        return await self._cart_call("DELETE", f"/cart/remove/{quote(product_id, safe='')}", body.to_wire())

    async def clear_cart(self) -> Cart:
        return await self._cart_call("DELETE", "/cart/clear")

    async def apply_coupon(self, code: str) -> Cart:
        body = ApplyCouponRequest(code=code)
        try:
            data = await self.api.post("/cart/coupon", json=body.to_wire())
        except ApiError as e:
            logger.info("Coupon rejected by server cart", code=code, reason=e.message)
            raise translate_coupon_error(e) from e
        return parse_cart(data)

    async def remove_coupon(self) -> Cart:
        return await self._cart_call("DELETE", "/cart/coupon")

    async def validate_coupon(self, code: str, subtotal: Decimal) -> Coupon:
        try:
            data = await self.api.get("/coupons/validate", params={"code": code, "amount": str(subtotal)})
        except ApiError as e:
            logger.info("Coupon rejected", code=code, reason=e.message)
            raise translate_coupon_error(e) from e
        try:
            return CouponValidationSchema.model_validate(data).coupon.to_coupon()
        except pydantic.ValidationError as e:
            raise ServiceUnavailable("Malformed coupon validation response") from e

"""A FastAPI stand-in for the storefront REST API.

The routes answer with the real server's envelope and status codes, backed
by the in-memory fake gateways, so the HTTP adapters and the composition
root can be exercised end to end through ``httpx.ASGITransport``.
"""

from decimal import Decimal

import httpx
import pytest
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from shared.config import Settings
from shared.exceptions import ServiceUnavailable, ValidationError
from shared.http import ApiClient, build_client
from shared.storage import MemoryStore

from ordering.api.schemas import (
    AddCartItemRequest,
    ApplyCouponRequest,
    CartSnapshotSchema,
    CouponDetailsSchema,
    CouponValidationSchema,
    RemoveCartItemRequest,
    UpdateCartItemRequest,
)
from ordering.cart.cart import Cart
from ordering.cart.items import normalize_options
from ordering.cart.pricing import discount_for
from ordering.gateway.fake_adapter import FakeCartGateway
from payments.api.schemas import PaymentStatusSchema, StkPushRequest, StkPushResponseSchema
from payments.gateway.fake_adapter import FakeMpesaGateway
from storefront import build_storefront

BASE_URL = "http://testserver/api"

_NOT_FOUND_MESSAGES = {"Invalid coupon code", "Item not found in cart", "Product not found"}


def _envelope(data) -> dict:
    return {"success": True, "data": data}


def _cart_body(cart: Cart) -> dict:
    document = CartSnapshotSchema.from_cart(cart).to_wire()
    coupon = document.get("appliedCoupon")
    if coupon is not None:
        # The server keeps only what it granted: {code, discount amount, discountType}
        document["appliedCoupon"] = {key: coupon[key] for key in ("code", "discount", "discountType")}
    return _envelope(document)


def _options(variants):
    return normalize_options([(v.name, v.value) for v in variants])


def build_stub_api(carts: FakeCartGateway, mpesa: FakeMpesaGateway) -> FastAPI:
    app = FastAPI()

    @app.exception_handler(ValidationError)
    async def rejected(request: Request, exc: ValidationError) -> JSONResponse:
        status_code = 404 if exc.message in _NOT_FOUND_MESSAGES else 400
        return JSONResponse(status_code=status_code, content={"success": False, "message": exc.message})

    @app.exception_handler(ServiceUnavailable)
    async def unavailable(request: Request, exc: ServiceUnavailable) -> JSONResponse:
        return JSONResponse(status_code=503, content={"success": False, "message": "Service unavailable"})

    cart_router = APIRouter(prefix="/api")

    @cart_router.get("/cart")
    async def get_cart():
        return _cart_body(await carts.fetch_cart())

    @cart_router.post("/cart/add")
    async def add_to_cart(body: AddCartItemRequest):
        product = carts.products.get(body.product_id)
        if product is None:
            raise ValidationError("Product not found")
        return _cart_body(await carts.add_item(product, body.quantity, _options(body.selected_variants)))

    @cart_router.put("/cart/update")
    async def update_cart_item(body: UpdateCartItemRequest):
        return _cart_body(await carts.update_item(body.product_id, _options(body.selected_variants), body.quantity))

    @cart_router.delete("/cart/remove/{product_id}")
    async def remove_cart_item(product_id: str, body: RemoveCartItemRequest | None = None):
        variants = body.selected_variants if body else []
        return _cart_body(await carts.remove_item(product_id, _options(variants)))

    @cart_router.delete("/cart/clear")
    async def clear_cart():
        return _cart_body(await carts.clear_cart())

    @cart_router.post("/cart/coupon")
    async def apply_coupon(body: ApplyCouponRequest):
        return _cart_body(await carts.apply_coupon(body.code))

    @cart_router.delete("/cart/coupon")
    async def remove_coupon():
        return _cart_body(await carts.remove_coupon())

    @cart_router.get("/coupons/validate")
    async def validate_coupon(code: str, amount: Decimal):
        coupon = await carts.validate_coupon(code, amount)
        discount = discount_for(amount, coupon)
        validation = CouponValidationSchema(
            coupon=CouponDetailsSchema(
                code=coupon.code,
                discount_type=coupon.kind,
                discount_value=coupon.value,
                minimum_amount=coupon.minimum_order_amount,
                maximum_discount=coupon.maximum_discount,
            ),
            discount=discount,
            final_amount=amount - discount,
        )
        return _envelope(validation.to_wire())

    payment_router = APIRouter(prefix="/api/payments")

    @payment_router.post("/mpesa/stk-push")
    async def stk_push(body: StkPushRequest):
        result = await mpesa.initiate_stk_push(body.order_id, body.phone_number, Decimal(str(body.amount)))
        if not result.success:
            return JSONResponse(status_code=400, content={"success": False, "message": result.failure_reason})
        response = StkPushResponseSchema(
            checkout_request_id=result.checkout_request_id,
            merchant_request_id=result.merchant_request_id,
            response_code="0",
            response_description=result.gateway_response,
        )
        return _envelope(response.to_wire())

    @payment_router.get("/status/{order_id}")
    async def payment_status(order_id: str):
        status = await mpesa.payment_status(order_id)
        body = PaymentStatusSchema(
            order_id=status.order_id,
            payment_status=status.payment_status,
            payment_method="mpesa",
            transaction_id=status.transaction_id,
        )
        return _envelope(body.to_wire())

    app.include_router(cart_router)
    app.include_router(payment_router)
    return app


@pytest.fixture
def server_cart():
    return FakeCartGateway()


@pytest.fixture
def server_mpesa():
    return FakeMpesaGateway()


@pytest.fixture
def transport(server_cart, server_mpesa):
    return httpx.ASGITransport(app=build_stub_api(server_cart, server_mpesa))


@pytest.fixture
async def api(transport):
    client = ApiClient(build_client(BASE_URL, transport=transport))
    yield client
    await client.aclose()


@pytest.fixture
def settings():
    return Settings(_env_file=None, API_BASE_URL=BASE_URL, ENVIRONMENT="test")


@pytest.fixture
async def storefront(settings, transport):
    storefront = build_storefront(settings, store=MemoryStore(), transport=transport)
    yield storefront
    await storefront.aclose()

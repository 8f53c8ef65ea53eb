"""In-memory fake of the storefront cart API for development and testing.

Behaves like the real server closely enough to exercise the CartEngine:
it keeps one customer cart, checks stock against its product table, validates
coupons against a configurable table and prices the cart with the same
calculator the client uses. It can also be taken offline (every call raises
ServiceUnavailable) or told to hold a response until the test releases it.
"""

import asyncio
from decimal import Decimal

from shared.exceptions import (
    CouponExpired,
    CouponInvalid,
    CouponMinimumNotMet,
    ServiceUnavailable,
    StockExceeded,
    ValidationError,
)

from ordering.cart.cart import Cart
from ordering.cart.coupons import Coupon
from ordering.cart.items import Options, Product
from ordering.cart.pricing import DEFAULT_RATES, PricingRates
from ordering.gateway.port import CartGateway


class FakeCartGateway(CartGateway):
    """Configurable fake cart collaborator."""

    def __init__(self, rates: PricingRates = DEFAULT_RATES) -> None:
        self.rates = rates
        self.products: dict[str, Product] = {}
        self.coupons: dict[str, Coupon] = {}
        self.expired_codes: set[str] = set()
        self.online: bool = True
        self.calls: list[dict] = []
        self.cart = Cart()
        self._held: dict[str, list[asyncio.Event]] = {}

    def configure(
        self,
        products: list[Product] | None = None,
        coupons: list[Coupon] | None = None,
        expired_codes: list[str] | None = None,
        online: bool = True,
    ) -> None:
        """Configure server data and availability at runtime."""
        for product in products or []:
            self.products[product.id] = product
        for coupon in coupons or []:
            self.coupons[coupon.code] = coupon
        self.expired_codes.update(code.upper() for code in expired_codes or [])
        self.online = online

    def seed(self, cart: Cart) -> None:
        """Replace the server cart, e.g. items left from an earlier session."""
        self.cart = cart.priced(self.rates)

    def hold(self, method: str) -> asyncio.Event:
        """Make the next ``method`` call wait for the returned event before answering."""
        event = asyncio.Event()
        self._held.setdefault(method, []).append(event)
        return event

    async def _answer(self, method: str, **params) -> None:
        self.calls.append({"method": method, **params})
        if not self.online:
            raise ServiceUnavailable()

    async def _respond(self, method: str, cart: Cart) -> Cart:
        # The snapshot is taken before waiting, like a response already in flight
        held = self._held.get(method)
        if held:
            await held.pop(0).wait()
        return cart

    def _save(self, cart: Cart) -> Cart:
        self.cart = cart.priced(self.rates)
        return self.cart

    def _product(self, product: Product) -> Product:
        return self.products.setdefault(product.id, product)

    def _coupon(self, code: str, subtotal: Decimal) -> Coupon:
        code = code.strip().upper()
        if code in self.expired_codes:
            raise CouponExpired("Coupon has expired")
        coupon = self.coupons.get(code)
        if coupon is None:
            raise CouponInvalid("Invalid coupon code")
        if coupon.minimum_order_amount is not None and subtotal < coupon.minimum_order_amount:
            raise CouponMinimumNotMet(f"Minimum order amount of ${coupon.minimum_order_amount} required")
        return coupon

    # -------------------------------------------------------------------
    # CartGateway
    # -------------------------------------------------------------------
    async def fetch_cart(self) -> Cart:
        await self._answer("fetch_cart")
        return await self._respond("fetch_cart", self.cart)

    async def add_item(self, product: Product, quantity: int, options: Options) -> Cart:
        await self._answer("add_item", product_id=product.id, quantity=quantity, options=options)
        product = self._product(product)
        if not product.allows(self.cart.quantity_of(product.id, options) + quantity):
            raise StockExceeded("Insufficient stock")
        cart = self._save(self.cart.with_item(product, quantity, options))
        return await self._respond("add_item", cart)

    async def update_item(self, product_id: str, options: Options, quantity: int) -> Cart:
        await self._answer("update_item", product_id=product_id, quantity=quantity, options=options)
        existing = self.cart.find(product_id, options)
        if existing is None:
            raise ValidationError("Item not found in cart")
        if quantity >= 1 and not self.products.get(product_id, existing.product).allows(quantity):
            raise StockExceeded("Insufficient stock")
        cart = self._save(self.cart.with_quantity(product_id, options, quantity))
        return await self._respond("update_item", cart)

    async def remove_item(self, product_id: str, options: Options) -> Cart:
        await self._answer("remove_item", product_id=product_id, options=options)
        cart = self._save(self.cart.without_item(product_id, options))
        return await self._respond("remove_item", cart)

    async def clear_cart(self) -> Cart:
        await self._answer("clear_cart")
        cart = self._save(self.cart.cleared())
        return await self._respond("clear_cart", cart)

    async def apply_coupon(self, code: str) -> Cart:
        await self._answer("apply_coupon", code=code)
        if self.cart.is_empty:
            raise CouponInvalid("Cart is empty")
        coupon = self._coupon(code, self.cart.totals.subtotal)
        cart = self._save(self.cart.with_coupon(coupon))
        return await self._respond("apply_coupon", cart)

    async def remove_coupon(self) -> Cart:
        await self._answer("remove_coupon")
        cart = self._save(self.cart.with_coupon(None))
        return await self._respond("remove_coupon", cart)

    async def validate_coupon(self, code: str, subtotal: Decimal) -> Coupon:
        await self._answer("validate_coupon", code=code, subtotal=subtotal)
        return self._coupon(code, subtotal)

"""The composed storefront talking to the stub API end to end."""

from decimal import Decimal

import pytest
from shared.storage import AUTH_STORAGE_KEY, MemoryStore

from ordering.cart.cart import Cart, CartMode
from ordering.cart.coupons import Coupon, CouponKind
from ordering.cart.events import CartsMerged
from ordering.cart.items import Product
from ordering.gateway.fake_adapter import FakeCartGateway
from ordering.gateway.http_adapter import HttpCartGateway
from payments.gateway.fake_adapter import FakeMpesaGateway
from payments.gateway.http_adapter import HttpMpesaGateway
from payments.gateway.port import PAYMENT_COMPLETED, PAYMENT_PENDING
from payments.mpesa.session import PaymentState
from storefront import build_storefront, pricing_rates

USER = {"_id": "user-1", "name": "Otieno", "email": "otieno@example.com"}

SHIRT = Product(id="prod-shirt", name="Shirt", price=Decimal("25"), track_quantity=True, available_quantity=5)
MUG = Product(id="prod-mug", name="Mug", price=Decimal("12.50"))


@pytest.fixture(autouse=True)
def catalogue(server_cart):
    server_cart.configure(
        products=[SHIRT, MUG],
        coupons=[Coupon(code="SAVE10", kind=CouponKind.PERCENTAGE, value=Decimal("10"))],
    )


class TestAssembly:
    async def test_http_gateways_by_default(self, storefront):
        assert isinstance(storefront.cart_gateway, HttpCartGateway)
        assert isinstance(storefront.payment_gateway, HttpMpesaGateway)
        assert storefront.cart.mode is CartMode.GUEST
        assert not storefront.auth.is_authenticated

    async def test_fake_gateways(self, settings):
        storefront = build_storefront(settings, store=MemoryStore(), fake=True)

        assert isinstance(storefront.cart_gateway, FakeCartGateway)
        assert isinstance(storefront.payment_gateway, FakeMpesaGateway)
        await storefront.aclose()

    def test_rates_follow_settings(self, settings):
        settings = settings.model_copy(update={"TAX_RATE": Decimal("0.16"), "CURRENCY": "UGX"})
        rates = pricing_rates(settings)

        assert rates.tax_rate == Decimal("0.16")
        assert rates.minor_digits == 0


class TestGuestToCustomer:
    async def test_guest_coupon_is_validated_by_server(self, storefront, server_cart):
        await storefront.cart.add_item(MUG, 4)

        cart = await storefront.cart.apply_coupon("save10")

        assert cart.applied_coupon.code == "SAVE10"
        assert cart.totals.discount == Decimal("5.00")
        assert [c["method"] for c in server_cart.calls] == ["validate_coupon"]

    async def test_sign_in_merges_guest_cart(self, storefront, server_cart, events):
        server_cart.seed(Cart().with_item(SHIRT, 4))
        await storefront.cart.add_item(SHIRT, 3)
        await storefront.cart.add_item(MUG, 1)
        await storefront.cart.apply_coupon("SAVE10")
        storefront.cart.subscribe(events)

        cart = await storefront.auth.login("tok-1", USER)

        assert storefront.cart.mode is CartMode.AUTHENTICATED
        assert storefront.api.token == "tok-1"
        assert cart.quantity_of("prod-shirt") == 5
        assert cart.quantity_of("prod-mug") == 1
        assert cart.applied_coupon.code == "SAVE10"
        assert cart.items == server_cart.cart.items
        assert cart.totals == server_cart.cart.totals
        assert cart.totals.discount == Decimal("13.75")
        (merged,) = events.of_type(CartsMerged)
        assert merged.items_merged_count == 2

    async def test_unknown_product_is_skipped(self, storefront, events):
        await storefront.cart.add_item(Product(id="prod-gone", name="Gone", price=Decimal("9")), 1)
        await storefront.cart.add_item(MUG, 2)
        storefront.cart.subscribe(events)

        cart = await storefront.auth.login("tok-1", USER)

        assert cart.quantity_of("prod-mug") == 2
        assert cart.quantity_of("prod-gone") == 0
        (merged,) = events.of_type(CartsMerged)
        assert merged.skipped_product_ids == ("prod-gone",)

    async def test_signed_in_session_survives_restart(self, settings, transport, server_cart):
        store = MemoryStore()
        first = build_storefront(settings, store=store, transport=transport)
        await first.cart.add_item(MUG, 2)
        await first.auth.login("tok-1", USER)
        await first.aclose()
        server_cart.seed(server_cart.cart.with_item(SHIRT, 1))

        second = build_storefront(settings, store=store, transport=transport)
        cached = second.cart.cart
        refreshed = await second.cart.initialize()

        assert store.get(AUTH_STORAGE_KEY)["token"] == "tok-1"
        assert second.cart.mode is CartMode.AUTHENTICATED
        assert second.api.token == "tok-1"
        assert cached.quantity_of("prod-shirt") == 0
        assert refreshed.quantity_of("prod-shirt") == 1
        await second.aclose()

    async def test_sign_out(self, storefront):
        await storefront.cart.add_item(MUG, 1)
        await storefront.auth.login("tok-1", USER)

        cart = storefront.auth.logout()

        assert cart.is_empty
        assert storefront.cart.mode is CartMode.GUEST
        assert storefront.api.token is None


class TestCheckoutPayment:
    async def test_payment_uses_configured_window(self, settings, transport, server_mpesa, instant_sleep):
        settings = settings.model_copy(update={"MPESA_POLL_INTERVAL_MS": 5_000, "MPESA_MAX_ATTEMPTS": 3})
        storefront = build_storefront(settings, store=MemoryStore(), transport=transport)
        server_mpesa.configure(statuses=[PAYMENT_PENDING, PAYMENT_PENDING, PAYMENT_COMPLETED])

        engine = storefront.payment("ord-001", Decimal("1500"), sleep=instant_sleep)
        await engine.submit("0712345678")
        session = await engine.wait()

        assert session.state is PaymentState.SUCCEEDED
        assert instant_sleep.calls == [5.0, 5.0, 5.0]
        await storefront.aclose()

    async def test_payment_times_out_within_window(self, settings, transport, instant_sleep):
        settings = settings.model_copy(update={"MPESA_MAX_ATTEMPTS": 4})
        storefront = build_storefront(settings, store=MemoryStore(), transport=transport)

        engine = storefront.payment("ord-001", Decimal("1500"), sleep=instant_sleep)
        await engine.submit("0712345678")
        session = await engine.wait()

        assert session.state is PaymentState.TIMED_OUT
        assert instant_sleep.total_seconds == 40
        await storefront.aclose()

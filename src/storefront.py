"""Composition root: wires settings, HTTP client, storage, gateways and engines.

    storefront = build_storefront()
    await storefront.cart.add_item(product, 2)
    engine = storefront.payment(order_id, amount)
    await engine.submit("0712345678")

``fake=True`` swaps both gateways for their in-memory fakes, which is what
the CLI demo and local development use when no API server is running.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal

import httpx
import structlog
from shared.config import Settings, get_settings
from shared.http import ApiClient, build_client
from shared.money import minor_digits
from shared.storage import JsonFileStore, LocalStore, MemoryStore

from identity.session import AuthSession, load_auth_state
from ordering.cart.cart import CartMode
from ordering.cart.engine import CartEngine
from ordering.cart.pricing import PricingRates
from ordering.gateway.fake_adapter import FakeCartGateway
from ordering.gateway.http_adapter import HttpCartGateway
from ordering.gateway.port import CartGateway
from payments.gateway.fake_adapter import FakeMpesaGateway
from payments.gateway.http_adapter import HttpMpesaGateway
from payments.gateway.port import MobileMoneyGateway
from payments.mpesa.engine import PaymentConfirmationEngine
from payments.mpesa.scheduler import Sleep

logger = structlog.get_logger(__name__)


def pricing_rates(settings: Settings) -> PricingRates:
    return PricingRates(
        free_shipping_threshold=settings.FREE_SHIPPING_THRESHOLD,
        standard_shipping_cost=settings.STANDARD_SHIPPING_COST,
        tax_rate=settings.TAX_RATE,
        minor_digits=minor_digits(settings.CURRENCY),
    )


def build_store(settings: Settings) -> LocalStore:
    if settings.STORAGE_DIR is not None:
        return JsonFileStore(settings.STORAGE_DIR)
    return MemoryStore()


@dataclass
class Storefront:
    settings: Settings
    api: ApiClient
    store: LocalStore
    cart_gateway: CartGateway
    payment_gateway: MobileMoneyGateway
    cart: CartEngine
    auth: AuthSession

    def payment(self, order_id: str, amount: Decimal, *, sleep: Sleep = asyncio.sleep) -> PaymentConfirmationEngine:
        """A confirmation engine for one order, using the configured polling window."""
        return PaymentConfirmationEngine(
            order_id,
            amount,
            self.payment_gateway,
            poll_interval_ms=self.settings.MPESA_POLL_INTERVAL_MS,
            max_attempts=self.settings.MPESA_MAX_ATTEMPTS,
            sleep=sleep,
        )

    async def aclose(self) -> None:
        await self.api.aclose()


def build_storefront(
    settings: Settings | None = None,
    *,
    store: LocalStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    fake: bool = False,
) -> Storefront:
    settings = settings or get_settings()
    rates = pricing_rates(settings)
    store = store or build_store(settings)
    api = ApiClient(build_client(settings.API_BASE_URL, settings.HTTP_TIMEOUT_SECONDS, transport))

    if fake:
        cart_gateway: CartGateway = FakeCartGateway(rates)
        payment_gateway: MobileMoneyGateway = FakeMpesaGateway()
    else:
        cart_gateway = HttpCartGateway(api)
        payment_gateway = HttpMpesaGateway(api)

    # A persisted sign-in means the cached cart mirrors the server cart
    signed_in = load_auth_state(store).is_authenticated
    cart = CartEngine(
        cart_gateway,
        store,
        rates=rates,
        mode=CartMode.AUTHENTICATED if signed_in else CartMode.GUEST,
    )
    auth = AuthSession(api, cart, store)

    logger.debug(
        "Storefront assembled",
        api_base_url=settings.API_BASE_URL,
        fake=fake,
        cart_mode=cart.mode.value,
    )
    return Storefront(
        settings=settings,
        api=api,
        store=store,
        cart_gateway=cart_gateway,
        payment_gateway=payment_gateway,
        cart=cart,
        auth=auth,
    )

"""CartEngine: the one place the storefront's cart is changed.

The engine holds the authoritative Cart snapshot and replaces it on every
mutation. All mutators funnel into ``_mutate``, which dispatches on CartMode:

- GUEST: apply the change locally and reprice with the pricing calculator.
- AUTHENTICATED: call the cart collaborator and adopt its snapshot wholesale.
  Each request carries a sequence number; a response that does not answer the
  most recently issued request is discarded, so an out-of-order answer can
  never overwrite newer state.

Every committed snapshot is written to local storage (best effort) and, when
it differs from the previous one, published to subscribers as CartUpdated.
Failures leave the snapshot untouched: validation errors are raised before
anything changes, and a failed server call never reaches ``_commit``.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal

import pydantic
import structlog
from shared.exceptions import CouponInvalid, StockExceeded, StorefrontError, ValidationError
from shared.storage import CART_STORAGE_KEY, LocalStore, MemoryStore

from ordering.api.schemas import CartSnapshotSchema
from ordering.cart.cart import Cart, CartMode
from ordering.cart.events import CartEvent, CartsMerged, CartUpdated, CouponDropped
from ordering.cart.items import OptionsInput, Product, normalize_options
from ordering.cart.pricing import DEFAULT_RATES, PricingRates
from ordering.cart.reconciliation import CouponResolution, plan_merge, resolve_coupon
from ordering.gateway import get_gateway
from ordering.gateway.port import CartGateway

logger = structlog.get_logger(__name__)

Listener = Callable[[CartEvent], None]


@dataclass(frozen=True)
class CartSummary:
    total_items: int
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    coupon_code: str | None
    savings: Decimal


class CartEngine:
    def __init__(
        self,
        gateway: CartGateway | None = None,
        store: LocalStore | None = None,
        *,
        rates: PricingRates | None = None,
        mode: CartMode = CartMode.GUEST,
    ) -> None:
        self.gateway = gateway or get_gateway()
        self.store = store or MemoryStore()
        self.rates = rates or DEFAULT_RATES
        self._mode = mode
        self._cart = Cart()
        self._listeners: list[Listener] = []
        self._issued = 0
        self.restore()

    @property
    def mode(self) -> CartMode:
        return self._mode

    @property
    def cart(self) -> Cart:
        return self._cart

    # -------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; the returned callable unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, event: CartEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Cart listener failed", event_type=type(event).__name__)

    # -------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------
    def restore(self) -> Cart:
        """Load the cart persisted under ``cart-storage``, if any."""
        document = self.store.get(CART_STORAGE_KEY)
        if document is None:
            return self._cart

        try:
            cart = CartSnapshotSchema.model_validate(document).to_cart()
        except pydantic.ValidationError as e:
            logger.warning("Discarding unreadable persisted cart", errors=e.error_count())
            self.store.remove(CART_STORAGE_KEY)
            return self._cart

        if self._mode is CartMode.GUEST:
            cart = cart.priced(self.rates)
        self._cart = cart
        logger.debug("Restored persisted cart", mode=self._mode.value, total_items=cart.total_items)
        return cart

    def _persist(self, cart: Cart) -> None:
        self.store.set(CART_STORAGE_KEY, CartSnapshotSchema.from_cart(cart).to_wire())

    def _stash(self, cart: Cart) -> None:
        """Replace the guest cart without notifying (mid-reconciliation)."""
        self._cart = cart.priced(self.rates)
        self._persist(self._cart)

    def _commit(
        self,
        operation: str,
        cart: Cart,
        previous: Cart | None = None,
        mode_changed: bool = False,
    ) -> Cart:
        previous = self._cart if previous is None else previous
        self._cart = cart
        self._persist(cart)
        if cart != previous or mode_changed:
            self._publish(CartUpdated(cart=cart, previous=previous, mode=self._mode, operation=operation))
        return cart

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    async def _mutate(
        self,
        operation: str,
        local: Callable[[Cart], Cart],
        remote: Callable[[], Awaitable[Cart]],
    ) -> Cart:
        if self._mode is CartMode.GUEST:
            return self._commit(operation, local(self._cart).priced(self.rates))

        self._issued += 1
        sequence = self._issued
        cart = await remote()
        if sequence != self._issued:
            logger.debug("Discarding stale cart response", operation=operation, sequence=sequence, latest=self._issued)
            return self._cart
        return self._commit(operation, cart)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_empty(self) -> bool:
        return self._cart.is_empty

    def item_count(self, product_id: str, options: OptionsInput | None = None) -> int:
        return self._cart.quantity_of(product_id, options)

    def summary(self) -> CartSummary:
        totals = self._cart.totals
        coupon = self._cart.applied_coupon
        return CartSummary(
            total_items=self._cart.total_items,
            subtotal=totals.subtotal,
            discount=totals.discount,
            shipping=totals.shipping,
            tax=totals.tax,
            total=totals.total,
            coupon_code=coupon.code if coupon else None,
            savings=totals.discount,
        )

    # -------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------
    async def initialize(self) -> Cart:
        """Refresh from the server cart; keep the cached cart when it is unreachable."""
        if self._mode is CartMode.GUEST:
            return self._cart
        try:
            return await self._mutate("initialize", lambda cart: cart, self.gateway.fetch_cart)
        except StorefrontError as e:
            logger.warning("Server cart unavailable, keeping cached cart", error=e.message)
            return self._cart

    async def add_item(self, product: Product, quantity: int = 1, options: OptionsInput | None = None) -> Cart:
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        options = normalize_options(options)
        wanted = self._cart.quantity_of(product.id, options) + quantity
        if not product.allows(wanted):
            logger.info(
                "Rejected cart quantity over stock",
                product_id=product.id,
                requested=wanted,
                available=product.available_quantity,
            )
            raise StockExceeded("Insufficient stock")

        return await self._mutate(
            "add_item",
            lambda cart: cart.with_item(product, quantity, options),
            lambda: self.gateway.add_item(product, quantity, options),
        )

    async def update_quantity(self, product_id: str, options: OptionsInput | None, new_quantity: int) -> Cart:
        options = normalize_options(options)
        if new_quantity < 1:
            return await self.remove_item(product_id, options)

        existing = self._cart.find(product_id, options)
        if existing is None:
            raise ValidationError("Item not found in cart")
        if not existing.product.allows(new_quantity):
            logger.info(
                "Rejected cart quantity over stock",
                product_id=product_id,
                requested=new_quantity,
                available=existing.product.available_quantity,
            )
            raise StockExceeded("Insufficient stock")

        return await self._mutate(
            "update_quantity",
            lambda cart: cart.with_quantity(product_id, options, new_quantity),
            lambda: self.gateway.update_item(product_id, options, new_quantity),
        )

    async def remove_item(self, product_id: str, options: OptionsInput | None = None) -> Cart:
        options = normalize_options(options)
        if self._cart.find(product_id, options) is None:
            return self._cart

        return await self._mutate(
            "remove_item",
            lambda cart: cart.without_item(product_id, options),
            lambda: self.gateway.remove_item(product_id, options),
        )

    async def apply_coupon(self, code: str) -> Cart:
        code = code.strip().upper()
        if not code:
            raise CouponInvalid("Please enter a coupon code")
        if self._cart.is_empty:
            raise CouponInvalid("Cart is empty")

        coupon = None
        if self._mode is CartMode.GUEST:
            coupon = await self.gateway.validate_coupon(code, self._cart.totals.subtotal)

        cart = await self._mutate(
            "apply_coupon",
            lambda cart: cart.with_coupon(coupon),
            lambda: self.gateway.apply_coupon(code),
        )
        logger.info("Coupon applied", code=code, discount=str(cart.totals.discount))
        return cart

    async def remove_coupon(self) -> Cart:
        if self._cart.applied_coupon is None:
            return self._cart

        return await self._mutate(
            "remove_coupon",
            lambda cart: cart.with_coupon(None),
            self.gateway.remove_coupon,
        )

    async def clear(self) -> Cart:
        return await self._mutate("clear", lambda cart: cart.cleared(), self.gateway.clear_cart)

    # -------------------------------------------------------------------
    # Mode changes
    # -------------------------------------------------------------------
    async def reconcile(self) -> Cart:
        """Merge the guest cart into the server cart and switch to AUTHENTICATED.

        Guest lines are added server-side one at a time, capped at the stock
        the server cart leaves room for. A line is dropped from the guest cart
        as soon as it is merged, so a retry after a transport failure never
        adds it twice. Lines with no room left (or rejected by the server)
        are skipped and reported in CartsMerged.
        """
        if self._mode is CartMode.AUTHENTICATED:
            return await self.initialize()

        original = self._cart
        coupon = original.applied_coupon
        merged = 0
        skipped: list[str] = []

        try:
            remote = await self.gateway.fetch_cart()
            while self._cart.items:
                plan = plan_merge(self._cart, remote)
                for item in plan.skipped:
                    logger.info("Skipping guest item without stock", product_id=item.product_id)
                    skipped.append(item.product_id)
                    self._stash(self._cart.without_item(item.product_id, item.selected_options))

                for step in plan.steps:
                    item = step.item
                    try:
                        remote = await self.gateway.add_item(item.product, step.quantity, item.selected_options)
                    except ValidationError as e:
                        logger.info("Server refused guest item", product_id=item.product_id, reason=e.message)
                        skipped.append(item.product_id)
                    else:
                        merged += 1
                    self._stash(self._cart.without_item(item.product_id, item.selected_options))

            dropped_reason = None
            match resolve_coupon(coupon, remote.applied_coupon):
                case CouponResolution.APPLY:
                    try:
                        remote = await self.gateway.apply_coupon(coupon.code)
                    except CouponInvalid as e:
                        dropped_reason = e.message
                case CouponResolution.DROP:
                    dropped_reason = f"Cart already has coupon {remote.applied_coupon.code}"
                case CouponResolution.KEEP:
                    pass
        except StorefrontError:
            if self._cart != original:
                self._publish(CartUpdated(cart=self._cart, previous=original, mode=self._mode, operation="reconcile"))
            raise

        self._mode = CartMode.AUTHENTICATED
        self._issued += 1
        cart = self._commit("reconcile", remote, previous=original, mode_changed=True)

        if dropped_reason is not None:
            logger.info("Guest coupon dropped", code=coupon.code, reason=dropped_reason)
            self._publish(CouponDropped(code=coupon.code, reason=dropped_reason))

        logger.info("Guest cart reconciled", items_merged=merged, items_skipped=len(skipped))
        self._publish(CartsMerged(items_merged_count=merged, skipped_product_ids=tuple(skipped)))
        return cart

    def logout(self) -> Cart:
        """Back to GUEST with an empty cart; the server cart stays with the account."""
        previous = self._cart
        self._issued += 1
        self._mode = CartMode.GUEST
        return self._commit("logout", Cart(), previous=previous, mode_changed=True)

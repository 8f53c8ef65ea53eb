"""Shopping Cart snapshot — an immutable value that every mutation replaces.

The cart lives in one of two places, tracked by CartMode:

- GUEST: the in-memory/local-persisted cart is authoritative and is priced
  locally with ``ordering.cart.pricing.compute``.
- AUTHENTICATED: the server cart is authoritative; the local snapshot is a
  cache replaced wholesale by every server response, totals included.

Cart methods never mutate: each returns a new Cart, so change detection is
plain equality.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ordering.cart.coupons import Coupon
from ordering.cart.items import LineItem, OptionsInput, Product, normalize_options
from ordering.cart.pricing import DEFAULT_RATES, PriceBreakdown, PricingRates, compute


class CartMode(Enum):
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


class Cart(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: tuple[LineItem, ...] = ()
    applied_coupon: Coupon | None = None
    totals: PriceBreakdown = Field(default_factory=PriceBreakdown)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, product_id: str, options: OptionsInput | None = None) -> LineItem | None:
        options = normalize_options(options)
        return next((i for i in self.items if i.matches(product_id, options)), None)

    def quantity_of(self, product_id: str, options: OptionsInput | None = None) -> int:
        item = self.find(product_id, options)
        return item.quantity if item else 0

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def with_item(self, product: Product, quantity: int, options: OptionsInput | None = None) -> "Cart":
        """Add ``quantity`` of a product, merging into an existing matching line."""
        options = normalize_options(options)
        existing = self.find(product.id, options)

        if existing:
            # Keep the line's price but refresh its stock facts
            merged = existing.model_copy(update={"product": product, "quantity": existing.quantity + quantity})
            items = tuple(merged if i.key == existing.key else i for i in self.items)
        else:
            items = (*self.items, LineItem.create(product, quantity, options))

        return self.model_copy(update={"items": items})

    def with_quantity(self, product_id: str, options: OptionsInput | None, quantity: int) -> "Cart":
        """Replace a line's quantity; anything below 1 removes the line."""
        options = normalize_options(options)
        if quantity < 1:
            return self.without_item(product_id, options)

        items = tuple(i.with_quantity(quantity) if i.matches(product_id, options) else i for i in self.items)
        return self.model_copy(update={"items": items})

    def without_item(self, product_id: str, options: OptionsInput | None = None) -> "Cart":
        options = normalize_options(options)
        items = tuple(i for i in self.items if not i.matches(product_id, options))
        return self.model_copy(update={"items": items})

    # -------------------------------------------------------------------
    # Coupon management
    # -------------------------------------------------------------------
    def with_coupon(self, coupon: Coupon | None) -> "Cart":
        return self.model_copy(update={"applied_coupon": coupon})

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def cleared(self) -> "Cart":
        return Cart()

    def priced(self, rates: PricingRates = DEFAULT_RATES) -> "Cart":
        return self.model_copy(update={"totals": compute(self.items, self.applied_coupon, rates)})

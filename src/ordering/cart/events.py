"""Notifications published by the CartEngine to its subscribers."""

from dataclasses import dataclass

from ordering.cart.cart import Cart, CartMode


@dataclass(frozen=True)
class CartUpdated:
    """The authoritative snapshot changed."""

    cart: Cart
    previous: Cart
    mode: CartMode
    operation: str


@dataclass(frozen=True)
class CouponDropped:
    """A guest coupon was not carried over during reconciliation."""

    code: str
    reason: str


@dataclass(frozen=True)
class CartsMerged:
    """A guest cart was merged into the signed-in customer's server cart."""

    items_merged_count: int
    skipped_product_ids: tuple[str, ...] = ()


CartEvent = CartUpdated | CouponDropped | CartsMerged

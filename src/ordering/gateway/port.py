"""Cart gateway port (abstract interface).

Defines the contract the CartEngine needs from the storefront's cart
collaborator. HttpCartGateway talks to the REST API; FakeCartGateway is an
in-memory stand-in for development and tests. Every mutating call answers
with the full server-side cart snapshot.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from ordering.cart.cart import Cart
from ordering.cart.coupons import Coupon
from ordering.cart.items import Options, Product


class CartGateway(ABC):
    """Abstract cart collaborator interface."""

    @abstractmethod
    async def fetch_cart(self) -> Cart:
        """Return the signed-in customer's server cart."""
        ...

    @abstractmethod
    async def add_item(self, product: Product, quantity: int, options: Options) -> Cart:
        """Add ``quantity`` of a product, merging into a matching server line."""
        ...

    @abstractmethod
    async def update_item(self, product_id: str, options: Options, quantity: int) -> Cart: ...

    @abstractmethod
    async def remove_item(self, product_id: str, options: Options) -> Cart: ...

    @abstractmethod
    async def clear_cart(self) -> Cart: ...

    @abstractmethod
    async def apply_coupon(self, code: str) -> Cart:
        """Validate and attach a coupon to the server cart."""
        ...

    @abstractmethod
    async def remove_coupon(self) -> Cart: ...

    @abstractmethod
    async def validate_coupon(self, code: str, subtotal: Decimal) -> Coupon:
        """Validate a coupon for a guest cart without touching any server cart."""
        ...

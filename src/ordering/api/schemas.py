"""Pydantic wire schemas for the storefront cart API.

These are external contracts (anti-corruption layer), separate from the
internal Cart model. The server speaks camelCase and wraps products as
``{"_id": ..., "name": ..., "price": ..., "quantity": ..., "trackQuantity": ...}``;
an unpopulated item carries the product id as a plain string instead.

The same snapshot shape is what the CartEngine writes to ``cart-storage``.
"""

from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, Field, field_validator
from shared.money import ZERO
from shared.schemas import WireModel

from ordering.cart.cart import Cart
from ordering.cart.coupons import Coupon, CouponKind
from ordering.cart.items import LineItem, Product, VariantOption
from ordering.cart.pricing import PriceBreakdown


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class VariantSchema(WireModel):
    name: str
    value: str


class ProductSchema(WireModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    name: str = ""
    price: Decimal | None = None
    quantity: int | None = None
    track_quantity: bool = False

    def to_product(self, fallback_price: Decimal) -> Product:
        return Product(
            id=self.id,
            name=self.name,
            price=self.price if self.price is not None else fallback_price,
            track_quantity=self.track_quantity,
            available_quantity=max(self.quantity, 0) if self.quantity is not None else None,
        )

    @classmethod
    def from_product(cls, product: Product) -> "ProductSchema":
        return cls(
            id=product.id,
            name=product.name,
            price=product.price,
            quantity=product.available_quantity,
            track_quantity=product.track_quantity,
        )


class CartItemSchema(WireModel):
    product: ProductSchema
    quantity: int = Field(ge=1)
    price: Decimal = Field(ge=0)
    selected_variants: list[VariantSchema] = Field(default_factory=list)

    @field_validator("product", mode="before")
    @classmethod
    def _unpopulated_product(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"_id": value}
        return value

    def to_line_item(self) -> LineItem:
        return LineItem(
            product=self.product.to_product(self.price),
            unit_price=self.price,
            quantity=self.quantity,
            selected_options=tuple(VariantOption(name=v.name, value=v.value) for v in self.selected_variants),
        )

    @classmethod
    def from_line_item(cls, item: LineItem) -> "CartItemSchema":
        return cls(
            product=ProductSchema.from_product(item.product),
            quantity=item.quantity,
            price=item.unit_price,
            selected_variants=[VariantSchema(name=o.name, value=o.value) for o in item.selected_options],
        )


class AppliedCouponSchema(WireModel):
    """The coupon on a cart snapshot.

    The server stores the amount it granted in ``discount``. A locally priced
    snapshot also records the coupon's terms (``discountValue`` and its
    limits) so the cart can be repriced after a restore.
    """

    code: str
    discount: Decimal = ZERO
    discount_type: CouponKind = CouponKind.FIXED
    discount_value: Decimal | None = None
    minimum_amount: Decimal | None = None
    maximum_discount: Decimal | None = None

    def to_coupon(self) -> Coupon:
        if self.discount_value is None:
            # Server snapshot: only the granted amount is known
            return Coupon(code=self.code, kind=CouponKind.FIXED, value=self.discount)
        return Coupon(
            code=self.code,
            kind=self.discount_type,
            value=self.discount_value,
            minimum_order_amount=self.minimum_amount,
            maximum_discount=self.maximum_discount,
        )

    @classmethod
    def from_coupon(cls, coupon: Coupon, discount: Decimal) -> "AppliedCouponSchema":
        return cls(
            code=coupon.code,
            discount=discount,
            discount_type=coupon.kind,
            discount_value=coupon.value,
            minimum_amount=coupon.minimum_order_amount,
            maximum_discount=coupon.maximum_discount,
        )


# ---------------------------------------------------------------------------
# Cart snapshot
# ---------------------------------------------------------------------------
class CartSnapshotSchema(WireModel):
    items: list[CartItemSchema] = Field(default_factory=list)
    total_items: int = 0
    total_price: Decimal = ZERO
    applied_coupon: AppliedCouponSchema | None = None
    discount_amount: Decimal = ZERO
    final_price: Decimal = ZERO
    shipping_price: Decimal | None = None
    tax_price: Decimal | None = None

    @field_validator("applied_coupon", mode="before")
    @classmethod
    def _empty_coupon(cls, value: Any) -> Any:
        # Mongo serialises a cleared sub-document as {} or a code-less object
        if isinstance(value, dict) and not value.get("code"):
            return None
        return value

    def to_cart(self) -> Cart:
        return Cart(
            items=tuple(item.to_line_item() for item in self.items),
            applied_coupon=self.applied_coupon.to_coupon() if self.applied_coupon else None,
            totals=PriceBreakdown(
                subtotal=self.total_price,
                discount=self.discount_amount,
                shipping=self.shipping_price or ZERO,
                tax=self.tax_price or ZERO,
                total=self.final_price,
            ),
        )

    @classmethod
    def from_cart(cls, cart: Cart) -> "CartSnapshotSchema":
        return cls(
            items=[CartItemSchema.from_line_item(item) for item in cart.items],
            total_items=cart.total_items,
            total_price=cart.totals.subtotal,
            applied_coupon=(
                AppliedCouponSchema.from_coupon(cart.applied_coupon, cart.totals.discount) if cart.applied_coupon else None
            ),
            discount_amount=cart.totals.discount,
            final_price=cart.totals.total,
            shipping_price=cart.totals.shipping,
            tax_price=cart.totals.tax,
        )


# ---------------------------------------------------------------------------
# Cart request bodies
# ---------------------------------------------------------------------------
class AddCartItemRequest(WireModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)
    selected_variants: list[VariantSchema] = Field(default_factory=list)


class UpdateCartItemRequest(WireModel):
    product_id: str
    quantity: int
    selected_variants: list[VariantSchema] = Field(default_factory=list)


class RemoveCartItemRequest(WireModel):
    selected_variants: list[VariantSchema] = Field(default_factory=list)


class ApplyCouponRequest(WireModel):
    code: str


# ---------------------------------------------------------------------------
# Coupon validation
# ---------------------------------------------------------------------------
class CouponDetailsSchema(WireModel):
    code: str
    discount_type: CouponKind
    discount_value: Decimal
    minimum_amount: Decimal | None = None
    maximum_discount: Decimal | None = None

    def to_coupon(self) -> Coupon:
        return Coupon(
            code=self.code,
            kind=self.discount_type,
            value=self.discount_value,
            minimum_order_amount=self.minimum_amount,
            maximum_discount=self.maximum_discount,
        )


class CouponValidationSchema(WireModel):
    coupon: CouponDetailsSchema
    discount: Decimal = ZERO
    final_amount: Decimal = ZERO


def variants_payload(options: tuple[VariantOption, ...]) -> list[VariantSchema]:
    return [VariantSchema(name=o.name, value=o.value) for o in options]

"""Cart pricing — a pure function from line items, coupon and rates to a breakdown.

    subtotal = sum(unit_price * quantity)
    discount = coupon discount on subtotal (0 below the coupon's minimum)
    shipping = 0 if subtotal - discount >= free_shipping_threshold else standard cost
    tax      = (subtotal - discount) * tax_rate, rounded half-up to the minor unit
    total    = subtotal - discount + shipping + tax

The discount is capped at the subtotal, so the total is never negative.
"""

from collections.abc import Iterable
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from shared.money import ZERO, round_minor

from ordering.cart.coupons import Coupon, CouponKind
from ordering.cart.items import LineItem


class PricingRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    free_shipping_threshold: Decimal = Field(default=Decimal("100"), ge=0)
    standard_shipping_cost: Decimal = Field(default=Decimal("10"), ge=0)
    tax_rate: Decimal = Field(default=Decimal("0.10"), ge=0)
    minor_digits: int = Field(default=2, ge=0)


DEFAULT_RATES = PricingRates()


class PriceBreakdown(BaseModel):
    """Financial summary of a cart. ``total`` is what the customer pays."""

    model_config = ConfigDict(frozen=True)

    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    shipping: Decimal = ZERO
    tax: Decimal = ZERO
    total: Decimal = ZERO


def discount_for(subtotal: Decimal, coupon: Coupon | None, minor_digits: int = 2) -> Decimal:
    if coupon is None or not coupon.is_active_for(subtotal):
        return ZERO

    match coupon.kind:
        case CouponKind.PERCENTAGE:
            discount = round_minor(subtotal * coupon.value / 100, minor_digits)
            if coupon.maximum_discount is not None:
                discount = min(discount, coupon.maximum_discount)
        case CouponKind.FIXED:
            discount = coupon.value

    return min(discount, subtotal)


def compute(
    items: Iterable[LineItem],
    coupon: Coupon | None,
    rates: PricingRates = DEFAULT_RATES,
) -> PriceBreakdown:
    items = tuple(items)
    if not items:
        return PriceBreakdown()

    subtotal = sum((item.line_total for item in items), ZERO)
    discount = discount_for(subtotal, coupon, rates.minor_digits)
    net = subtotal - discount

    shipping = ZERO if net >= rates.free_shipping_threshold else rates.standard_shipping_cost
    tax = round_minor(net * rates.tax_rate, rates.minor_digits)

    return PriceBreakdown(
        subtotal=subtotal,
        discount=discount,
        shipping=shipping,
        tax=tax,
        total=net + shipping + tax,
    )

"""Guest → Authenticated cart merge planning.

Pure functions: given the guest cart and the server cart, decide how much of
each guest line can be added server-side and what to do with the guest's
coupon. The CartEngine executes the plan one step at a time.
"""

from dataclasses import dataclass
from enum import Enum

from ordering.cart.cart import Cart
from ordering.cart.coupons import Coupon
from ordering.cart.items import LineItem


@dataclass(frozen=True)
class MergeStep:
    item: LineItem
    quantity: int


@dataclass(frozen=True)
class MergePlan:
    steps: tuple[MergeStep, ...] = ()
    skipped: tuple[LineItem, ...] = ()


def merge_quantity(item: LineItem, remote: Cart) -> int:
    """How many units of a guest line fit on top of the server cart.

    The server's product facts win over the guest snapshot: they are newer.
    """
    remote_item = remote.find(item.product_id, item.selected_options)
    product = remote_item.product if remote_item else item.product
    if not product.track_quantity or product.available_quantity is None:
        return item.quantity

    already = remote_item.quantity if remote_item else 0
    return max(0, min(item.quantity, product.available_quantity - already))


def plan_merge(local: Cart, remote: Cart) -> MergePlan:
    steps: list[MergeStep] = []
    skipped: list[LineItem] = []
    for item in local.items:
        quantity = merge_quantity(item, remote)
        if quantity < 1:
            skipped.append(item)
        else:
            steps.append(MergeStep(item=item, quantity=quantity))
    return MergePlan(steps=tuple(steps), skipped=tuple(skipped))


class CouponResolution(Enum):
    KEEP = "keep"  # nothing to carry over, or the server already has it
    APPLY = "apply"  # re-apply the guest coupon server-side
    DROP = "drop"  # the server cart holds a different coupon


def resolve_coupon(local: Coupon | None, remote: Coupon | None) -> CouponResolution:
    if local is None:
        return CouponResolution.KEEP
    if remote is None:
        return CouponResolution.APPLY
    if remote.code == local.code:
        return CouponResolution.KEEP
    return CouponResolution.DROP

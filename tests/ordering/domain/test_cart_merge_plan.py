"""Tests for guest → server cart merge planning."""

from decimal import Decimal

from ordering.cart.cart import Cart
from ordering.cart.coupons import Coupon, CouponKind
from ordering.cart.items import Product
from ordering.cart.reconciliation import CouponResolution, merge_quantity, plan_merge, resolve_coupon


def _product(product_id="prod-001", stock=None):
    return Product(
        id=product_id,
        name="Item",
        price=Decimal("10"),
        track_quantity=stock is not None,
        available_quantity=stock,
    )


def _coupon(code):
    return Coupon(code=code, kind=CouponKind.FIXED, value=Decimal("5"))


class TestMergeQuantity:
    def test_untracked_item_merges_in_full(self):
        local = Cart().with_item(_product(), 7)
        assert merge_quantity(local.items[0], Cart()) == 7

    def test_capped_by_server_quantity_of_same_line(self):
        local = Cart().with_item(_product(stock=5), 4)
        remote = Cart().with_item(_product(stock=5), 3)
        assert merge_quantity(local.items[0], remote) == 2

    def test_server_product_facts_win(self):
        local = Cart().with_item(_product(stock=10), 4)
        remote = Cart().with_item(_product(stock=2), 1)
        assert merge_quantity(local.items[0], remote) == 1

    def test_other_options_do_not_count(self):
        local = Cart().with_item(_product(stock=5), 3, {"size": "M"})
        remote = Cart().with_item(_product(stock=5), 5, {"size": "L"})
        assert merge_quantity(local.items[0], remote) == 3


class TestPlanMerge:
    def test_every_local_item_is_merged_or_skipped(self):
        local = (
            Cart()
            .with_item(_product("prod-001", stock=3), 2)
            .with_item(_product("prod-002"), 1)
            .with_item(_product("prod-003", stock=1), 1)
        )
        remote = Cart().with_item(_product("prod-003", stock=1), 1)

        plan = plan_merge(local, remote)

        assert [s.item.product_id for s in plan.steps] == ["prod-001", "prod-002"]
        assert [s.quantity for s in plan.steps] == [2, 1]
        assert [i.product_id for i in plan.skipped] == ["prod-003"]

    def test_empty_guest_cart_has_nothing_to_do(self):
        plan = plan_merge(Cart(), Cart().with_item(_product(), 1))
        assert plan.steps == ()
        assert plan.skipped == ()


class TestResolveCoupon:
    def test_no_guest_coupon(self):
        assert resolve_coupon(None, _coupon("SERVER")) is CouponResolution.KEEP

    def test_apply_when_server_has_none(self):
        assert resolve_coupon(_coupon("GUEST"), None) is CouponResolution.APPLY

    def test_same_coupon_is_kept(self):
        assert resolve_coupon(_coupon("SAME"), _coupon("same")) is CouponResolution.KEEP

    def test_different_server_coupon_drops_guest_coupon(self):
        assert resolve_coupon(_coupon("GUEST"), _coupon("SERVER")) is CouponResolution.DROP

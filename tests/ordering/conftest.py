from decimal import Decimal

import pytest
from shared.storage import MemoryStore

from ordering.cart.coupons import Coupon, CouponKind
from ordering.gateway.fake_adapter import FakeCartGateway


@pytest.fixture
def gateway():
    gateway = FakeCartGateway()
    gateway.configure(
        coupons=[
            Coupon(code="SAVE10", kind=CouponKind.PERCENTAGE, value=Decimal("10")),
            Coupon(code="BIG50", kind=CouponKind.PERCENTAGE, value=Decimal("50"), maximum_discount=Decimal("500")),
            Coupon(code="MIN200", kind=CouponKind.FIXED, value=Decimal("20"), minimum_order_amount=Decimal("200")),
        ],
        expired_codes=["OLD"],
    )
    return gateway


@pytest.fixture
def store():
    return MemoryStore()

"""Coupon value object.

A cart carries at most one coupon. Validation against the store's coupon rules
(existence, date window, usage limits) is the collaborator's job; this module
only describes the discount a validated coupon grants.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CouponKind(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Coupon(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str = Field(min_length=1, max_length=20)
    kind: CouponKind
    value: Decimal = Field(ge=0)
    minimum_order_amount: Decimal | None = Field(default=None, ge=0)
    maximum_discount: Decimal | None = Field(default=None, ge=0)

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def _percentage_within_bounds(self) -> "Coupon":
        if self.kind is CouponKind.PERCENTAGE and self.value > 100:
            raise ValueError("Percentage discount cannot be more than 100%")
        return self

    def is_active_for(self, subtotal: Decimal) -> bool:
        """A coupon below its minimum order amount stays applied but grants nothing."""
        return self.minimum_order_amount is None or subtotal >= self.minimum_order_amount

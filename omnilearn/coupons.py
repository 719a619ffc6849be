"""
Coupon resolution for a cart.

Coupons belong to a course listing, not to a global registry: a code only
applies when some item in the cart lists it.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from .schemas import CartItem, Coupon

INVALID_CODE = "Invalid Code for these courses."


@dataclass
class CouponResult:
    coupon: Optional[Coupon] = None
    discount: float = 0.0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.coupon is not None


def find_coupon(items: Sequence[CartItem], code: str) -> Optional[Coupon]:
    # First match wins: cart order, then the item's own coupon order.
    for item in items:
        for c in item.coupons:
            if c.matches(code):
                return c
    return None


def item_discount(item: CartItem, code: str) -> float:
    c = next((c for c in item.coupons if c.matches(code)), None)
    if c is None:
        return 0.0
    if c.type == "percent":
        return item.price * c.value / 100
    return c.value


def compute_discount(items: Sequence[CartItem], coupon: Optional[Coupon]) -> float:
    """Apply the coupon's code to every item that lists it, using that item's own terms."""
    if coupon is None:
        return 0.0
    return sum(item_discount(item, coupon.code) for item in items)


def original_total(items: Sequence[CartItem]) -> int:
    return sum(item.price for item in items)


def final_total(items: Sequence[CartItem], coupon: Optional[Coupon]) -> float:
    return max(1, original_total(items) - compute_discount(items, coupon))


def apply_coupon(items: Sequence[CartItem], code: str) -> CouponResult:
    code = (code or "").strip()
    if not code:
        return CouponResult(error="Enter a coupon code.")
    coupon = find_coupon(items, code)
    if coupon is None:
        return CouponResult(error=INVALID_CODE)
    return CouponResult(coupon=coupon, discount=compute_discount(items, coupon))

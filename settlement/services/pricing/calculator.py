"""Cents arithmetic for bookings.

All amounts are non-negative integers in the smallest currency unit. Percentages are
integers, so every result is exact integer math:

- discount and commission are floored,
- the down payment is rounded half-up (5 cents of a 0.5 fraction goes to the down payment),
- the remaining balance is whatever the down payment did not cover, so
  ``down_payment(a) + remaining_payment(a) == a`` always holds.

Commission is computed on the ORIGINAL price, never on the discounted one.
"""
from __future__ import annotations

from dataclasses import dataclass

from settlement.core.config import settings
from settlement.services.errors import InvalidAmount, InvalidDiscountRange


def _check_amount(amount: int) -> int:
    # bool is an int subclass; True cents is a bug, not a price
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidAmount()
    return amount


def _check_percent(percentage: int, *, low: int = 0) -> int:
    if isinstance(percentage, bool) or not isinstance(percentage, int) or not low <= percentage <= 100:
        raise InvalidDiscountRange(f"Percentage must be between {low} and 100")
    return percentage


def discount(original_price: int, percentage: int) -> int:
    _check_amount(original_price)
    _check_percent(percentage)
    return original_price * percentage // 100


def final_price(original_price: int, discount_amount: int) -> int:
    _check_amount(original_price)
    _check_amount(discount_amount)
    if discount_amount > original_price:
        raise InvalidAmount("Discount cannot exceed the original price")
    return original_price - discount_amount


def down_payment(amount: int, percentage: int | None = None) -> int:
    _check_amount(amount)
    pct = _check_percent(settings.down_payment_percent if percentage is None else percentage)
    # round half-up: floor(amount * pct / 100 + 1/2)
    return (amount * pct * 2 + 100) // 200


def remaining_payment(amount: int, percentage: int | None = None) -> int:
    return amount - down_payment(amount, percentage)


def commission(original_price: int, percentage: int | None = None) -> int:
    _check_amount(original_price)
    pct = _check_percent(settings.commission_percent if percentage is None else percentage)
    return original_price * pct // 100


@dataclass(frozen=True)
class PricingBreakdown:
    original_price: int
    discount_percentage: int
    discount_amount: int
    final_price: int
    down_payment: int
    remaining_payment: int
    # on the original price; 0 when no coupon (no partner to pay)
    commission_amount: int = 0
    coupon_id: int | None = None
    coupon_code: str | None = None
    partner_id: int | None = None

    @property
    def has_coupon(self) -> bool:
        return self.coupon_id is not None


def price_booking(
    original_price: int,
    *,
    discount_percentage: int = 0,
    coupon_id: int | None = None,
    coupon_code: str | None = None,
    partner_id: int | None = None,
) -> PricingBreakdown:
    """Full breakdown for one booking. No coupon means ``discount_percentage=0``."""
    disc = discount(original_price, discount_percentage)
    total = final_price(original_price, disc)
    down = down_payment(total)
    return PricingBreakdown(
        original_price=original_price,
        discount_percentage=discount_percentage,
        discount_amount=disc,
        final_price=total,
        down_payment=down,
        remaining_payment=total - down,
        commission_amount=commission(original_price) if coupon_id is not None else 0,
        coupon_id=coupon_id,
        coupon_code=coupon_code,
        partner_id=partner_id,
    )

import pytest

from settlement.services.errors import InvalidAmount, InvalidDiscountRange
from settlement.services.pricing import calculator
from settlement.services.pricing.calculator import price_booking


def test_down_payment_and_remaining_add_up():
    for amount in range(0, 20001):
        assert calculator.down_payment(amount) + calculator.remaining_payment(amount) == amount


def test_discount_is_floored_and_final_price_non_negative():
    for price in range(0, 10001, 7):
        for pct in range(1, 101):
            d = calculator.discount(price, pct)
            assert d == price * pct // 100
            assert calculator.final_price(price, d) == price - d >= 0


def test_down_payment_rounds_half_up():
    # 20% of 31500 = 6300, of 3 = 0.6 -> 1, of 2 = 0.4 -> 0
    assert calculator.down_payment(31500) == 6300
    assert calculator.down_payment(3) == 1
    assert calculator.down_payment(2) == 0
    # 50% of 5 = 2.5 -> 3 (ties go up)
    assert calculator.down_payment(5, 50) == 3
    assert calculator.remaining_payment(5, 50) == 2


def test_commission_uses_original_price():
    assert calculator.commission(35000, 20) == 7000
    assert calculator.commission(35000) == 7000
    assert calculator.commission(999, 20) == 199


def test_invalid_inputs():
    with pytest.raises(InvalidAmount):
        calculator.discount(-1, 10)
    with pytest.raises(InvalidAmount):
        calculator.down_payment(10.5)
    with pytest.raises(InvalidDiscountRange):
        calculator.discount(100, 101)
    with pytest.raises(InvalidAmount):
        calculator.final_price(100, 101)


def test_breakdown_with_coupon():
    b = price_booking(35000, discount_percentage=10, coupon_id=1, coupon_code="penguin10off", partner_id=7)
    assert b.discount_amount == 3500
    assert b.final_price == 31500
    assert b.down_payment == 6300
    assert b.remaining_payment == 25200
    assert b.commission_amount == 7000
    assert b.has_coupon


def test_breakdown_without_coupon():
    b = price_booking(15000)
    assert (b.discount_amount, b.final_price, b.down_payment, b.remaining_payment) == (0, 15000, 3000, 12000)
    assert b.commission_amount == 0
    assert not b.has_coupon


def test_full_discount_leaves_nothing_to_pay():
    b = price_booking(15000, discount_percentage=100, coupon_id=1, partner_id=1)
    assert b.final_price == 0
    assert b.down_payment == 0
    assert b.commission_amount == 3000

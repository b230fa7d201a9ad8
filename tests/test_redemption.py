import pytest
from sqlalchemy import func, select, update

from settlement import repo
from settlement.db.models import CouponUsage, User
from settlement.services.coupons.redemption import redemption_ledger
from settlement.services.errors import (AppointmentNotFound, CouponAlreadyUsed, CouponNotFound, DuplicateRedemption,
                                        InvalidAmount)


async def _usage_count(session, **filters) -> int:
    q = select(func.count(CouponUsage.id))
    for k, v in filters.items():
        q = q.where(getattr(CouponUsage, k) == v)
    return int(await session.scalar(q))


async def _flag(session, user_id) -> bool:
    return bool(await session.scalar(select(User.has_used_coupon).where(User.id == user_id)))


@pytest.fixture
async def appointment(session, seed):
    return await repo.create_appointment(
        session, user_id=seed.customer_id, service_id=seed.deep_clean_id, original_price=35000
    )


async def test_record_usage_writes_row_and_flag(session, seed, appointment):
    res = await redemption_ledger.record_usage(
        session, coupon_id=seed.coupon_id, customer_id=seed.customer_id, appointment_id=appointment.id, discount_amount=3500
    )
    assert res.ok
    usage = res.value
    assert (usage.coupon_id, usage.customer_id, usage.appointment_id, usage.discount_amount) == (
        seed.coupon_id, seed.customer_id, appointment.id, 3500
    )
    assert await _flag(session, seed.customer_id) is True
    assert await _usage_count(session) == 1


async def test_duplicate_redemption_leaves_no_partial_writes(session, seed, appointment):
    (await redemption_ledger.record_usage(
        session, coupon_id=seed.coupon_id, customer_id=seed.customer_id, appointment_id=appointment.id, discount_amount=3500
    )).unwrap()
    await session.execute(update(User).where(User.id == seed.customer_id).values(has_used_coupon=False))

    res = await redemption_ledger.record_usage(
        session, coupon_id=seed.coupon_id, customer_id=seed.customer_id, appointment_id=appointment.id, discount_amount=3500
    )
    assert isinstance(res.error, DuplicateRedemption)
    assert await _usage_count(session) == 1
    # the flag update never happened
    assert await _flag(session, seed.customer_id) is False


async def test_flag_already_set_rolls_back_usage_row(session, seed, appointment):
    await session.execute(update(User).where(User.id == seed.customer_id).values(has_used_coupon=True))

    res = await redemption_ledger.record_usage(
        session, coupon_id=seed.coupon_id, customer_id=seed.customer_id, appointment_id=appointment.id, discount_amount=3500
    )
    assert isinstance(res.error, CouponAlreadyUsed)
    assert await _usage_count(session) == 0
    assert await _flag(session, seed.customer_id) is True


async def test_missing_references(session, seed, appointment):
    res = await redemption_ledger.record_usage(
        session, coupon_id=seed.coupon_id, customer_id=seed.customer_id, appointment_id=424242, discount_amount=0
    )
    assert isinstance(res.error, AppointmentNotFound)

    res = await redemption_ledger.record_usage(
        session, coupon_id=424242, customer_id=seed.customer_id, appointment_id=appointment.id, discount_amount=0
    )
    assert isinstance(res.error, CouponNotFound)

    res = await redemption_ledger.record_usage(
        session, coupon_id=seed.coupon_id, customer_id=seed.customer_id, appointment_id=appointment.id, discount_amount=-1
    )
    assert isinstance(res.error, InvalidAmount)

    assert await _usage_count(session) == 0
    assert await _flag(session, seed.customer_id) is False

from settlement.db.models import PartnerCommission
from settlement.services.errors import CommissionNotFound, InvalidDiscountRange, InvalidStatus, PartnerNotFound


async def test_partner_coupon_management(engine, seed):
    res = await engine.create_coupon(seed.partner_id, 20)
    assert res.ok
    assert res.value.code == "penguin20off"

    coupons = await engine.get_partner_coupons(seed.partner_id)
    assert [c.code for c in coupons] == ["penguin20off", "penguin10off"]

    assert isinstance((await engine.create_coupon(seed.customer_id, 10)).error, PartnerNotFound)
    assert isinstance((await engine.create_coupon(seed.partner_id, 150)).error, InvalidDiscountRange)
    # failed creations left nothing behind
    assert len(await engine.get_partner_coupons(seed.partner_id)) == 2

    assert (await engine.set_coupon_active(res.value.id, False)).ok
    assert await engine.get_coupon_by_code("penguin20off") is None
    assert (await engine.update_coupon_discount(seed.coupon_id, 12)).value.discount_percentage == 12

    quote = await engine.validate_and_price(seed.customer_id, 35000, "penguin10off")
    assert quote.value.discount_amount == 4200


async def test_coupon_stats_after_bookings(engine, seed):
    (await engine.settle_booking(seed.customer_id, seed.deep_clean_id, coupon_code=seed.coupon_code)).unwrap()
    (await engine.settle_booking(seed.customer2_id, seed.standard_id, coupon_code=seed.coupon_code)).unwrap()

    stats = await engine.get_coupon_stats(seed.partner_id)
    assert (stats.total_uses, stats.unique_customers, stats.completed_appointments) == (2, 2, 2)
    other = await engine.get_coupon_stats(seed.other_partner_id)
    assert other.total_uses == 0


async def test_partner_earnings_lifecycle(engine, seed):
    first = (await engine.settle_booking(seed.customer_id, seed.deep_clean_id, coupon_code=seed.coupon_code)).unwrap()
    second = (await engine.settle_booking(seed.customer2_id, seed.standard_id, coupon_code=seed.coupon_code)).unwrap()

    earnings = await engine.get_partner_earnings(seed.partner_id)
    assert (earnings.pending_count, earnings.pending_amount) == (2, 7000 + 3000)
    assert (earnings.paid_count, earnings.paid_amount) == (0, 0)

    assert (await engine.update_commission_status(first.commission_id, "paid")).ok
    earnings = await engine.get_partner_earnings(seed.partner_id)
    assert (earnings.pending_count, earnings.pending_amount) == (1, 3000)
    assert (earnings.paid_count, earnings.paid_amount) == (1, 7000)
    assert earnings.total_amount == 10000

    listed = await engine.list_partner_commissions(seed.partner_id)
    assert [c.id for c in listed] == [second.commission_id, first.commission_id]

    detail = (await engine.get_commission(first.commission_id)).unwrap()
    assert isinstance(detail, PartnerCommission)
    assert detail.status == "paid"

    assert isinstance((await engine.update_commission_status(first.commission_id, "void")).error, InvalidStatus)
    assert isinstance((await engine.get_commission(424242)).error, CommissionNotFound)

    overview = await engine.get_commission_overview()
    assert overview.total_count == 2


async def test_bulk_update_commits_successful_ids(engine, seed):
    first = (await engine.settle_booking(seed.customer_id, seed.deep_clean_id, coupon_code=seed.coupon_code)).unwrap()

    out = await engine.bulk_update_commission_status([first.commission_id, 424242], "paid")
    assert [o.success for o in out] == [True, False]

    earnings = await engine.get_partner_earnings(seed.partner_id, status="paid")
    assert earnings.paid_count == 1


async def test_list_commissions_across_partners(engine, seed):
    first = (await engine.settle_booking(seed.customer_id, seed.deep_clean_id, coupon_code=seed.coupon_code)).unwrap()
    second = (await engine.settle_booking(seed.customer2_id, seed.standard_id, coupon_code=seed.seal_coupon_code)).unwrap()

    listed = await engine.list_commissions()
    assert [c.id for c in listed] == [second.commission_id, first.commission_id]
    assert [c.partner_id for c in listed] == [seed.other_partner_id, seed.partner_id]
    assert [c.id for c in await engine.list_partner_commissions(seed.other_partner_id)] == [second.commission_id]

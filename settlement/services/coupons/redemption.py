from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.core.logging import error_extra
from settlement.core.time import utcnow
from settlement.db.models import Coupon, CouponUsage
from settlement.repo import get_appointment, get_user, set_has_used_coupon_if_unset
from settlement.services.errors import (AppointmentNotFound, CouponAlreadyUsed, CouponNotFound, CustomerNotFound,
                                        DuplicateRedemption, InvalidAmount, Result, fail, ok)

log = logging.getLogger(__name__)


class _FlagAlreadySet(Exception):
    """Raised inside the savepoint to undo the usage row."""


class RedemptionLedger:
    async def record_usage(
        self,
        session: AsyncSession,
        *,
        coupon_id: int,
        customer_id: int,
        appointment_id: int,
        discount_amount: int,
    ) -> Result[CouponUsage]:
        """Insert the usage row and flip the customer's lifetime flag, both or neither.

        The unique (coupon, customer) constraint and the conditional flag update are the
        real guards; whatever the eligibility check saw earlier may be stale by now.
        """
        if isinstance(discount_amount, bool) or not isinstance(discount_amount, int) or discount_amount < 0:
            return fail(InvalidAmount())
        if not await session.get(Coupon, coupon_id):
            return fail(CouponNotFound("Coupon not found"))
        if not await get_user(session, customer_id):
            return fail(CustomerNotFound())
        if not await get_appointment(session, appointment_id):
            return fail(AppointmentNotFound())

        usage = CouponUsage(
            coupon_id=coupon_id,
            customer_id=customer_id,
            appointment_id=appointment_id,
            discount_amount=discount_amount,
            used_at=utcnow(),
        )
        try:
            async with session.begin_nested():
                session.add(usage)
                await session.flush()
                if not await set_has_used_coupon_if_unset(session, customer_id):
                    raise _FlagAlreadySet()
        except IntegrityError:
            err = DuplicateRedemption()
            log.info(
                "coupon_redemption_duplicate coupon_id=%s customer_id=%s",
                coupon_id, customer_id,
                extra=error_extra(err, coupon_id=coupon_id, customer_id=customer_id),
            )
            return fail(err)
        except _FlagAlreadySet:
            err = CouponAlreadyUsed()
            log.info(
                "coupon_redemption_lost_race coupon_id=%s customer_id=%s",
                coupon_id, customer_id,
                extra=error_extra(err, coupon_id=coupon_id, customer_id=customer_id),
            )
            return fail(err)

        log.info(
            "coupon_redeemed coupon_id=%s customer_id=%s appointment_id=%s discount=%s",
            coupon_id, customer_id, appointment_id, discount_amount,
            extra={"coupon_id": coupon_id, "customer_id": customer_id, "appointment_id": appointment_id},
        )
        return ok(usage)


redemption_ledger = RedemptionLedger()

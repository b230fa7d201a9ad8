from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.core.logging import error_extra
from settlement.db.models import CouponUsage
from settlement.repo import get_user
from settlement.services.coupons.registry import coupon_registry
from settlement.services.errors import (CouponAlreadyUsed, CouponAlreadyUsedForThisCoupon, CouponNotFound,
                                        CustomerNotFound, Result, fail, ok)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EligibilityToken:
    """Proof that ``customer_id`` may redeem ``coupon_id`` as of the check.

    Advisory only: the redemption ledger re-checks at write time.
    """

    coupon_id: int
    code: str
    discount_percentage: int
    partner_id: int
    customer_id: int


class CouponEligibilityValidator:
    async def validate(self, session: AsyncSession, *, customer_id: int, code: str | None) -> Result[EligibilityToken]:
        """Checks, in order: customer exists, lifetime flag, code format, coupon active,
        no earlier redemption of this coupon by this customer.
        """
        customer = await get_user(session, customer_id)
        if not customer:
            return fail(CustomerNotFound())

        # one coupon per customer lifetime, whatever code is offered now
        if customer.has_used_coupon:
            err = CouponAlreadyUsed()
            log.info("coupon_rejected customer_id=%s", customer_id, extra=error_extra(err, customer_id=customer_id))
            return fail(err)

        fmt = coupon_registry.validate_format(code)
        if not fmt.valid:
            return fail(fmt.error)

        coupon = await coupon_registry.get_by_code(session, code, active_only=True)
        if not coupon:
            err = CouponNotFound()
            log.info("coupon_rejected code=%s customer_id=%s", code, customer_id, extra=error_extra(err, customer_id=customer_id))
            return fail(err)

        used = await session.scalar(
            select(CouponUsage.id)
            .where(CouponUsage.coupon_id == coupon.id, CouponUsage.customer_id == customer_id)
            .limit(1)
        )
        if used:
            err = CouponAlreadyUsedForThisCoupon()
            log.info(
                "coupon_rejected coupon_id=%s customer_id=%s",
                coupon.id, customer_id,
                extra=error_extra(err, customer_id=customer_id, coupon_id=coupon.id),
            )
            return fail(err)

        return ok(
            EligibilityToken(
                coupon_id=coupon.id,
                code=coupon.code,
                discount_percentage=int(coupon.discount_percentage),
                partner_id=coupon.partner_id,
                customer_id=customer_id,
            )
        )


eligibility_validator = CouponEligibilityValidator()

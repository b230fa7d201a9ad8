"""Booking settlement: eligibility -> pricing -> appointment -> redemption -> commission.

Everything here runs inside the caller's transaction. A failed step returns an error
result and leaves rollback to the caller; nothing is committed from this module.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement import repo
from settlement.core.logging import error_extra
from settlement.core.time import format_cents
from settlement.db.models import Appointment, CouponUsage
from settlement.services.commissions.service import commission_ledger
from settlement.services.coupons.eligibility import EligibilityToken, eligibility_validator
from settlement.services.coupons.redemption import redemption_ledger
from settlement.services.errors import (AppointmentAlreadySettled, AppointmentNotFound, PartialSettlementFailure,
                                        Result, ServiceNotFound, ValidationError, fail, ok)
from settlement.services.pricing.calculator import PricingBreakdown, price_booking

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    pricing: PricingBreakdown
    appointment_id: int
    commission_id: int | None = None
    coupon_usage_id: int | None = None


def _has_code(coupon_code: str | None) -> bool:
    return bool((coupon_code or "").strip())


class SettlementService:
    async def validate_and_price(
        self,
        session: AsyncSession,
        *,
        customer_id: int,
        original_price: int,
        coupon_code: str | None = None,
    ) -> Result[PricingBreakdown]:
        """Quote shown before payment. Writes nothing."""
        token = None
        if _has_code(coupon_code):
            res = await eligibility_validator.validate(session, customer_id=customer_id, code=coupon_code)
            if not res.ok:
                return fail(res.error)
            token = res.value
        return self._price(original_price, token)

    async def settle_booking(
        self,
        session: AsyncSession,
        *,
        customer_id: int,
        service_id: int,
        date: str | None = None,
        time: str | None = None,
        coupon_code: str | None = None,
    ) -> Result[SettlementResult]:
        """Create the appointment for a paid booking and settle its coupon, if any."""
        service = await repo.get_service(session, service_id)
        if not service or not service.active:
            return fail(ServiceNotFound())

        priced = await self.validate_and_price(
            session, customer_id=customer_id, original_price=int(service.price), coupon_code=coupon_code
        )
        if not priced.ok:
            return fail(priced.error)
        pricing = priced.value

        appt = await repo.create_appointment(
            session,
            user_id=customer_id,
            service_id=service_id,
            date=date,
            time=time,
            original_price=pricing.original_price,
            final_price=pricing.final_price,
            discount_amount=pricing.discount_amount,
            down_payment_amount=pricing.down_payment,
            coupon_id=pricing.coupon_id,
        )
        return await self._apply_coupon(session, customer_id=customer_id, appointment=appt, pricing=pricing)

    async def finalize_settlement(
        self,
        session: AsyncSession,
        *,
        customer_id: int,
        appointment_id: int,
        original_price: int,
        coupon_code: str | None = None,
    ) -> Result[SettlementResult]:
        """Settle an appointment that already exists (payment callback path)."""
        appt = await repo.get_appointment(session, appointment_id)
        if not appt or appt.user_id != customer_id:
            return fail(AppointmentNotFound())
        # recorded redemptions and commissions are final; repricing would orphan them
        if await self._has_settlement_records(session, appt):
            err = AppointmentAlreadySettled()
            log.info(
                "settlement_refused appointment_id=%s", appt.id,
                extra=error_extra(err, appointment_id=appt.id, customer_id=customer_id),
            )
            return fail(err)

        # re-validate: the quote may be stale by the time payment succeeds
        priced = await self.validate_and_price(
            session, customer_id=customer_id, original_price=original_price, coupon_code=coupon_code
        )
        if not priced.ok:
            return fail(priced.error)
        pricing = priced.value

        await repo.apply_appointment_pricing(
            session,
            appt,
            original_price=pricing.original_price,
            final_price=pricing.final_price,
            discount_amount=pricing.discount_amount,
            down_payment_amount=pricing.down_payment,
            coupon_id=pricing.coupon_id,
        )
        return await self._apply_coupon(session, customer_id=customer_id, appointment=appt, pricing=pricing)

    async def _has_settlement_records(self, session: AsyncSession, appointment: Appointment) -> bool:
        if appointment.coupon_id is not None:
            return True
        usage_id = await session.scalar(
            select(CouponUsage.id).where(CouponUsage.appointment_id == appointment.id).limit(1)
        )
        if usage_id is not None:
            return True
        return await commission_ledger.get_by_appointment(session, appointment.id) is not None

    def _price(self, original_price: int, token: EligibilityToken | None) -> Result[PricingBreakdown]:
        try:
            if token is None:
                return ok(price_booking(original_price))
            return ok(
                price_booking(
                    original_price,
                    discount_percentage=token.discount_percentage,
                    coupon_id=token.coupon_id,
                    coupon_code=token.code,
                    partner_id=token.partner_id,
                )
            )
        except ValidationError as e:
            return fail(e)

    async def _apply_coupon(
        self,
        session: AsyncSession,
        *,
        customer_id: int,
        appointment: Appointment,
        pricing: PricingBreakdown,
    ) -> Result[SettlementResult]:
        if not pricing.has_coupon:
            log.info(
                "settlement_done appointment_id=%s final=%s coupon=none",
                appointment.id, format_cents(pricing.final_price),
                extra={"appointment_id": appointment.id, "customer_id": customer_id},
            )
            return ok(SettlementResult(pricing=pricing, appointment_id=appointment.id))

        redeemed = await redemption_ledger.record_usage(
            session,
            coupon_id=pricing.coupon_id,
            customer_id=customer_id,
            appointment_id=appointment.id,
            discount_amount=pricing.discount_amount,
        )
        if not redeemed.ok:
            return fail(redeemed.error)

        # commission on the ORIGINAL price
        created = await commission_ledger.create_commission(
            session,
            partner_id=pricing.partner_id,
            appointment_id=appointment.id,
            original_price=pricing.original_price,
            coupon_id=pricing.coupon_id,
        )
        if not created.ok:
            log.error(
                "settlement_partial_failure appointment_id=%s coupon_id=%s",
                appointment.id, pricing.coupon_id,
                extra=error_extra(
                    created.error,
                    appointment_id=appointment.id,
                    customer_id=customer_id,
                    coupon_id=pricing.coupon_id,
                ),
            )
            return fail(
                PartialSettlementFailure(
                    f"Coupon was redeemed but the partner commission could not be created: {created.error.message}",
                    cause=created.error,
                )
            )

        log.info(
            "settlement_done appointment_id=%s final=%s coupon_id=%s commission_id=%s",
            appointment.id, format_cents(pricing.final_price), pricing.coupon_id, created.value.id,
            extra={"appointment_id": appointment.id, "customer_id": customer_id, "coupon_id": pricing.coupon_id},
        )
        return ok(
            SettlementResult(
                pricing=pricing,
                appointment_id=appointment.id,
                commission_id=created.value.id,
                coupon_usage_id=redeemed.value.id,
            )
        )


settlement_service = SettlementService()

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.core.config import settings
from settlement.core.logging import error_extra
from settlement.core.time import format_cents, utcnow
from settlement.db.models import PartnerCommission
from settlement.db.models.partner_commission import COMMISSION_STATUSES, STATUS_PAID, STATUS_PENDING
from settlement.repo import get_appointment, get_partner
from settlement.services.errors import (AppointmentNotFound, CommissionAlreadyExists, CommissionNotFound,
                                        InvalidStatus, InvalidStatusTransition, PartnerNotFound, Result,
                                        SettlementError, ValidationError, fail, ok)
from settlement.services.pricing import calculator

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EarningsSummary:
    pending_count: int = 0
    pending_amount: int = 0
    paid_count: int = 0
    paid_amount: int = 0

    @property
    def total_count(self) -> int:
        return self.pending_count + self.paid_count

    @property
    def total_amount(self) -> int:
        return self.pending_amount + self.paid_amount

    def as_dict(self) -> dict:
        return {
            "pending_count": self.pending_count,
            "pending_amount": self.pending_amount,
            "paid_count": self.paid_count,
            "paid_amount": self.paid_amount,
            "total_count": self.total_count,
            "total_amount": self.total_amount,
            "pending_amount_dollars": format_cents(self.pending_amount),
            "paid_amount_dollars": format_cents(self.paid_amount),
            "total_amount_dollars": format_cents(self.total_amount),
        }


@dataclass(frozen=True)
class StatusUpdateOutcome:
    commission_id: int
    success: bool
    error: SettlementError | None = field(default=None, compare=False)


class CommissionLedger:
    async def create_commission(
        self,
        session: AsyncSession,
        *,
        partner_id: int,
        appointment_id: int,
        original_price: int,
        percentage: int | None = None,
        coupon_id: int | None = None,
    ) -> Result[PartnerCommission]:
        """One commission per appointment, always on the pre-discount price."""
        pct = settings.commission_percent if percentage is None else percentage
        try:
            amount = calculator.commission(original_price, pct)
        except ValidationError as e:
            return fail(e)

        # fast path; the unique constraint on appointment_id is what actually guards it
        exists = await session.scalar(
            select(PartnerCommission.id).where(PartnerCommission.appointment_id == appointment_id).limit(1)
        )
        if exists:
            return fail(CommissionAlreadyExists())

        if not await get_partner(session, partner_id):
            return fail(PartnerNotFound())
        if not await get_appointment(session, appointment_id):
            return fail(AppointmentNotFound())

        row = PartnerCommission(
            partner_id=partner_id,
            appointment_id=appointment_id,
            coupon_id=coupon_id,
            original_service_price=original_price,
            commission_amount=amount,
            commission_percentage=pct,
            status=STATUS_PENDING,
            created_at=utcnow(),
            paid_at=None,
        )
        try:
            async with session.begin_nested():
                session.add(row)
                await session.flush()
        except IntegrityError:
            err = CommissionAlreadyExists()
            log.info("commission_duplicate appointment_id=%s", appointment_id, extra=error_extra(err, appointment_id=appointment_id))
            return fail(err)

        log.info(
            "commission_created id=%s partner_id=%s appointment_id=%s amount=%s",
            row.id, partner_id, appointment_id, format_cents(amount),
            extra={"partner_id": partner_id, "appointment_id": appointment_id, "commission_id": row.id},
        )
        return ok(row)

    async def get_commission(self, session: AsyncSession, commission_id: int) -> Result[PartnerCommission]:
        row = await session.get(PartnerCommission, commission_id)
        if not row:
            return fail(CommissionNotFound())
        return ok(row)

    async def get_by_appointment(self, session: AsyncSession, appointment_id: int) -> PartnerCommission | None:
        q = select(PartnerCommission).where(PartnerCommission.appointment_id == appointment_id).limit(1)
        return (await session.execute(q)).scalar_one_or_none()

    async def update_status(self, session: AsyncSession, commission_id: int, status: str) -> Result[PartnerCommission]:
        if status not in COMMISSION_STATUSES:
            return fail(InvalidStatus())
        row = await session.get(PartnerCommission, commission_id)
        if not row:
            return fail(CommissionNotFound())
        if row.status == status:
            return ok(row)
        if row.status == STATUS_PAID and status == STATUS_PENDING:
            return fail(InvalidStatusTransition())

        row.status = status
        row.paid_at = utcnow() if status == STATUS_PAID else None
        await session.flush()
        log.info(
            "commission_status_updated id=%s status=%s", commission_id, status,
            extra={"commission_id": commission_id, "partner_id": row.partner_id},
        )
        return ok(row)

    async def bulk_update_status(
        self,
        session: AsyncSession,
        commission_ids: list[int],
        status: str,
    ) -> list[StatusUpdateOutcome]:
        out: list[StatusUpdateOutcome] = []
        for cid in commission_ids:
            res = await self.update_status(session, cid, status)
            out.append(StatusUpdateOutcome(commission_id=cid, success=res.ok, error=res.error))
        return out

    async def list_by_partner(self, session: AsyncSession, partner_id: int) -> list[PartnerCommission]:
        """Newest first."""
        q = (
            select(PartnerCommission)
            .where(PartnerCommission.partner_id == partner_id)
            .order_by(PartnerCommission.created_at.desc(), PartnerCommission.id.desc())
        )
        return list((await session.scalars(q)).all())

    async def list_all(self, session: AsyncSession) -> list[PartnerCommission]:
        q = select(PartnerCommission).order_by(PartnerCommission.created_at.desc(), PartnerCommission.id.desc())
        return list((await session.scalars(q)).all())

    async def get_partner_earnings(
        self,
        session: AsyncSession,
        partner_id: int,
        *,
        status: str | None = None,
    ) -> EarningsSummary:
        """Counts and sums per status for one partner, read fresh every call."""
        return await self._earnings(session, partner_id=partner_id, status=status)

    async def overview(self, session: AsyncSession) -> EarningsSummary:
        """Same totals as get_partner_earnings, over all partners."""
        return await self._earnings(session)

    async def _earnings(
        self,
        session: AsyncSession,
        *,
        partner_id: int | None = None,
        status: str | None = None,
    ) -> EarningsSummary:
        q = select(
            PartnerCommission.status,
            func.count(PartnerCommission.id),
            func.coalesce(func.sum(PartnerCommission.commission_amount), 0),
        ).group_by(PartnerCommission.status)
        if partner_id is not None:
            q = q.where(PartnerCommission.partner_id == partner_id)
        if status is not None:
            q = q.where(PartnerCommission.status == status)

        counts = {STATUS_PENDING: (0, 0), STATUS_PAID: (0, 0)}
        for st, cnt, amount in (await session.execute(q)).all():
            if st in counts:
                counts[st] = (int(cnt or 0), int(amount or 0))
        return EarningsSummary(
            pending_count=counts[STATUS_PENDING][0],
            pending_amount=counts[STATUS_PENDING][1],
            paid_count=counts[STATUS_PAID][0],
            paid_amount=counts[STATUS_PAID][1],
        )


commission_ledger = CommissionLedger()

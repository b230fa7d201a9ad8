"""Public entry point of the settlement engine.

Each method runs in its own session: commit when the operation succeeds, roll back when
it returns an error or raises. Service code below never commits.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement.core.config import settings
from settlement.core.logging import setup_logging
from settlement.db.models import Coupon, PartnerCommission
from settlement.db.session import get_sessionmaker, init_engine, session_scope
from settlement.services.commissions.service import EarningsSummary, StatusUpdateOutcome, commission_ledger
from settlement.services.coupons.registry import CouponUsageStats, coupon_registry
from settlement.services.errors import Result
from settlement.services.pricing.calculator import PricingBreakdown
from settlement.services.settlement.service import SettlementResult, settlement_service

log = logging.getLogger(__name__)

T = TypeVar("T")


class SettlementEngine:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def _write(self, op: Callable[[AsyncSession], Awaitable[Result[T]]]) -> Result[T]:
        async with session_scope(self._sessionmaker) as session:
            res = await op(session)
            if res.ok:
                await session.commit()
            else:
                await session.rollback()
            return res

    async def _read(self, op: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with session_scope(self._sessionmaker) as session:
            return await op(session)

    # ---- pricing & settlement ------------------------------------------------
    async def validate_and_price(
        self, customer_id: int, service_original_price: int, coupon_code: str | None = None
    ) -> Result[PricingBreakdown]:
        return await self._read(
            lambda s: settlement_service.validate_and_price(
                s, customer_id=customer_id, original_price=service_original_price, coupon_code=coupon_code
            )
        )

    async def settle_booking(
        self,
        customer_id: int,
        service_id: int,
        *,
        date: str | None = None,
        time: str | None = None,
        coupon_code: str | None = None,
    ) -> Result[SettlementResult]:
        return await self._write(
            lambda s: settlement_service.settle_booking(
                s, customer_id=customer_id, service_id=service_id, date=date, time=time, coupon_code=coupon_code
            )
        )

    async def finalize_settlement(
        self,
        customer_id: int,
        appointment_id: int,
        service_original_price: int,
        coupon_code: str | None = None,
    ) -> Result[SettlementResult]:
        return await self._write(
            lambda s: settlement_service.finalize_settlement(
                s,
                customer_id=customer_id,
                appointment_id=appointment_id,
                original_price=service_original_price,
                coupon_code=coupon_code,
            )
        )

    # ---- coupons -------------------------------------------------------------
    async def create_coupon(self, partner_id: int, discount_percentage: int | None = None) -> Result[Coupon]:
        return await self._write(
            lambda s: coupon_registry.create_coupon(s, partner_id=partner_id, discount_percentage=discount_percentage)
        )

    async def get_partner_coupons(self, partner_id: int) -> list[Coupon]:
        return await self._read(lambda s: coupon_registry.list_by_partner(s, partner_id))

    async def get_coupon_by_code(self, code: str) -> Coupon | None:
        return await self._read(lambda s: coupon_registry.get_by_code(s, code, active_only=True))

    async def set_coupon_active(self, coupon_id: int, active: bool) -> Result[Coupon]:
        return await self._write(lambda s: coupon_registry.set_active(s, coupon_id, active))

    async def update_coupon_discount(self, coupon_id: int, discount_percentage: int) -> Result[Coupon]:
        return await self._write(lambda s: coupon_registry.update_discount(s, coupon_id, discount_percentage))

    async def get_coupon_stats(self, partner_id: int) -> CouponUsageStats:
        return await self._read(lambda s: coupon_registry.usage_stats(s, partner_id))

    # ---- commissions ---------------------------------------------------------
    async def get_partner_earnings(self, partner_id: int, status: str | None = None) -> EarningsSummary:
        return await self._read(lambda s: commission_ledger.get_partner_earnings(s, partner_id, status=status))

    async def get_commission_overview(self) -> EarningsSummary:
        return await self._read(commission_ledger.overview)

    async def list_partner_commissions(self, partner_id: int) -> list[PartnerCommission]:
        return await self._read(lambda s: commission_ledger.list_by_partner(s, partner_id))

    async def list_commissions(self) -> list[PartnerCommission]:
        """Admin view: every partner's commissions, newest first."""
        return await self._read(commission_ledger.list_all)

    async def get_commission(self, commission_id: int) -> Result[PartnerCommission]:
        return await self._read(lambda s: commission_ledger.get_commission(s, commission_id))

    async def update_commission_status(self, commission_id: int, status: str) -> Result[PartnerCommission]:
        return await self._write(lambda s: commission_ledger.update_status(s, commission_id, status))

    async def bulk_update_commission_status(self, commission_ids: list[int], status: str) -> list[StatusUpdateOutcome]:
        # each id is independent: a bad id does not undo the others
        async with session_scope(self._sessionmaker) as session:
            out = await commission_ledger.bulk_update_status(session, commission_ids, status)
            await session.commit()
        log.info(
            "commission_bulk_update status=%s ok=%s failed=%s",
            status, sum(1 for o in out if o.success), sum(1 for o in out if not o.success),
        )
        return out


def bootstrap() -> SettlementEngine:
    """Process-wide setup: JSON logging + engine from DATABASE_URL."""
    setup_logging()
    init_engine(settings.database_url, echo=settings.db_echo)
    return SettlementEngine(get_sessionmaker())

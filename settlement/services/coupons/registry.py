from __future__ import annotations

import logging
import re
import secrets
import string
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.core.config import settings
from settlement.core.time import utcnow
from settlement.db.models import Coupon, CouponUsage
from settlement.repo import get_partner
from settlement.services.errors import (CodeCollision, CouponNotFound, InvalidCouponFormat,
                                        InvalidDiscountRange, PartnerNotFound, Result, fail, ok)

log = logging.getLogger(__name__)

# word token by first letter of the partner's first name
ANIMALS = {
    "A": "alpaca", "B": "bear", "C": "cat", "D": "dolphin", "E": "elephant",
    "F": "fox", "G": "giraffe", "H": "hippo", "I": "iguana", "J": "jaguar",
    "K": "koala", "L": "lion", "M": "monkey", "N": "narwhal", "O": "otter",
    "P": "penguin", "Q": "quail", "R": "rabbit", "S": "seal", "T": "tiger",
    "U": "unicorn", "V": "vulture", "W": "whale", "X": "xerus", "Y": "yak", "Z": "zebra",
}
FALLBACK_ANIMAL = "panda"

CODE_RE = re.compile(r"^([a-z]+)(\d{1,3})off$")
SUFFIX_LEN = 3


def normalize_code(code: str | None) -> str:
    return (code or "").strip().lower()


def generate_coupon_code(first_name: str | None, discount_percentage: int) -> str:
    """'Paula', 10 -> 'penguin10off'."""
    letter = (first_name or "").strip()[:1].upper()
    animal = ANIMALS.get(letter, FALLBACK_ANIMAL)
    return f"{animal}{int(discount_percentage)}off"


def _with_random_suffix(code: str) -> str:
    m = CODE_RE.match(code)
    word, pct = m.group(1), m.group(2)
    suffix = "".join(secrets.choice(string.ascii_lowercase) for _ in range(SUFFIX_LEN))
    return f"{word}{suffix}{pct}off"


@dataclass(frozen=True)
class CodeFormat:
    valid: bool
    discount: int | None = None
    error: InvalidCouponFormat | InvalidDiscountRange | None = None


@dataclass(frozen=True)
class CouponUsageStats:
    total_uses: int = 0
    unique_customers: int = 0
    completed_appointments: int = 0


def _check_discount(discount_percentage) -> InvalidDiscountRange | None:
    if isinstance(discount_percentage, bool) or not isinstance(discount_percentage, int):
        return InvalidDiscountRange()
    if not 1 <= discount_percentage <= 100:
        return InvalidDiscountRange()
    return None


class CouponRegistry:
    def validate_format(self, code: str | None) -> CodeFormat:
        code = normalize_code(code)
        if not code:
            return CodeFormat(False, error=InvalidCouponFormat("Coupon code is required"))
        m = CODE_RE.match(code)
        if not m:
            return CodeFormat(False, error=InvalidCouponFormat())
        discount = int(m.group(2))
        if not 1 <= discount <= 100:
            return CodeFormat(False, error=InvalidDiscountRange())
        return CodeFormat(True, discount=discount)

    async def create_coupon(
        self,
        session: AsyncSession,
        *,
        partner_id: int,
        discount_percentage: int | None = None,
    ) -> Result[Coupon]:
        """Create a coupon for a partner (or by an admin on the partner's behalf)."""
        if discount_percentage is None:
            discount_percentage = settings.coupon_default_discount
        err = _check_discount(discount_percentage)
        if err:
            return fail(err)

        partner = await get_partner(session, partner_id)
        if not partner:
            return fail(PartnerNotFound())

        base = generate_coupon_code(partner.first_name, discount_percentage)
        for attempt in range(settings.coupon_code_attempts):
            code = base if attempt == 0 else _with_random_suffix(base)
            exists = await session.scalar(select(Coupon.id).where(Coupon.code == code).limit(1))
            if exists:
                continue

            now = utcnow()
            coupon = Coupon(
                partner_id=partner_id,
                code=code,
                discount_percentage=discount_percentage,
                active=True,
                created_at=now,
                updated_at=now,
            )
            try:
                async with session.begin_nested():
                    session.add(coupon)
                    await session.flush()
            except IntegrityError:
                # lost a race for the same code; try another one
                log.info("coupon_code_taken code=%s", code)
                continue

            log.info(
                "coupon_created id=%s code=%s partner_id=%s discount=%s",
                coupon.id, code, partner_id, discount_percentage,
                extra={"partner_id": partner_id, "coupon_id": coupon.id},
            )
            return ok(coupon)

        log.warning("coupon_code_exhausted base=%s partner_id=%s", base, partner_id)
        return fail(CodeCollision())

    async def get(self, session: AsyncSession, coupon_id: int) -> Coupon | None:
        return await session.get(Coupon, coupon_id)

    async def get_by_code(self, session: AsyncSession, code: str | None, *, active_only: bool = False) -> Coupon | None:
        code = normalize_code(code)
        if not code:
            return None
        q = select(Coupon).where(Coupon.code == code)
        if active_only:
            q = q.where(Coupon.active == True)  # noqa: E712
        res = await session.execute(q.limit(1))
        return res.scalar_one_or_none()

    async def list_by_partner(self, session: AsyncSession, partner_id: int) -> list[Coupon]:
        """Newest first."""
        q = (
            select(Coupon)
            .where(Coupon.partner_id == partner_id)
            .order_by(Coupon.created_at.desc(), Coupon.id.desc())
        )
        return list((await session.scalars(q)).all())

    async def set_active(self, session: AsyncSession, coupon_id: int, active: bool) -> Result[Coupon]:
        coupon = await session.get(Coupon, coupon_id)
        if not coupon:
            return fail(CouponNotFound("Coupon not found"))
        if coupon.active != bool(active):
            coupon.active = bool(active)
            coupon.updated_at = utcnow()
            await session.flush()
            log.info("coupon_active_changed id=%s active=%s", coupon_id, coupon.active, extra={"coupon_id": coupon_id})
        return ok(coupon)

    async def update_discount(self, session: AsyncSession, coupon_id: int, discount_percentage: int) -> Result[Coupon]:
        """The code keeps its original text; the stored percentage is what gets applied."""
        err = _check_discount(discount_percentage)
        if err:
            return fail(err)
        coupon = await session.get(Coupon, coupon_id)
        if not coupon:
            return fail(CouponNotFound("Coupon not found"))
        coupon.discount_percentage = discount_percentage
        coupon.updated_at = utcnow()
        await session.flush()
        log.info("coupon_discount_changed id=%s discount=%s", coupon_id, discount_percentage, extra={"coupon_id": coupon_id})
        return ok(coupon)

    async def usage_stats(self, session: AsyncSession, partner_id: int) -> CouponUsageStats:
        q = (
            select(
                func.count(CouponUsage.id),
                func.count(CouponUsage.customer_id.distinct()),
                func.count(CouponUsage.appointment_id),
            )
            .select_from(Coupon)
            .outerjoin(CouponUsage, CouponUsage.coupon_id == Coupon.id)
            .where(Coupon.partner_id == partner_id)
        )
        total, unique, completed = (await session.execute(q)).one()
        return CouponUsageStats(
            total_uses=int(total or 0),
            unique_customers=int(unique or 0),
            completed_appointments=int(completed or 0),
        )


coupon_registry = CouponRegistry()

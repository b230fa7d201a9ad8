"""Appointment and user store.

The booking flow owns these aggregates; the settlement engine reads them and writes
pricing fields into appointments through the functions below.
"""
from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.models import Appointment, ServiceOffering, User
from settlement.db.models.user import ROLE_CUSTOMER, ROLE_PARTNER

log = logging.getLogger(__name__)


async def get_user(session: AsyncSession, user_id: int) -> User | None:
    return await session.get(User, user_id)


async def get_partner(session: AsyncSession, partner_id: int) -> User | None:
    q = select(User).where(User.id == partner_id, User.role == ROLE_PARTNER).limit(1)
    res = await session.execute(q)
    return res.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    *,
    email: str,
    first_name: str | None = None,
    last_name: str | None = None,
    role: str = ROLE_CUSTOMER,
) -> User:
    user = User(
        email=email.strip().lower(),
        first_name=(first_name or None),
        last_name=(last_name or None),
        role=role,
        has_used_coupon=False,
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


async def set_has_used_coupon_if_unset(session: AsyncSession, user_id: int) -> bool:
    """Atomically flip users.has_used_coupon false -> true.

    Returns False when the flag was already set (or the user is gone): the caller lost
    the race and must not record a redemption.
    """
    stmt = (
        update(User)
        .where(User.id == user_id, User.has_used_coupon == False)  # noqa: E712
        .values(has_used_coupon=True)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def get_service(session: AsyncSession, service_id: int) -> ServiceOffering | None:
    return await session.get(ServiceOffering, service_id)


async def create_service(session: AsyncSession, *, name: str, price: int) -> ServiceOffering:
    svc = ServiceOffering(name=name, price=int(price), active=True)
    session.add(svc)
    await session.flush()
    await session.refresh(svc)
    return svc


async def get_appointment(session: AsyncSession, appointment_id: int) -> Appointment | None:
    return await session.get(Appointment, appointment_id)


async def create_appointment(
    session: AsyncSession,
    *,
    user_id: int,
    service_id: int | None,
    original_price: int,
    final_price: int | None = None,
    discount_amount: int = 0,
    down_payment_amount: int | None = None,
    coupon_id: int | None = None,
    date: str | None = None,
    time: str | None = None,
    status: str = "pending",
) -> Appointment:
    appt = Appointment(
        user_id=user_id,
        service_id=service_id,
        date=date,
        time=time,
        status=status,
        original_price=int(original_price),
        final_price=final_price,
        discount_amount=int(discount_amount),
        down_payment_amount=down_payment_amount,
        coupon_id=coupon_id,
    )
    session.add(appt)
    await session.flush()
    await session.refresh(appt)
    log.info("appointment_created id=%s user_id=%s", appt.id, user_id, extra={"appointment_id": appt.id})
    return appt


async def apply_appointment_pricing(
    session: AsyncSession,
    appointment: Appointment,
    *,
    original_price: int,
    final_price: int,
    discount_amount: int,
    down_payment_amount: int,
    coupon_id: int | None,
) -> Appointment:
    appointment.original_price = int(original_price)
    appointment.final_price = int(final_price)
    appointment.discount_amount = int(discount_amount)
    appointment.down_payment_amount = int(down_payment_amount)
    appointment.coupon_id = coupon_id
    await session.flush()
    return appointment

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from settlement.db.base import Base

STATUS_PENDING = "pending"
STATUS_PAID = "paid"
COMMISSION_STATUSES = (STATUS_PENDING, STATUS_PAID)


class PartnerCommission(Base):
    """Partner earning for one referred appointment."""

    __tablename__ = "partner_commissions"
    __table_args__ = (UniqueConstraint("appointment_id", name="uq_partner_commissions_appointment"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    partner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    appointment_id: Mapped[int] = mapped_column(ForeignKey("appointments.id"), nullable=False)
    # only set for coupon-driven commissions
    coupon_id: Mapped[int | None] = mapped_column(ForeignKey("coupons.id"), index=True, nullable=True)

    # snapshot, cents; commission is computed on the pre-discount price
    original_service_price: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_percentage: Mapped[int] = mapped_column(Integer, server_default="20", nullable=False)

    # pending -> paid
    status: Mapped[str] = mapped_column(String(16), server_default=STATUS_PENDING, index=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

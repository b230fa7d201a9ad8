from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from settlement.db.base import Base


class CouponUsage(Base):
    """Immutable redemption record. Written together with users.has_used_coupon."""

    __tablename__ = "coupon_usage"
    __table_args__ = (UniqueConstraint("coupon_id", "customer_id", name="uq_coupon_usage_coupon_customer"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    coupon_id: Mapped[int] = mapped_column(ForeignKey("coupons.id"), index=True, nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    appointment_id: Mapped[int] = mapped_column(ForeignKey("appointments.id"), index=True, nullable=False)

    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

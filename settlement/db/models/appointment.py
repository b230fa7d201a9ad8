from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from settlement.db.base import Base


class Appointment(Base):
    """Booked appointment.

    Owned by the booking flow; the settlement engine only writes the pricing snapshot
    (original/final price, discount, down payment, coupon reference).
    """

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    service_id: Mapped[int | None] = mapped_column(ForeignKey("services.id"), index=True, nullable=True)

    # opaque slot, e.g. "2026-03-14" / "10:30"
    date: Mapped[str | None] = mapped_column(String(16), nullable=True)
    time: Mapped[str | None] = mapped_column(String(16), nullable=True)

    # pending -> confirmed -> completed | cancelled
    status: Mapped[str] = mapped_column(String(16), server_default="pending", nullable=False)

    # pricing snapshot, cents
    original_price: Mapped[int] = mapped_column(Integer, nullable=False)
    final_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    discount_amount: Mapped[int] = mapped_column(Integer, server_default="0", default=0, nullable=False)
    down_payment_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)

    coupon_id: Mapped[int | None] = mapped_column(ForeignKey("coupons.id"), index=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, func, true
from sqlalchemy.orm import Mapped, mapped_column

from settlement.db.base import Base


class Coupon(Base):
    """Partner referral code, e.g. ``penguin10off``.

    Deactivated instead of deleted. Only ``active`` and ``discount_percentage``
    change after creation.
    """

    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint(
            "discount_percentage >= 1 AND discount_percentage <= 100",
            name="ck_coupons_discount_percentage",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    partner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    discount_percentage: Mapped[int] = mapped_column(Integer, server_default="10", nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, server_default=true(), default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

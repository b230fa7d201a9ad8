from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, false, func
from sqlalchemy.orm import Mapped, mapped_column

from settlement.db.base import Base

ROLE_CUSTOMER = "customer"
ROLE_PARTNER = "partner"
ROLE_ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # customer | partner | admin
    role: Mapped[str] = mapped_column(String(16), server_default=ROLE_CUSTOMER, nullable=False)

    # One coupon per customer lifetime. Flipped false -> true only by the redemption ledger.
    has_used_coupon: Mapped[bool] = mapped_column(Boolean, server_default=false(), default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

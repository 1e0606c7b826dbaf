"""Professional payout ledger, one row per completed booking."""

from datetime import datetime
from enum import Enum
from typing import Optional

import ulid
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class ProfessionalPayout(Base):
    __tablename__ = "professional_payouts"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("bookings.id"), unique=True, nullable=False
    )
    professional_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("profiles.id"), nullable=False, index=True
    )
    gross_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    share_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PayoutStatus.PENDING.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("amount >= 0 AND amount <= gross_amount", name="ck_payouts_amount_range"),
        CheckConstraint("share_percent BETWEEN 0 AND 100", name="ck_payouts_share_range"),
    )

    def __repr__(self) -> str:
        return f"<ProfessionalPayout booking={self.booking_id} amount={self.amount}>"

"""
Payment model for gateway settlement attempts.

A booking accumulates one Payment row per settlement attempt. At most one
attempt may be open (``created`` or ``authorized``) at a time; a retry first
marks the stale row ``failed``.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

import ulid
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import Base

if TYPE_CHECKING:
    from .booking import Booking


class PaymentStatus(str, Enum):
    CREATED = "created"
    AUTHORIZED = "authorized"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


OPEN_PAYMENT_STATUSES = (PaymentStatus.CREATED.value, PaymentStatus.AUTHORIZED.value)


class Payment(Base):
    """One settlement attempt for a booking."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("bookings.id"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False, comment="Amount in minor units")
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.CREATED.value
    )

    gateway_order_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    gateway_payment_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    signature: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Set when a captured payment could not be applied to its booking
    refund_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    refund_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gateway_refund_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")

    __table_args__ = (
        CheckConstraint(
            "status IN ('created', 'authorized', 'completed', 'failed', 'refunded')",
            name="ck_payments_status",
        ),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            "refund_amount IS NULL OR (refund_amount > 0 AND refund_amount <= amount)",
            name="ck_payments_refund_amount_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Payment(booking_id={self.booking_id}, amount={self.amount}, status={self.status})>"

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_PAYMENT_STATUSES


Index(
    "uq_payments_one_open_per_booking",
    Payment.booking_id,
    unique=True,
    postgresql_where=Payment.status.in_(OPEN_PAYMENT_STATUSES),
    sqlite_where=Payment.status.in_(OPEN_PAYMENT_STATUSES),
)

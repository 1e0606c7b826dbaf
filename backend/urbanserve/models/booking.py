# backend/urbanserve/models/booking.py
"""
Booking model.

A booking is created in ``pending`` with a price snapshot taken from the
catalog, and is never physically deleted: cancellation and refund are
terminal statuses. Status changes go through the booking state machine's
conditional update, never through ad hoc attribute writes.
"""

from enum import Enum
import logging
from typing import Any

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from ..domain.assignment import Assignment, assignment_from

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Created, awaiting payment / assignment
    CONFIRMED = "confirmed"  # Paid (or admin-confirmed) and assigned
    IN_PROGRESS = "in_progress"  # Professional on site
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"  # Cancelled and money returned


ASSIGNED_STATUSES = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED}
)


class Booking(Base):
    """Scheduled service engagement between a customer and a professional."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # References
    customer_id = Column(String(26), ForeignKey("profiles.id"), nullable=False, index=True)
    professional_id = Column(String(26), ForeignKey("profiles.id"), nullable=True, index=True)
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False)
    professional_service_id = Column(
        String(26), ForeignKey("professional_services.id"), nullable=True
    )
    address_id = Column(String(26), nullable=False)

    # Scheduling
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    # Money snapshot (minor currency units)
    total_amount = Column(Integer, nullable=False)
    service_fee = Column(Integer, nullable=False, default=0)
    discount_amount = Column(Integer, nullable=False, default=0)
    final_amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="INR")

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation tracking
    cancelled_by_id = Column(String(26), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    customer = relationship("Profile", foreign_keys=[customer_id])
    professional = relationship("Profile", foreign_keys=[professional_id])
    service = relationship("Service")
    payments = relationship("Payment", back_populates="booking", order_by="Payment.created_at")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'refunded')",
            name="ck_bookings_status",
        ),
        CheckConstraint("total_amount >= 0", name="ck_bookings_total_non_negative"),
        CheckConstraint("service_fee >= 0", name="ck_bookings_fee_non_negative"),
        CheckConstraint("discount_amount >= 0", name="ck_bookings_discount_non_negative"),
        CheckConstraint("final_amount >= 0", name="ck_bookings_final_non_negative"),
        CheckConstraint(
            "final_amount = total_amount + service_fee - discount_amount",
            name="ck_bookings_final_amount_identity",
        ),
        CheckConstraint("duration_minutes > 0", name="ck_bookings_duration_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: customer={self.customer_id}, "
            f"professional={self.professional_id}, status={self.status}, "
            f"final_amount={self.final_amount}>"
        )

    @property
    def assignment(self) -> Assignment:
        return assignment_from(self.professional_id)

    @property
    def is_pending(self) -> bool:
        return self.status == BookingStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and audit details."""
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "professional_id": self.professional_id,
            "service_id": self.service_id,
            "status": self.status,
            "final_amount": self.final_amount,
            "currency": self.currency,
            "scheduled_at": self.scheduled_at.isoformat() if self.scheduled_at else None,
        }


Index("ix_bookings_customer_status", Booking.customer_id, Booking.status)

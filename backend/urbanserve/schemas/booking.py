# backend/urbanserve/schemas/booking.py
"""
Booking schemas.

All money fields are integers in minor currency units.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ..models.booking import BookingStatus
from ._strict_base import StrictModel, StrictRequestModel


class PriceQuote(StrictRequestModel):
    """Price the customer saw when booking; re-checked against the catalog."""

    total_amount: int = Field(..., ge=0, description="Service price in minor units")
    service_fee: Optional[int] = Field(default=None, ge=0, description="Admin-only fee override")
    discount_amount: int = Field(default=0, ge=0, description="Admin-only discount")


class BookingCreate(StrictRequestModel):
    """Schema for creating a booking."""

    customer_id: Optional[str] = Field(
        default=None, description="Defaults to the caller; admins may book for a customer"
    )
    service_id: str = Field(..., min_length=1)
    professional_id: Optional[str] = None
    address_id: str = Field(..., min_length=1)
    scheduled_at: datetime
    price: Optional[PriceQuote] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class BookingTransitionRequest(StrictRequestModel):
    target_status: BookingStatus
    expected_status: Optional[BookingStatus] = Field(
        default=None, description="Status the caller last observed; mismatch yields 409"
    )
    reason: Optional[str] = Field(default=None, max_length=500)


class BookingCancel(StrictRequestModel):
    """Schema for cancelling a booking."""

    reason: str = Field(..., min_length=1, max_length=500, description="Cancellation reason")

    @field_validator("reason")
    @classmethod
    def clean_reason(cls, v: str) -> str:
        """Ensure reason is not empty."""
        v = v.strip()
        if not v:
            raise ValueError("Cancellation reason cannot be empty")
        return v


class BookingResponse(StrictModel):
    id: str
    customer_id: str
    professional_id: Optional[str] = None
    service_id: str
    professional_service_id: Optional[str] = None
    address_id: str
    scheduled_at: datetime
    duration_minutes: int
    status: BookingStatus

    total_amount: int
    service_fee: int
    discount_amount: int
    final_amount: int
    currency: str

    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by_id: Optional[str] = None
    cancellation_reason: Optional[str] = None


class BookingListResponse(StrictModel):
    items: list[BookingResponse]
    total: int

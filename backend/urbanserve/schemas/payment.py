# backend/urbanserve/schemas/payment.py
"""
Payment request and response schemas.

The verify request mirrors the gateway's checkout callback fields.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ..models.booking import BookingStatus
from ..models.payment import PaymentStatus
from ._strict_base import StrictModel, StrictRequestModel

# ========== Request Models ==========


class PaymentIntentRequest(StrictRequestModel):
    booking_id: str = Field(..., min_length=1, description="Booking to pay for")


class PaymentVerifyRequest(StrictRequestModel):
    """Checkout callback as relayed by the client."""

    booking_id: str = Field(..., min_length=1)
    gateway_order_id: str = Field(..., min_length=1, description="Gateway order id")
    gateway_payment_id: str = Field(..., min_length=1, description="Gateway payment id")
    signature: str = Field(..., min_length=1, description="HMAC-SHA256 hex of order_id|payment_id")


class RefundRequest(StrictRequestModel):
    amount: int = Field(..., gt=0, description="Refund amount in minor units")
    reason: str = Field(..., min_length=1, max_length=500)


# ========== Response Models ==========


class PaymentIntentResponse(StrictModel):
    payment_id: str
    booking_id: str
    gateway_order_id: str
    amount: int
    currency: str
    key_id: str


class PaymentResponse(StrictModel):
    id: str
    booking_id: str
    amount: int
    currency: str
    status: PaymentStatus
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    failure_reason: Optional[str] = None
    refund_required: bool = False
    refund_amount: Optional[int] = None
    refund_reason: Optional[str] = None
    gateway_refund_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None


class PaymentVerifyResponse(StrictModel):
    booking_id: str
    booking_status: BookingStatus
    payment: PaymentResponse
    booking_confirmed: bool
    refund_required: bool
    replayed: bool = False


class WebhookAck(StrictModel):
    event: str
    status: str

# backend/urbanserve/schemas/admin.py
"""Admin override, audit log and payout schemas."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from ..models.booking import BookingStatus
from ._strict_base import StrictModel, StrictRequestModel


class AssignProfessionalRequest(StrictRequestModel):
    professional_id: str = Field(..., min_length=1)


class ForceStatusRequest(StrictRequestModel):
    target_status: BookingStatus
    expected_status: Optional[BookingStatus] = None
    reason: Optional[str] = Field(default=None, max_length=500)


class AdminNoteRequest(StrictRequestModel):
    """Optional free-text note attached to a user action."""

    note: Optional[str] = Field(default=None, max_length=500)


class ProfileResponse(StrictModel):
    id: str
    role: str
    full_name: str
    is_active: bool
    is_verified: bool


class AdminActionResponse(StrictModel):
    id: str
    actor_id: str
    action_type: str
    target_type: str
    target_id: str
    description: str
    details: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class AuditLogResponse(StrictModel):
    items: list[AdminActionResponse]
    total: int
    limit: int
    offset: int


class PayoutResponse(StrictModel):
    id: str
    booking_id: str
    professional_id: str
    gross_amount: int
    share_percent: int
    amount: int
    currency: str
    status: str
    created_at: Optional[datetime] = None

# backend/urbanserve/services/__init__.py
"""
Service layer for the booking and settlement engine.

Services own transactions and business rules; repositories only flush.
"""

from .admin_override_service import AdminOverrideService
from .assignment_validator import AssignmentCheck, AssignmentValidator
from .audit_service import AuditService
from .base import BaseService
from .booking_state_machine import BookingStateMachine
from .cancellation_service import CancellationService
from .payment_settlement_service import (
    PaymentIntent,
    PaymentSettlementService,
    SettlementResult,
)
from .payout_service import PayoutService
from .pricing_service import PriceBreakdown, PriceSnapshot, compute_breakdown, professional_share

__all__ = [
    "AdminOverrideService",
    "AssignmentCheck",
    "AssignmentValidator",
    "AuditService",
    "BaseService",
    "BookingStateMachine",
    "CancellationService",
    "PaymentIntent",
    "PaymentSettlementService",
    "PayoutService",
    "PriceBreakdown",
    "PriceSnapshot",
    "SettlementResult",
    "compute_breakdown",
    "professional_share",
]

# backend/urbanserve/models/__init__.py
"""
Database models.

Importing this package registers every table on ``Base.metadata``.
"""

from .admin_action import AdminAction, AdminActionType
from .booking import ASSIGNED_STATUSES, Booking, BookingStatus
from .payment import OPEN_PAYMENT_STATUSES, Payment, PaymentStatus
from .payout import PayoutStatus, ProfessionalPayout
from .service_catalog import ProfessionalService, Service
from .user import Profile

__all__ = [
    "ASSIGNED_STATUSES",
    "AdminAction",
    "AdminActionType",
    "Booking",
    "BookingStatus",
    "OPEN_PAYMENT_STATUSES",
    "Payment",
    "PaymentStatus",
    "PayoutStatus",
    "ProfessionalPayout",
    "ProfessionalService",
    "Profile",
    "Service",
]

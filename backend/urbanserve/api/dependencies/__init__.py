# backend/urbanserve/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_actor, require_admin
from .database import get_db
from .services import (
    get_admin_override_service,
    get_audit_service,
    get_booking_state_machine,
    get_cancellation_service,
    get_payment_gateway,
    get_payment_settlement_service,
    get_payout_service,
)

__all__ = [
    # Auth
    "get_current_actor",
    "require_admin",
    # Database
    "get_db",
    # Services
    "get_admin_override_service",
    "get_audit_service",
    "get_booking_state_machine",
    "get_cancellation_service",
    "get_payment_gateway",
    "get_payment_settlement_service",
    "get_payout_service",
]

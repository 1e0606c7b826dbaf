# backend/urbanserve/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...integrations import PaymentGatewayClient, build_payment_gateway_client
from ...services.admin_override_service import AdminOverrideService
from ...services.audit_service import AuditService
from ...services.booking_state_machine import BookingStateMachine
from ...services.cancellation_service import CancellationService
from ...services.payment_settlement_service import PaymentSettlementService
from ...services.payout_service import PayoutService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGatewayClient:
    """Get the process-wide payment gateway client."""
    client = build_payment_gateway_client()
    logger.info("Payment gateway client initialised: %s", type(client).__name__)
    return client


def get_booking_state_machine(db: Session = Depends(get_db)) -> BookingStateMachine:
    return BookingStateMachine(db)


def get_cancellation_service(
    db: Session = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
) -> CancellationService:
    return CancellationService(db, gateway)


def get_payment_settlement_service(
    db: Session = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
) -> PaymentSettlementService:
    return PaymentSettlementService(db, gateway)


def get_admin_override_service(
    db: Session = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
) -> AdminOverrideService:
    return AdminOverrideService(db, gateway)


def get_audit_service(db: Session = Depends(get_db)) -> AuditService:
    return AuditService(db)


def get_payout_service(db: Session = Depends(get_db)) -> PayoutService:
    return PayoutService(db)

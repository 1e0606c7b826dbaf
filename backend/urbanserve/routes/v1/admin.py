# backend/urbanserve/routes/v1/admin.py
"""
Admin routes - API v1

Every mutating endpoint writes one admin action in the same transaction
as the change it describes.

Endpoints:
    POST /bookings/{booking_id}/assign - Assign a professional and confirm
    POST /bookings/{booking_id}/status - Force a status transition
    POST /payments/{payment_id}/refund - Refund a captured payment
    POST /professionals/{user_id}/approve - Verify a professional
    POST /professionals/{user_id}/reject - Reject a professional
    POST /users/{user_id}/suspend - Suspend an account
    POST /users/{user_id}/activate - Re-activate an account
    GET /audit-log - Query the admin action log
"""

import asyncio
from datetime import datetime
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...api.dependencies import get_admin_override_service, require_admin
from ...core.actor import Actor
from ...core.exceptions import DomainException
from ...schemas.admin import (
    AdminActionResponse,
    AdminNoteRequest,
    AssignProfessionalRequest,
    AuditLogResponse,
    ForceStatusRequest,
    ProfileResponse,
)
from ...schemas.booking import BookingResponse
from ...schemas.payment import PaymentResponse, RefundRequest
from ...services.admin_override_service import AdminOverrideService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _note(payload: Optional[AdminNoteRequest]) -> Optional[str]:
    return payload.note if payload is not None else None


# ============================================================================
# Bookings and payments
# ============================================================================


@router.post("/bookings/{booking_id}/assign", response_model=BookingResponse)
async def assign_professional(
    booking_id: str,
    payload: AssignProfessionalRequest,
    admin: Actor = Depends(require_admin),
    admin_service: AdminOverrideService = Depends(get_admin_override_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            admin_service.assign_professional, booking_id, payload.professional_id, admin
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bookings/{booking_id}/status", response_model=BookingResponse)
async def force_booking_status(
    booking_id: str,
    payload: ForceStatusRequest,
    admin: Actor = Depends(require_admin),
    admin_service: AdminOverrideService = Depends(get_admin_override_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            admin_service.force_transition,
            booking_id,
            payload.target_status,
            admin,
            reason=payload.reason,
            expected_status=payload.expected_status,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/payments/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: str,
    payload: RefundRequest,
    admin: Actor = Depends(require_admin),
    admin_service: AdminOverrideService = Depends(get_admin_override_service),
) -> PaymentResponse:
    try:
        payment = await asyncio.to_thread(
            admin_service.issue_refund, payment_id, payload.amount, payload.reason, admin
        )
        return PaymentResponse.model_validate(payment)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# Users
# ============================================================================


@router.post("/professionals/{user_id}/approve", response_model=ProfileResponse)
async def approve_professional(
    user_id: str,
    payload: Optional[AdminNoteRequest] = None,
    admin: Actor = Depends(require_admin),
    admin_service: AdminOverrideService = Depends(get_admin_override_service),
) -> ProfileResponse:
    try:
        profile = await asyncio.to_thread(
            admin_service.approve_professional, user_id, admin, _note(payload)
        )
        return ProfileResponse.model_validate(profile)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/professionals/{user_id}/reject", response_model=ProfileResponse)
async def reject_professional(
    user_id: str,
    payload: Optional[AdminNoteRequest] = None,
    admin: Actor = Depends(require_admin),
    admin_service: AdminOverrideService = Depends(get_admin_override_service),
) -> ProfileResponse:
    try:
        profile = await asyncio.to_thread(
            admin_service.reject_professional, user_id, admin, _note(payload)
        )
        return ProfileResponse.model_validate(profile)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/users/{user_id}/suspend", response_model=ProfileResponse)
async def suspend_user(
    user_id: str,
    payload: Optional[AdminNoteRequest] = None,
    admin: Actor = Depends(require_admin),
    admin_service: AdminOverrideService = Depends(get_admin_override_service),
) -> ProfileResponse:
    try:
        profile = await asyncio.to_thread(admin_service.suspend_user, user_id, admin, _note(payload))
        return ProfileResponse.model_validate(profile)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/users/{user_id}/activate", response_model=ProfileResponse)
async def activate_user(
    user_id: str,
    payload: Optional[AdminNoteRequest] = None,
    admin: Actor = Depends(require_admin),
    admin_service: AdminOverrideService = Depends(get_admin_override_service),
) -> ProfileResponse:
    try:
        profile = await asyncio.to_thread(admin_service.activate_user, user_id, admin, _note(payload))
        return ProfileResponse.model_validate(profile)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# Audit log
# ============================================================================


@router.get("/audit-log", response_model=AuditLogResponse)
async def get_audit_log(
    actor_id: Optional[str] = Query(None),
    action_type: Optional[str] = Query(None),
    target_type: Optional[str] = Query(None),
    target_id: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: Actor = Depends(require_admin),
    admin_service: AdminOverrideService = Depends(get_admin_override_service),
) -> AuditLogResponse:
    try:
        rows, total = await asyncio.to_thread(
            admin_service.list_actions,
            admin,
            actor_id=actor_id,
            action_type=action_type,
            target_type=target_type,
            target_id=target_id,
            start=start,
            end=end,
            limit=limit,
            offset=offset,
        )
        return AuditLogResponse(
            items=[AdminActionResponse.model_validate(row) for row in rows],
            total=total,
            limit=limit,
            offset=offset,
        )
    except DomainException as e:
        handle_domain_exception(e)

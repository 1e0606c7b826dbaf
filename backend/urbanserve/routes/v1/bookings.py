# backend/urbanserve/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingStateMachine and CancellationService.

Endpoints:
    GET / - List the caller's bookings
    POST / - Create a booking in pending
    GET /{booking_id} - Booking details
    POST /{booking_id}/transition - Apply a status transition
    POST /{booking_id}/cancel - Cancel a booking
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...api.dependencies import (
    get_booking_state_machine,
    get_cancellation_service,
    get_current_actor,
)
from ...core.actor import Actor
from ...core.exceptions import DomainException
from ...services.booking_state_machine import BookingStateMachine
from ...services.cancellation_service import CancellationService
from ...services.pricing_service import PriceSnapshot
from ...schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingTransitionRequest,
)

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    state_machine: BookingStateMachine = Depends(get_booking_state_machine),
) -> BookingListResponse:
    """List bookings where the caller is the customer or the assigned professional."""
    try:
        bookings = await asyncio.to_thread(state_machine.list_bookings, actor, limit=limit)
        items = [BookingResponse.model_validate(b) for b in bookings]
        return BookingListResponse(items=items, total=len(items))
    except DomainException as e:
        handle_domain_exception(e)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    state_machine: BookingStateMachine = Depends(get_booking_state_machine),
) -> BookingResponse:
    """
    Create a booking.

    The price is taken from the catalog (or the professional's offering);
    a quote that no longer matches is rejected with 400.
    """
    snapshot = None
    if payload.price is not None:
        snapshot = PriceSnapshot(
            total_amount=payload.price.total_amount,
            service_fee=payload.price.service_fee,
            discount_amount=payload.price.discount_amount,
        )
    try:
        booking = await asyncio.to_thread(
            state_machine.create_booking,
            actor=actor,
            customer_id=payload.customer_id or actor.id,
            service_id=payload.service_id,
            scheduled_at=payload.scheduled_at,
            address_id=payload.address_id,
            professional_id=payload.professional_id,
            price_snapshot=snapshot,
            notes=payload.notes,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    state_machine: BookingStateMachine = Depends(get_booking_state_machine),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(state_machine.get_booking, booking_id, actor)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/transition", response_model=BookingResponse)
async def transition_booking(
    booking_id: str,
    payload: BookingTransitionRequest,
    actor: Actor = Depends(get_current_actor),
    state_machine: BookingStateMachine = Depends(get_booking_state_machine),
) -> BookingResponse:
    """Move a booking along one legal edge; 409 when ``expected_status`` is stale."""
    try:
        booking = await asyncio.to_thread(
            state_machine.transition,
            booking_id,
            payload.target_status,
            actor,
            expected_status=payload.expected_status,
            reason=payload.reason,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    payload: BookingCancel,
    actor: Actor = Depends(get_current_actor),
    cancellation_service: CancellationService = Depends(get_cancellation_service),
) -> BookingResponse:
    """Cancel a booking. Captured payments are flagged for refund, not refunded."""
    try:
        booking = await asyncio.to_thread(
            cancellation_service.cancel_booking, booking_id, actor, payload.reason
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)

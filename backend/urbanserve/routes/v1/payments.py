# backend/urbanserve/routes/v1/payments.py
"""
Payment routes - API v1

Endpoints:
    POST /intents - Create a gateway order for a pending booking
    POST /verify - Verify a checkout callback and settle the booking
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from ...api.dependencies import get_current_actor, get_payment_settlement_service
from ...core.actor import Actor
from ...core.exceptions import DomainException
from ...schemas.payment import (
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentResponse,
    PaymentVerifyRequest,
    PaymentVerifyResponse,
)
from ...services.payment_settlement_service import PaymentSettlementService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/intents", response_model=PaymentIntentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_intent(
    payload: PaymentIntentRequest,
    actor: Actor = Depends(get_current_actor),
    settlement_service: PaymentSettlementService = Depends(get_payment_settlement_service),
) -> PaymentIntentResponse:
    try:
        intent = await asyncio.to_thread(
            settlement_service.create_payment_intent, payload.booking_id, actor
        )
        return PaymentIntentResponse.model_validate(intent)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/verify", response_model=PaymentVerifyResponse)
async def verify_payment(
    payload: PaymentVerifyRequest,
    actor: Actor = Depends(get_current_actor),
    settlement_service: PaymentSettlementService = Depends(get_payment_settlement_service),
) -> PaymentVerifyResponse:
    """
    Verify the gateway's checkout signature.

    Only a valid HMAC over ``order_id|payment_id`` settles the booking; the
    client's own claim of success is never trusted.
    """
    try:
        result = await asyncio.to_thread(
            settlement_service.verify_payment,
            payload.gateway_order_id,
            payload.gateway_payment_id,
            payload.signature,
            payload.booking_id,
        )
        logger.info(
            "Payment verified for booking %s by %s (confirmed=%s)",
            result.booking.id,
            actor.id,
            result.booking_confirmed,
        )
        return PaymentVerifyResponse(
            booking_id=result.booking.id,
            booking_status=result.booking.status,
            payment=PaymentResponse.model_validate(result.payment),
            booking_confirmed=result.booking_confirmed,
            refund_required=result.refund_required,
            replayed=result.replayed,
        )
    except DomainException as e:
        handle_domain_exception(e)

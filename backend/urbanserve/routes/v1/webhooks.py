# backend/urbanserve/routes/v1/webhooks.py
"""
Payment gateway webhook - API v1

No caller authentication: the body is authenticated by its HMAC signature.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from ...api.dependencies import get_payment_settlement_service
from ...core.exceptions import DomainException
from ...schemas.payment import WebhookAck
from ...services.payment_settlement_service import PaymentSettlementService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks-v1"])

SIGNATURE_HEADER = "X-Razorpay-Signature"


@router.post("/payment-gateway", response_model=WebhookAck)
async def handle_payment_gateway_webhook(
    request: Request,
    signature: Optional[str] = Header(default=None, alias=SIGNATURE_HEADER),
    settlement_service: PaymentSettlementService = Depends(get_payment_settlement_service),
) -> WebhookAck:
    # Signature covers the exact bytes sent; read before any parsing
    raw_body = await request.body()
    if not signature:
        logger.warning("Webhook received without signature")
    try:
        result = await asyncio.to_thread(settlement_service.handle_webhook, raw_body, signature)
        return WebhookAck(**result)
    except DomainException as e:
        raise e.to_http_exception()

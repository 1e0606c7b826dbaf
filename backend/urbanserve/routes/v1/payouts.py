# backend/urbanserve/routes/v1/payouts.py
"""Professional payout ledger - API v1."""

import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_current_actor, get_payout_service
from ...core.actor import Actor
from ...core.exceptions import DomainException
from ...schemas.admin import PayoutResponse
from ...services.payout_service import PayoutService

router = APIRouter(tags=["payouts-v1"])


@router.get("", response_model=List[PayoutResponse])
async def list_payouts(
    professional_id: Optional[str] = Query(None, description="Admins only; defaults to the caller"),
    actor: Actor = Depends(get_current_actor),
    payout_service: PayoutService = Depends(get_payout_service),
) -> List[PayoutResponse]:
    try:
        payouts = await asyncio.to_thread(payout_service.list_payouts, actor, professional_id)
    except DomainException as e:
        raise e.to_http_exception()
    return [PayoutResponse.model_validate(p) for p in payouts]

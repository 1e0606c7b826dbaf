"""
Money arithmetic for bookings and payouts.

All amounts are integers in minor currency units. Nothing here touches
floating point; shares are floored to the minor unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.exceptions import ValidationException


@dataclass(frozen=True)
class PriceSnapshot:
    """Price the customer saw when booking; checked against the catalog."""

    total_amount: int
    service_fee: Optional[int] = None
    discount_amount: int = 0


@dataclass(frozen=True)
class PriceBreakdown:
    total_amount: int
    service_fee: int
    discount_amount: int
    final_amount: int


def _require_amount(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationException(
            f"{name} must be an integer amount in minor units",
            code="INVALID_AMOUNT",
            details={"field": name},
        )
    if value < 0:
        raise ValidationException(
            f"{name} cannot be negative",
            code="INVALID_AMOUNT",
            details={"field": name, "value": value},
        )
    return value


def compute_breakdown(total_amount: int, service_fee: int, discount_amount: int = 0) -> PriceBreakdown:
    """Return the booking money snapshot with ``final = total + fee - discount``."""
    total = _require_amount("total_amount", total_amount)
    fee = _require_amount("service_fee", service_fee)
    discount = _require_amount("discount_amount", discount_amount)

    final = total + fee - discount
    if final < 0:
        raise ValidationException(
            "Discount exceeds the booking amount",
            code="INVALID_AMOUNT",
            details={"total_amount": total, "service_fee": fee, "discount_amount": discount},
        )
    return PriceBreakdown(
        total_amount=total,
        service_fee=fee,
        discount_amount=discount,
        final_amount=final,
    )


def professional_share(final_amount: int, share_percent: int) -> int:
    """Professional's cut of ``final_amount``, floored to the minor unit."""
    if not 0 <= share_percent <= 100:
        raise ValueError("share_percent must be between 0 and 100")
    return (_require_amount("final_amount", final_amount) * share_percent) // 100

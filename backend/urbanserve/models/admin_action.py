# backend/urbanserve/models/admin_action.py
"""
Append-only record of privileged actions.

Rows are built with ``AdminAction.record(...)`` and written by the audit
repository in the same transaction as the mutation they describe.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..database import Base


def _now_utc() -> datetime:
    """Return timezone-aware UTC timestamp for defaults."""
    return datetime.now(timezone.utc)


class AdminActionType(str, Enum):
    BOOKING_ASSIGNED = "booking_assigned"
    BOOKING_STATUS_CHANGED = "booking_status_changed"
    BOOKING_CANCELLED = "booking_cancelled"
    PAYMENT_REFUNDED = "payment_refunded"
    PROFESSIONAL_APPROVED = "professional_approved"
    PROFESSIONAL_REJECTED = "professional_rejected"
    USER_SUSPENDED = "user_suspended"
    USER_ACTIVATED = "user_activated"
    OTHER = "other"


class AdminAction(Base):
    """Persistence model for admin audit trail entries."""

    __tablename__ = "admin_actions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    actor_id = Column(String(26), nullable=False, index=True)
    action_type = Column(String(40), nullable=False, index=True)
    target_type = Column(String(40), nullable=False)
    target_id = Column(String(64), nullable=False, index=True)
    description = Column(Text, nullable=False)
    details = Column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=True,
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=func.now(),
    )

    @classmethod
    def record(
        cls,
        *,
        actor_id: str,
        action_type: AdminActionType,
        target_type: str,
        target_id: str,
        description: str,
        details: Mapping[str, Any] | None = None,
    ) -> "AdminAction":
        return cls(
            actor_id=actor_id,
            action_type=action_type.value,
            target_type=target_type,
            target_id=target_id,
            description=description,
            details=dict(details) if details else None,
        )

    def __repr__(self) -> str:
        return f"<AdminAction {self.action_type} {self.target_type}:{self.target_id} by {self.actor_id}>"

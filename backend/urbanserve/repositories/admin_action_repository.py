# backend/urbanserve/repositories/admin_action_repository.py
"""
Repository helpers for admin action persistence and querying.

Append-only: no update or delete.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Select, and_, func, select
from sqlalchemy.orm import Session

from ..models.admin_action import AdminAction


class AdminActionRepository:
    """Persist and query admin action entries."""

    def __init__(self, db: Session):
        self.db = db

    def write(self, action: AdminAction) -> AdminAction:
        """Persist a new row inside the active transaction."""
        self.db.add(action)
        self.db.flush()
        return action

    def list(
        self,
        *,
        actor_id: Optional[str] = None,
        action_type: Optional[str] = None,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AdminAction], int]:
        """Return rows matching supplied filters, newest first, with the total count."""
        limit = max(0, limit)
        offset = max(0, offset)

        conditions = _build_filters(actor_id, action_type, target_type, target_id)
        if start is not None:
            conditions.append(AdminAction.created_at >= start)
        if end is not None:
            conditions.append(AdminAction.created_at <= end)

        stmt: Select[Any] = select(AdminAction).order_by(
            AdminAction.created_at.desc(), AdminAction.id.desc()
        )
        count_stmt = select(func.count()).select_from(AdminAction)

        if conditions:
            stmt = stmt.where(and_(*conditions))
            count_stmt = count_stmt.where(and_(*conditions))

        stmt = stmt.offset(offset).limit(limit)

        rows = list(self.db.execute(stmt).scalars().all())
        total = self.db.execute(count_stmt).scalar_one()

        return rows, int(total)


def _build_filters(
    actor_id: Optional[str],
    action_type: Optional[str],
    target_type: Optional[str],
    target_id: Optional[str],
) -> list[Any]:
    clauses: list[Any] = []
    if actor_id:
        clauses.append(AdminAction.actor_id == actor_id)
    if action_type:
        clauses.append(AdminAction.action_type == action_type)
    if target_type:
        clauses.append(AdminAction.target_type == target_type)
    if target_id:
        clauses.append(AdminAction.target_id == target_id)
    return clauses

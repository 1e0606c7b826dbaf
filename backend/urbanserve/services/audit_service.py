"""Service for writing and reading admin action records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.exceptions import ForbiddenException
from ..models.admin_action import AdminAction, AdminActionType
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.admin_action_repository import AdminActionRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService


class AuditService(BaseService):
    """
    Append-only audit trail for privileged actions.

    ``record`` never commits: it runs inside the caller's transaction so
    that a failed audit write rolls back the mutation it describes.
    """

    def __init__(self, db: Session, repository: Optional[AdminActionRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_admin_action_repository(db)

    def record(
        self,
        *,
        actor: Actor,
        action_type: AdminActionType,
        target_type: str,
        target_id: str,
        description: str,
        details: Mapping[str, Any] | None = None,
    ) -> AdminAction:
        entry = AdminAction.record(
            actor_id=actor.id,
            action_type=action_type,
            target_type=target_type,
            target_id=target_id,
            description=description,
            details=details,
        )
        self.repository.write(entry)
        prometheus_metrics.record_admin_action(action_type.value)
        self.logger.info(
            "Admin action recorded",
            extra={
                "action_type": action_type.value,
                "target_type": target_type,
                "target_id": target_id,
                "actor_id": actor.id,
            },
        )
        return entry

    @BaseService.measure_operation("audit.list_actions")
    def list_actions(
        self,
        actor: Actor,
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
        if not actor.is_admin:
            raise ForbiddenException("Only admins can read the audit log")
        return self.repository.list(
            actor_id=actor_id,
            action_type=action_type,
            target_type=target_type,
            target_id=target_id,
            start=start,
            end=end,
            limit=min(max(limit, 1), 200),
            offset=offset,
        )

# backend/urbanserve/api/dependencies/auth.py
"""
Caller identity dependencies.

Authentication happens upstream (API gateway / identity service); it
forwards the authenticated profile id in ``X-User-Id``. These dependencies
turn that id into an explicit ``Actor`` for the service layer. Profile
lookups run in a worker thread so they never block the event loop.
"""

import asyncio
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ...core.actor import Actor
from ...core.enums import RoleName
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


def _lookup_actor(db: Session, user_id: str) -> Optional[tuple[Actor, bool]]:
    profile = RepositoryFactory.create_user_repository(db).get_profile(user_id)
    if profile is None:
        return None
    return Actor(id=profile.id, role=RoleName(profile.role)), bool(profile.is_active)


async def get_current_actor(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
    db: Session = Depends(get_db),
) -> Actor:
    """
    Resolve the calling actor from the forwarded identity header.

    Raises:
        HTTPException: 401 when the header is missing or unknown,
            403 when the profile is suspended
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )

    found = await asyncio.to_thread(_lookup_actor, db, user_id)
    if found is None:
        logger.info("Rejected request for unknown profile %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown caller identity",
        )
    actor, is_active = found
    if not is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is suspended")
    return actor


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency that ensures the caller has administrator privileges."""

    if not actor.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return actor

# backend/urbanserve/models/user.py
"""
Profile model.

Authentication lives outside this service; a profile carries only what the
engine needs to authorize actors and validate professionals.
"""

from datetime import datetime
from typing import Optional

import ulid
from sqlalchemy import Boolean, CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.enums import RoleName
from ..database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=RoleName.CUSTOMER.value)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Professionals start unverified until an admin approves them
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("role IN ('customer', 'professional', 'admin')", name="ck_profiles_role"),
    )

    def __repr__(self) -> str:
        return f"<Profile {self.id}: role={self.role}, active={self.is_active}>"

    @property
    def is_professional(self) -> bool:
        return self.role == RoleName.PROFESSIONAL

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN

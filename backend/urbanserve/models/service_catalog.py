# backend/urbanserve/models/service_catalog.py
"""
Service catalog models.

``Service`` is the platform-wide definition with a base price and duration.
``ProfessionalService`` is a professional's offering of that service, with
optional price/duration overrides and an availability switch.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

import ulid
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import Base

if TYPE_CHECKING:
    from .user import Profile


class Service(Base):
    __tablename__ = "services"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False, comment="Minor units")
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    offerings: Mapped[list["ProfessionalService"]] = relationship(
        "ProfessionalService", back_populates="service"
    )

    __table_args__ = (
        CheckConstraint("base_price >= 0", name="ck_services_base_price_non_negative"),
        CheckConstraint("duration_minutes > 0", name="ck_services_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<Service {self.id}: {self.name} price={self.base_price}>"


class ProfessionalService(Base):
    """A professional's offering of a catalog service."""

    __tablename__ = "professional_services"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    professional_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("profiles.id"), nullable=False, index=True
    )
    service_id: Mapped[str] = mapped_column(String(26), ForeignKey("services.id"), nullable=False)
    price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="Override, minor units")
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    service: Mapped["Service"] = relationship("Service", back_populates="offerings")
    professional: Mapped["Profile"] = relationship("Profile")

    __table_args__ = (
        UniqueConstraint("professional_id", "service_id", name="uq_professional_service"),
        CheckConstraint("price IS NULL OR price >= 0", name="ck_professional_services_price"),
        CheckConstraint(
            "duration_minutes IS NULL OR duration_minutes > 0",
            name="ck_professional_services_duration",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ProfessionalService professional={self.professional_id} "
            f"service={self.service_id} available={self.is_available}>"
        )

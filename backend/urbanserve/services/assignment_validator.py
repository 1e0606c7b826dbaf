# backend/urbanserve/services/assignment_validator.py
"""
Assignment Validator.

Decides whether a professional may take a booking for a service and what
that professional charges for it. Runs at booking creation when the
customer picks a professional, and again at every admin assignment since
eligibility can change in between.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import RoleName
from ..core.exceptions import IneligibleProfessionalException
from ..repositories.catalog_repository import CatalogRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.user_repository import UserRepository
from .base import BaseService


@dataclass(frozen=True)
class AssignmentCheck:
    eligible: bool
    effective_price: Optional[int] = None
    effective_duration_minutes: Optional[int] = None
    offering_id: Optional[str] = None
    reason: Optional[str] = None


class AssignmentValidator(BaseService):
    def __init__(
        self,
        db: Session,
        catalog_repository: Optional[CatalogRepository] = None,
        user_repository: Optional[UserRepository] = None,
        *,
        require_verified: Optional[bool] = None,
    ):
        super().__init__(db)
        self.catalog_repository = catalog_repository or RepositoryFactory.create_catalog_repository(db)
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self.require_verified = (
            settings.require_verified_professionals if require_verified is None else require_verified
        )

    @BaseService.measure_operation("assignment.validate")
    def validate(self, professional_id: str, service_id: str) -> AssignmentCheck:
        """
        Check eligibility of ``professional_id`` for ``service_id``.

        Effective price and duration come from the professional's offering
        when it overrides them, otherwise from the service's base values.
        They are reported whenever the service exists, even when the
        professional turns out to be ineligible.
        """
        service = self.catalog_repository.get_service(service_id)
        if service is None:
            return AssignmentCheck(eligible=False, reason="service_not_found")

        offering = self.catalog_repository.get_professional_offering(professional_id, service_id)
        price = service.base_price
        duration = service.duration_minutes
        offering_id = None
        if offering is not None:
            offering_id = offering.id
            if offering.price is not None:
                price = offering.price
            if offering.duration_minutes is not None:
                duration = offering.duration_minutes

        def _ineligible(reason: str) -> AssignmentCheck:
            return AssignmentCheck(
                eligible=False,
                effective_price=price,
                effective_duration_minutes=duration,
                offering_id=offering_id,
                reason=reason,
            )

        profile = self.user_repository.get_profile(professional_id)
        if profile is None:
            return _ineligible("professional_not_found")
        if profile.role != RoleName.PROFESSIONAL:
            return _ineligible("not_a_professional")
        if not profile.is_active:
            return _ineligible("professional_inactive")
        if self.require_verified and not profile.is_verified:
            return _ineligible("professional_unverified")
        if not service.is_active:
            return _ineligible("service_inactive")
        if offering is None:
            return _ineligible("service_not_offered")
        if not offering.is_available:
            return _ineligible("offering_unavailable")

        return AssignmentCheck(
            eligible=True,
            effective_price=price,
            effective_duration_minutes=duration,
            offering_id=offering_id,
        )

    def ensure_eligible(self, professional_id: str, service_id: str) -> AssignmentCheck:
        check = self.validate(professional_id, service_id)
        if not check.eligible:
            self.logger.info(
                "Professional %s ineligible for service %s: %s",
                professional_id,
                service_id,
                check.reason,
            )
            raise IneligibleProfessionalException(
                check.reason or "ineligible",
                professional_id=professional_id,
                service_id=service_id,
            )
        return check

# backend/urbanserve/services/payout_service.py
"""Professional payout ledger: one row written when a booking completes."""

from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.config import settings
from ..core.enums import RoleName
from ..core.exceptions import ForbiddenException, ValidationException
from ..models.booking import Booking
from ..models.payout import PayoutStatus, ProfessionalPayout
from ..repositories.factory import RepositoryFactory
from ..repositories.payout_repository import PayoutRepository
from .base import BaseService
from .pricing_service import professional_share


class PayoutService(BaseService):
    def __init__(
        self,
        db: Session,
        payout_repository: Optional[PayoutRepository] = None,
        *,
        share_percent: Optional[int] = None,
    ):
        super().__init__(db)
        self.payout_repository = payout_repository or RepositoryFactory.create_payout_repository(db)
        self.share_percent = (
            settings.professional_share_percent if share_percent is None else share_percent
        )

    def record_completion(self, booking: Booking) -> ProfessionalPayout:
        """
        Write the payout row for a completed booking inside the caller's transaction.

        Returns the existing row when one was already written.
        """
        existing = self.payout_repository.get_for_booking(booking.id)
        if existing is not None:
            return existing
        if not booking.professional_id:
            raise ValidationException(
                "Completed booking has no professional to pay",
                code="UNASSIGNED_BOOKING",
                details={"booking_id": booking.id},
            )

        amount = professional_share(booking.final_amount, self.share_percent)
        payout = self.payout_repository.create(
            booking_id=booking.id,
            professional_id=booking.professional_id,
            gross_amount=booking.final_amount,
            share_percent=self.share_percent,
            amount=amount,
            currency=booking.currency,
            status=PayoutStatus.PENDING.value,
        )
        self.logger.info(
            "Payout recorded for booking %s: %s of %s",
            booking.id,
            amount,
            booking.final_amount,
        )
        return payout

    @BaseService.measure_operation("payout.list")
    def list_payouts(
        self, actor: Actor, professional_id: Optional[str] = None
    ) -> List[ProfessionalPayout]:
        target = professional_id or actor.id
        if actor.role == RoleName.PROFESSIONAL and target != actor.id:
            raise ForbiddenException("Professionals can only view their own payouts")
        if actor.role not in (RoleName.PROFESSIONAL, RoleName.ADMIN):
            raise ForbiddenException("Only professionals and admins can view payouts")
        return self.payout_repository.list_for_professional(target)

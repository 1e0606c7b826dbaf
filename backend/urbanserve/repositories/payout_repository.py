# backend/urbanserve/repositories/payout_repository.py
"""Professional payout ledger access."""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.payout import ProfessionalPayout
from .base_repository import BaseRepository


class PayoutRepository(BaseRepository[ProfessionalPayout]):
    def __init__(self, db: Session):
        super().__init__(db, ProfessionalPayout)

    def get_for_booking(self, booking_id: str) -> Optional[ProfessionalPayout]:
        return self.find_one_by(booking_id=booking_id)

    def list_for_professional(self, professional_id: str) -> List[ProfessionalPayout]:
        try:
            return (
                self.db.query(ProfessionalPayout)
                .filter(ProfessionalPayout.professional_id == professional_id)
                .order_by(ProfessionalPayout.created_at.desc(), ProfessionalPayout.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing payouts for {professional_id}: {str(e)}")
            raise RepositoryException(f"Failed to list payouts: {str(e)}")

# backend/urbanserve/repositories/booking_repository.py
"""
Booking Repository.

Status changes are written with a single conditional UPDATE keyed by booking
id and the status the caller last observed. A zero row count means another
writer got there first; the caller turns that into a conflict.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def transition_status(
        self,
        booking: Booking,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        **fields: Any,
    ) -> bool:
        """
        Conditionally move ``booking`` from ``expected_status`` to ``new_status``.

        Extra ``fields`` are written in the same statement. On success the
        instance is refreshed; on a lost race it is expired so the next read
        observes the winner's state.

        Returns:
            True if this call applied the change, False if the precondition
            no longer held.
        """
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == expected_status.value)
            .values(status=new_status.value, **fields)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error transitioning booking {booking.id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking status: {str(e)}") from e

        if result.rowcount != 1:
            self.db.expire(booking)
            return False

        self.db.refresh(booking)
        return True

    def get_for_customer(self, customer_id: str, *, limit: int = 50) -> List[Booking]:
        try:
            return (
                self.db.query(Booking)
                .filter(Booking.customer_id == customer_id)
                .order_by(Booking.scheduled_at.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for customer {customer_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def get_for_professional(
        self, professional_id: str, *, status: Optional[BookingStatus] = None, limit: int = 50
    ) -> List[Booking]:
        try:
            query = self.db.query(Booking).filter(Booking.professional_id == professional_id)
            if status is not None:
                query = query.filter(Booking.status == status.value)
            return query.order_by(Booking.scheduled_at.asc()).limit(limit).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for professional {professional_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

# backend/urbanserve/repositories/payment_repository.py
"""
Payment Repository.

Like bookings, payment status moves through conditional updates so that a
replayed callback or webhook never applies its effect twice.
"""

import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.payment import OPEN_PAYMENT_STATUSES, Payment, PaymentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    """Repository for payment attempts."""

    def __init__(self, db: Session):
        super().__init__(db, Payment)
        self.logger = logging.getLogger(__name__)

    def get_by_gateway_order_id(self, gateway_order_id: str) -> Optional[Payment]:
        return self.find_one_by(gateway_order_id=gateway_order_id)

    def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Optional[Payment]:
        return self.find_one_by(gateway_payment_id=gateway_payment_id)

    def get_for_booking(self, booking_id: str) -> List[Payment]:
        try:
            return (
                self.db.query(Payment)
                .filter(Payment.booking_id == booking_id)
                .order_by(Payment.created_at.asc(), Payment.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing payments for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to list payments: {str(e)}")

    def get_completed_for_booking(
        self, booking_id: str, *, exclude_payment_id: Optional[str] = None
    ) -> Optional[Payment]:
        """Return a captured payment for the booking, if any."""
        try:
            query = self.db.query(Payment).filter(
                Payment.booking_id == booking_id,
                Payment.status == PaymentStatus.COMPLETED.value,
            )
            if exclude_payment_id:
                query = query.filter(Payment.id != exclude_payment_id)
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading completed payment for {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to read payments: {str(e)}")

    def fail_open_payments(self, booking_id: str, reason: str) -> int:
        """Mark every open attempt for the booking as failed; returns rows touched."""
        stmt = (
            update(Payment)
            .where(
                Payment.booking_id == booking_id,
                Payment.status.in_(OPEN_PAYMENT_STATUSES),
            )
            .values(status=PaymentStatus.FAILED.value, failure_reason=reason)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error failing open payments for {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to supersede payments: {str(e)}") from e
        return int(result.rowcount or 0)

    def transition_status(
        self,
        payment: Payment,
        expected_statuses: Iterable[PaymentStatus],
        new_status: PaymentStatus,
        **fields: Any,
    ) -> bool:
        """Conditionally move a payment out of one of ``expected_statuses``."""
        expected = [status.value for status in expected_statuses]
        stmt = (
            update(Payment)
            .where(Payment.id == payment.id, Payment.status.in_(expected))
            .values(status=new_status.value, **fields)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error transitioning payment {payment.id}: {str(e)}")
            raise RepositoryException(f"Failed to update payment status: {str(e)}") from e

        if result.rowcount != 1:
            self.db.expire(payment)
            return False

        self.db.refresh(payment)
        return True

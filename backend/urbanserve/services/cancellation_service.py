# backend/urbanserve/services/cancellation_service.py
"""
Cancellation & Refund Policy.

Cancelling a booking is a status transition; it never moves money. Money
goes back only through ``issue_refund`` (admin) or ``record_gateway_refund``
(gateway webhook), which are separate, privileged steps.

Refunds follow the three-phase pattern:
1. Validate in a short transaction
2. Call the gateway outside any transaction
3. Persist the result in a short transaction, re-fetching state first
"""

from datetime import datetime, timezone
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    IllegalStateException,
    NotFoundException,
    PaymentGatewayException,
    ValidationException,
)
from ..integrations.payment_gateway_client import PaymentGatewayClient, PaymentGatewayError
from ..models.admin_action import AdminActionType
from ..models.booking import Booking, BookingStatus
from ..models.payment import Payment, PaymentStatus
from ..repositories.factory import RepositoryFactory
from .audit_service import AuditService
from .base import BaseService
from .booking_state_machine import BookingStateMachine

logger = logging.getLogger(__name__)

REFUNDABLE_BOOKING_STATUSES = (BookingStatus.CANCELLED, BookingStatus.COMPLETED)


class CancellationService(BaseService):
    def __init__(
        self,
        db: Session,
        gateway: PaymentGatewayClient,
        state_machine: Optional[BookingStateMachine] = None,
        audit_service: Optional[AuditService] = None,
    ):
        super().__init__(db)
        self.gateway = gateway
        self.audit_service = audit_service or AuditService(db)
        self.state_machine = state_machine or BookingStateMachine(db, audit_service=self.audit_service)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)

    @BaseService.measure_operation("cancellation.cancel_booking")
    def cancel_booking(self, booking_id: str, actor: Actor, reason: Optional[str]) -> Booking:
        """
        Cancel a booking on behalf of ``actor``.

        Customers may cancel their own ``pending`` or ``confirmed`` bookings;
        admins may additionally cancel ``in_progress`` ones (audited).
        A captured payment on the booking is flagged ``refund_required``.
        """
        if not reason or not reason.strip():
            raise ValidationException("A cancellation reason is required", code="REASON_REQUIRED")

        with self.transaction():
            booking = self.state_machine.apply_transition(
                booking_id,
                BookingStatus.CANCELLED,
                actor,
                reason=reason,
            )

        self.log_operation("cancel_booking", booking_id=booking.id, actor_id=actor.id)
        return booking

    @BaseService.measure_operation("cancellation.issue_refund")
    def issue_refund(self, payment_id: str, amount: int, reason: str, actor: Actor) -> Payment:
        """
        Refund a captured payment through the gateway.

        The booking must be ``cancelled`` (it then moves to ``refunded``) or
        ``completed`` (it stays ``completed``), unless the payment is flagged
        ``refund_required``; a cancelled booking is the only one moved to ``refunded``.
        """
        if not actor.is_admin:
            raise ForbiddenException("Only admins can issue refunds")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationException(
                "Refund amount must be a positive integer in minor units",
                code="INVALID_AMOUNT",
                details={"amount": amount},
            )
        cleaned_reason = (reason or "").strip()
        if not cleaned_reason:
            raise ValidationException("A refund reason is required", code="REASON_REQUIRED")

        # Phase 1: validate
        with self.transaction():
            payment = self._load_payment(payment_id)
            booking = self.booking_repository.get_by_id(payment.booking_id, load_relationships=False)
            if booking is None:
                raise NotFoundException(f"Booking {payment.booking_id} not found")
            self._ensure_refundable(payment, booking, amount)
            gateway_payment_id = payment.gateway_payment_id
            booking_id = booking.id

        # Phase 2: gateway call, no transaction held
        try:
            refund = self.gateway.refund_payment(
                gateway_payment_id,
                amount=amount,
                notes={"booking_id": booking_id, "reason": cleaned_reason[:255]},
            )
        except PaymentGatewayError as exc:
            self.logger.error(
                "Gateway refund failed for payment %s: %s", payment_id, str(exc)
            )
            raise PaymentGatewayException(
                "Payment gateway refund failed",
                code="GATEWAY_REFUND_FAILED",
                details={"payment_id": payment_id, "timed_out": exc.timed_out},
            ) from exc

        # Phase 3: persist
        with self.transaction():
            payment = self._load_payment(payment_id)
            self.db.refresh(payment)
            applied = self.payment_repository.transition_status(
                payment,
                [PaymentStatus.COMPLETED],
                PaymentStatus.REFUNDED,
                refund_amount=amount,
                refund_reason=reason,
                refunded_at=datetime.now(timezone.utc),
                gateway_refund_id=refund.get("id"),
                refund_required=False,
            )
            if not applied:
                self.logger.error(
                    "Refund %s executed at gateway but payment %s changed concurrently",
                    refund.get("id"),
                    payment_id,
                )
                raise ConflictException(
                    "Payment was modified while the refund was processed",
                    code="PAYMENT_CONFLICT",
                    details={"payment_id": payment_id, "gateway_refund_id": refund.get("id")},
                )

            booking = self.booking_repository.get_by_id(booking_id, load_relationships=False)
            self.db.refresh(booking)
            if booking.status == BookingStatus.CANCELLED:
                self.state_machine.apply_transition(
                    booking_id,
                    BookingStatus.REFUNDED,
                    actor,
                    expected_status=BookingStatus.CANCELLED,
                    audit=False,
                )

            self.audit_service.record(
                actor=actor,
                action_type=AdminActionType.PAYMENT_REFUNDED,
                target_type="payment",
                target_id=payment.id,
                description=f"Refunded {amount} {payment.currency} on booking {booking_id}",
                details={
                    "booking_id": booking_id,
                    "amount": amount,
                    "reason": reason,
                    "gateway_refund_id": refund.get("id"),
                    "booking_status": booking.status,
                },
            )

        self.log_operation("issue_refund", payment_id=payment_id, amount=amount)
        return payment

    @BaseService.measure_operation("cancellation.record_gateway_refund")
    def record_gateway_refund(
        self,
        gateway_payment_id: str,
        amount: int,
        reason: Optional[str] = None,
        gateway_refund_id: Optional[str] = None,
    ) -> Optional[Payment]:
        """
        Apply a refund already executed at the gateway (webhook path).

        Idempotent: a payment that is already ``refunded`` is returned as is.
        Returns None when the payment is unknown.
        """
        with self.transaction():
            payment = self.payment_repository.get_by_gateway_payment_id(gateway_payment_id)
            if payment is None:
                self.logger.warning("Refund webhook for unknown payment %s", gateway_payment_id)
                return None
            if payment.status == PaymentStatus.REFUNDED:
                return payment
            if payment.status != PaymentStatus.COMPLETED:
                self.logger.warning(
                    "Refund webhook for payment %s in status %s ignored",
                    payment.id,
                    payment.status,
                )
                return payment

            refund_amount = min(max(int(amount), 1), payment.amount)
            applied = self.payment_repository.transition_status(
                payment,
                [PaymentStatus.COMPLETED],
                PaymentStatus.REFUNDED,
                refund_amount=refund_amount,
                refund_reason=reason or "gateway refund",
                refunded_at=datetime.now(timezone.utc),
                gateway_refund_id=gateway_refund_id,
                refund_required=False,
            )
            if not applied:
                self.db.refresh(payment)
                return payment

            booking = self.booking_repository.get_by_id(payment.booking_id, load_relationships=False)
            if booking is not None and booking.status == BookingStatus.CANCELLED:
                self.state_machine.apply_transition(
                    booking.id,
                    BookingStatus.REFUNDED,
                    Actor.system(),
                    expected_status=BookingStatus.CANCELLED,
                )

        self.log_operation(
            "record_gateway_refund", payment_id=payment.id, gateway_refund_id=gateway_refund_id
        )
        return payment

    def _load_payment(self, payment_id: str) -> Payment:
        payment = self.payment_repository.get_by_id(payment_id, load_relationships=False)
        if payment is None:
            raise NotFoundException(f"Payment {payment_id} not found", code="PAYMENT_NOT_FOUND")
        return payment

    def _ensure_refundable(self, payment: Payment, booking: Booking, amount: int) -> None:
        if payment.status != PaymentStatus.COMPLETED:
            raise IllegalStateException(
                f"Only completed payments can be refunded (payment is {payment.status})",
                current_status=payment.status,
                target_status=PaymentStatus.REFUNDED.value,
            )
        if amount > payment.amount:
            raise ValidationException(
                "Refund amount exceeds the captured amount",
                code="INVALID_AMOUNT",
                details={"amount": amount, "captured": payment.amount},
            )
        # Flagged captures are refundable in any booking status
        if not payment.refund_required and booking.status not in REFUNDABLE_BOOKING_STATUSES:
            raise IllegalStateException(
                "Refunds are only issued for cancelled or completed bookings",
                current_status=booking.status,
            )
        if not payment.gateway_payment_id:
            raise ValidationException(
                "Payment has no gateway payment id to refund",
                code="MISSING_GATEWAY_PAYMENT",
                details={"payment_id": payment.id},
            )

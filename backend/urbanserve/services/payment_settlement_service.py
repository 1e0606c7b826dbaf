# backend/urbanserve/services/payment_settlement_service.py
"""
Payment Settlement Protocol.

Whether a booking was paid for is decided only by a callback whose HMAC
signature verifies against the server-held secret, never by what the
client reports.

Intent creation follows the three-phase pattern (validate, gateway call
outside any transaction, persist). Verification marks the payment
``completed`` and confirms the booking in one transaction. A captured
payment that can no longer be applied to its booking is kept as
``completed`` with ``refund_required`` set.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.config import settings
from ..core.enums import RoleName
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    IllegalStateException,
    NotFoundException,
    PaymentGatewayException,
    SignatureVerificationException,
    ValidationException,
)
from ..domain.assignment import Assigned
from ..integrations.payment_gateway_client import PaymentGatewayClient, PaymentGatewayError
from ..integrations.payment_signatures import (
    verify_checkout_signature,
    verify_webhook_signature,
)
from ..models.booking import Booking, BookingStatus
from ..models.payment import Payment, PaymentStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_state_machine import BookingStateMachine
from .cancellation_service import CancellationService

logger = logging.getLogger(__name__)

SETTLEABLE_STATUSES = (PaymentStatus.CREATED, PaymentStatus.AUTHORIZED, PaymentStatus.FAILED)
SETTLED_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED)


@dataclass(frozen=True)
class PaymentIntent:
    payment_id: str
    booking_id: str
    gateway_order_id: str
    amount: int
    currency: str
    key_id: str


@dataclass(frozen=True)
class SettlementResult:
    booking: Booking
    payment: Payment
    booking_confirmed: bool
    replayed: bool = False

    @property
    def refund_required(self) -> bool:
        return bool(self.payment.refund_required)


class PaymentSettlementService(BaseService):
    def __init__(
        self,
        db: Session,
        gateway: PaymentGatewayClient,
        state_machine: Optional[BookingStateMachine] = None,
        cancellation_service: Optional[CancellationService] = None,
    ):
        super().__init__(db)
        self.gateway = gateway
        self.state_machine = state_machine or BookingStateMachine(db)
        self.cancellation_service = cancellation_service or CancellationService(
            db, gateway, state_machine=self.state_machine
        )
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)

    # ------------------------------------------------------------------
    # Intent creation
    # ------------------------------------------------------------------

    @BaseService.measure_operation("settlement.create_payment_intent")
    def create_payment_intent(self, booking_id: str, actor: Actor) -> PaymentIntent:
        """
        Create a gateway order for the booking's ``final_amount``.

        A gateway failure leaves the booking ``pending`` with no new payment
        row; the caller may retry. A successful retry supersedes the stale
        ``created`` row.
        """
        # Phase 1: validate
        with self.transaction():
            booking = self._load_booking(booking_id)
            if not actor.is_admin and not (
                actor.role == RoleName.CUSTOMER and booking.customer_id == actor.id
            ):
                raise ForbiddenException("Only the booking's customer can pay for it")
            if booking.status != BookingStatus.PENDING:
                raise IllegalStateException(
                    "Payments can only be started for pending bookings",
                    current_status=booking.status,
                )
            if self.payment_repository.get_completed_for_booking(booking.id) is not None:
                raise ConflictException(
                    "Booking has already been paid", code="ALREADY_PAID",
                    details={"booking_id": booking.id},
                )
            if booking.final_amount <= 0:
                raise ValidationException(
                    "Booking has nothing to pay", code="INVALID_AMOUNT",
                    details={"final_amount": booking.final_amount},
                )
            amount = booking.final_amount
            currency = booking.currency

        # Phase 2: gateway call, no transaction held
        try:
            order = self.gateway.create_order(
                amount=amount,
                currency=currency,
                receipt=f"bk_{booking_id}"[:40],
                notes={"booking_id": booking_id},
            )
        except PaymentGatewayError as exc:
            self.logger.error("Gateway order creation failed for booking %s: %s", booking_id, str(exc))
            raise PaymentGatewayException(
                "Could not create a payment order; please retry",
                code="GATEWAY_ORDER_FAILED",
                details={"booking_id": booking_id, "timed_out": exc.timed_out},
            ) from exc

        order_id = order.get("id")
        if not order_id or order.get("amount", amount) != amount:
            self.logger.error("Gateway returned an unusable order for booking %s: %s", booking_id, order)
            raise PaymentGatewayException(
                "Payment gateway returned an invalid order",
                code="GATEWAY_ORDER_INVALID",
                details={"booking_id": booking_id},
            )

        # Phase 3: persist, re-checking the booking
        with self.transaction():
            booking = self._load_booking(booking_id)
            self.db.refresh(booking)
            if booking.status != BookingStatus.PENDING or booking.final_amount != amount:
                raise ConflictException(
                    "Booking changed while the payment was being created",
                    code="BOOKING_CHANGED",
                    details={"booking_id": booking_id, "status": booking.status},
                )
            superseded = self.payment_repository.fail_open_payments(booking_id, "superseded")
            payment = self.payment_repository.create(
                booking_id=booking_id,
                amount=amount,
                currency=currency,
                status=PaymentStatus.CREATED.value,
                gateway_order_id=order_id,
            )

        self.log_operation(
            "create_payment_intent",
            booking_id=booking_id,
            payment_id=payment.id,
            superseded=superseded,
        )
        return PaymentIntent(
            payment_id=payment.id,
            booking_id=booking_id,
            gateway_order_id=order_id,
            amount=amount,
            currency=currency,
            key_id=settings.payment_gateway_key_id,
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    @BaseService.measure_operation("settlement.verify_payment")
    def verify_payment(
        self,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
        booking_id: str,
    ) -> SettlementResult:
        """
        Verify a checkout callback and reconcile payment and booking.

        Raises:
            NotFoundException: unknown order
            ValidationException: order belongs to a different booking
            SignatureVerificationException: signature mismatch (payment marked failed)
        """
        if not gateway_order_id or not gateway_payment_id:
            raise ValidationException("Order id and payment id are required", code="MISSING_FIELDS")

        payment = self.payment_repository.get_by_gateway_order_id(gateway_order_id)
        if payment is None:
            raise NotFoundException(
                f"No payment for order {gateway_order_id}", code="PAYMENT_NOT_FOUND"
            )
        if payment.booking_id != booking_id:
            raise ValidationException(
                "Order does not belong to this booking",
                code="BOOKING_MISMATCH",
                details={"booking_id": booking_id},
            )

        if not verify_checkout_signature(
            gateway_order_id, gateway_payment_id, signature, settings.checkout_signing_secret
        ):
            self._reject_forged_callback(payment, gateway_payment_id)

        with self.transaction():
            result = self._settle(payment, gateway_payment_id, signature)
        return result

    def _reject_forged_callback(self, payment: Payment, gateway_payment_id: str) -> None:
        self.logger.warning(
            "Payment signature mismatch; possible forgery",
            extra={
                "evt": "payment_invalid_signature",
                "payment_id": payment.id,
                "booking_id": payment.booking_id,
                "gateway_order_id": payment.gateway_order_id,
                "gateway_payment_id": gateway_payment_id,
            },
        )
        prometheus_metrics.record_payment_verification("invalid_signature")
        with self.transaction():
            self.db.refresh(payment)
            if payment.status in (PaymentStatus.CREATED, PaymentStatus.AUTHORIZED):
                self.payment_repository.transition_status(
                    payment,
                    [PaymentStatus.CREATED, PaymentStatus.AUTHORIZED],
                    PaymentStatus.FAILED,
                    failure_reason="signature_mismatch",
                )
        raise SignatureVerificationException()

    def _settle(
        self, payment: Payment, gateway_payment_id: str, signature: Optional[str]
    ) -> SettlementResult:
        """Complete ``payment`` and confirm its booking; runs inside the caller's transaction."""
        self.db.refresh(payment)

        if payment.status in SETTLED_STATUSES:
            return self._replay(payment, gateway_payment_id)

        applied = self.payment_repository.transition_status(
            payment,
            SETTLEABLE_STATUSES,
            PaymentStatus.COMPLETED,
            gateway_payment_id=gateway_payment_id,
            signature=signature,
            paid_at=datetime.now(timezone.utc),
            failure_reason=None,
        )
        if not applied:
            self.db.refresh(payment)
            return self._replay(payment, gateway_payment_id)

        booking = self._load_booking(payment.booking_id)
        self.db.refresh(booking)

        confirmed = False
        refund_reason: Optional[str] = None
        outcome = "confirmed"

        if self.payment_repository.get_completed_for_booking(
            booking.id, exclude_payment_id=payment.id
        ):
            refund_reason = "duplicate_payment"
        elif booking.status in (BookingStatus.CANCELLED, BookingStatus.REFUNDED):
            refund_reason = "booking_cancelled"
        elif payment.amount != booking.final_amount:
            refund_reason = "amount_mismatch"
        elif booking.status == BookingStatus.PENDING:
            if isinstance(booking.assignment, Assigned):
                try:
                    self.state_machine.apply_transition(
                        booking.id,
                        BookingStatus.CONFIRMED,
                        Actor.system(),
                        expected_status=BookingStatus.PENDING,
                    )
                    confirmed = True
                except ConflictException:
                    # Lost the race to a concurrent writer
                    self.db.refresh(booking)
                    if booking.status in (BookingStatus.CANCELLED, BookingStatus.REFUNDED):
                        refund_reason = "booking_cancelled"
                    elif booking.status == BookingStatus.PENDING:
                        raise
                    else:
                        outcome = "already_confirmed"
            else:
                outcome = "awaiting_assignment"
        else:
            outcome = "already_confirmed"

        if refund_reason is not None:
            payment.refund_required = True
            self.payment_repository.flush()
            outcome = "refund_required"
            self.logger.warning(
                "Captured payment %s cannot be applied to booking %s (%s); refund required",
                payment.id,
                booking.id,
                refund_reason,
            )

        prometheus_metrics.record_payment_verification(outcome)
        self.log_operation(
            "settle_payment",
            payment_id=payment.id,
            booking_id=booking.id,
            outcome=outcome,
        )
        return SettlementResult(booking=booking, payment=payment, booking_confirmed=confirmed)

    def _replay(self, payment: Payment, gateway_payment_id: str) -> SettlementResult:
        if payment.gateway_payment_id != gateway_payment_id:
            raise ConflictException(
                "Order was already settled by a different payment",
                code="ORDER_ALREADY_SETTLED",
                details={"payment_id": payment.id},
            )
        prometheus_metrics.record_payment_verification("replayed")
        booking = self._load_booking(payment.booking_id)
        return SettlementResult(
            booking=booking, payment=payment, booking_confirmed=False, replayed=True
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    @BaseService.measure_operation("settlement.handle_webhook")
    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify and dispatch a gateway webhook.

        Handles ``payment.authorized``, ``payment.captured``, ``payment.failed``
        and ``refund.processed``; other events are acknowledged and ignored.
        """
        if not verify_webhook_signature(raw_body, signature, settings.webhook_secret):
            self.logger.warning(
                "Webhook signature mismatch; possible forgery",
                extra={"evt": "webhook_invalid_signature"},
            )
            prometheus_metrics.record_payment_verification("invalid_signature")
            raise SignatureVerificationException("Invalid webhook signature")

        try:
            payload = json.loads(raw_body)
        except ValueError as exc:
            raise ValidationException("Webhook body is not valid JSON", code="INVALID_PAYLOAD") from exc
        if not isinstance(payload, dict):
            raise ValidationException("Webhook body must be an object", code="INVALID_PAYLOAD")

        event = str(payload.get("event") or "")
        entities = payload.get("payload") or {}

        if event.startswith("payment."):
            entity = (entities.get("payment") or {}).get("entity") or {}
            return {"event": event, "status": self._handle_payment_event(event, entity)}
        if event == "refund.processed":
            entity = (entities.get("refund") or {}).get("entity") or {}
            notes = entity.get("notes")
            try:
                amount = int(entity.get("amount") or 0)
            except (TypeError, ValueError) as exc:
                raise ValidationException(
                    "Refund amount must be an integer", code="INVALID_PAYLOAD"
                ) from exc
            payment = self.cancellation_service.record_gateway_refund(
                str(entity.get("payment_id") or ""),
                amount,
                reason=notes.get("reason") if isinstance(notes, dict) else None,
                gateway_refund_id=entity.get("id"),
            )
            return {"event": event, "status": "processed" if payment is not None else "ignored"}

        self.logger.info("Ignoring webhook event %s", event)
        return {"event": event, "status": "ignored"}

    def _handle_payment_event(self, event: str, entity: Dict[str, Any]) -> str:
        order_id = entity.get("order_id")
        gateway_payment_id = entity.get("id")
        payment = self.payment_repository.get_by_gateway_order_id(order_id) if order_id else None
        if payment is None or not gateway_payment_id:
            self.logger.warning("Webhook %s for unknown order %s", event, order_id)
            return "ignored"

        if event == "payment.captured":
            with self.transaction():
                result = self._settle(payment, gateway_payment_id, None)
            return "duplicate" if result.replayed else "processed"

        if event == "payment.authorized":
            with self.transaction():
                self.db.refresh(payment)
                applied = self.payment_repository.transition_status(
                    payment,
                    [PaymentStatus.CREATED],
                    PaymentStatus.AUTHORIZED,
                    gateway_payment_id=gateway_payment_id,
                )
            return "processed" if applied else "duplicate"

        if event == "payment.failed":
            with self.transaction():
                self.db.refresh(payment)
                applied = self.payment_repository.transition_status(
                    payment,
                    [PaymentStatus.CREATED, PaymentStatus.AUTHORIZED],
                    PaymentStatus.FAILED,
                    gateway_payment_id=gateway_payment_id,
                    failure_reason=str(entity.get("error_description") or "payment_failed")[:500],
                )
            return "processed" if applied else "duplicate"

        self.logger.info("Ignoring webhook event %s", event)
        return "ignored"

    def _load_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id, load_relationships=False)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

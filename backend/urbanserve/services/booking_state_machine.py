# backend/urbanserve/services/booking_state_machine.py
"""
Booking State Machine.

Owns the authoritative booking status. Every status change is checked
against the capability table in ``domain.booking_transitions`` and written
with a conditional UPDATE keyed on the status the caller observed, so two
racing writers end with one success and one ConflictException.

Other services reuse ``apply_transition`` inside their own transaction;
``transition`` is the standalone entry point that owns its transaction.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.config import settings
from ..core.enums import RoleName
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    IllegalStateException,
    NotFoundException,
    ValidationException,
)
from ..domain.assignment import Assigned
from ..domain.booking_transitions import allowed_roles
from ..models.admin_action import AdminActionType
from ..models.booking import Booking, BookingStatus
from ..models.payment import PaymentStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.payment_repository import PaymentRepository
from .assignment_validator import AssignmentValidator
from .audit_service import AuditService
from .base import BaseService
from .payout_service import PayoutService
from .pricing_service import PriceSnapshot, compute_breakdown

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_status(value: Union[str, BookingStatus], field: str = "target_status") -> BookingStatus:
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(value)
    except ValueError:
        raise ValidationException(
            f"Unknown booking status: {value}",
            code="INVALID_STATUS",
            details={field: value},
        )


class BookingStateMachine(BaseService):
    """Creates bookings and drives them through the legal status edges."""

    def __init__(
        self,
        db: Session,
        booking_repository: Optional[BookingRepository] = None,
        payment_repository: Optional[PaymentRepository] = None,
        assignment_validator: Optional[AssignmentValidator] = None,
        audit_service: Optional[AuditService] = None,
        payout_service: Optional[PayoutService] = None,
    ):
        super().__init__(db)
        self.booking_repository = booking_repository or RepositoryFactory.create_booking_repository(db)
        self.payment_repository = payment_repository or RepositoryFactory.create_payment_repository(db)
        self.catalog_repository = RepositoryFactory.create_catalog_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.assignment_validator = assignment_validator or AssignmentValidator(db)
        self.audit_service = audit_service or AuditService(db)
        self.payout_service = payout_service or PayoutService(db)

    # ------------------------------------------------------------------
    # Creation and reads
    # ------------------------------------------------------------------

    @BaseService.measure_operation("booking.create")
    def create_booking(
        self,
        *,
        actor: Actor,
        customer_id: str,
        service_id: str,
        scheduled_at: datetime,
        address_id: str,
        professional_id: Optional[str] = None,
        price_snapshot: Optional[PriceSnapshot] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Create a booking in ``pending``.

        Raises:
            ForbiddenException: actor is neither the customer nor an admin
            ValidationException: past schedule, bad amounts, snapshot mismatch
            IneligibleProfessionalException: chosen professional fails validation
            NotFoundException: unknown customer or service
        """
        if not actor.is_admin and not (
            actor.role == RoleName.CUSTOMER and actor.id == customer_id
        ):
            raise ForbiddenException("Bookings can only be created by the customer or an admin")

        if _as_aware(scheduled_at) <= _utcnow():
            raise ValidationException(
                "Booking must be scheduled in the future",
                code="SCHEDULE_IN_PAST",
                details={"scheduled_at": scheduled_at.isoformat()},
            )
        if not address_id or not address_id.strip():
            raise ValidationException("An address is required", code="ADDRESS_REQUIRED")

        customer = self.user_repository.get_profile(customer_id)
        if customer is None:
            raise NotFoundException(f"Customer {customer_id} not found")
        if customer.role != RoleName.CUSTOMER or not customer.is_active:
            raise ValidationException(
                "Bookings can only be made for an active customer",
                code="INVALID_CUSTOMER",
                details={"customer_id": customer_id},
            )

        service = self.catalog_repository.get_service(service_id)
        if service is None:
            raise NotFoundException(f"Service {service_id} not found")
        if not service.is_active:
            raise ValidationException(
                "Service is not currently offered",
                code="SERVICE_INACTIVE",
                details={"service_id": service_id},
            )

        offering_id: Optional[str] = None
        if professional_id:
            check = self.assignment_validator.ensure_eligible(professional_id, service_id)
            price = check.effective_price
            duration = check.effective_duration_minutes
            offering_id = check.offering_id
        else:
            price = service.base_price
            duration = service.duration_minutes

        snapshot = price_snapshot or PriceSnapshot(total_amount=price)
        if not actor.is_admin and (snapshot.service_fee is not None or snapshot.discount_amount):
            raise ForbiddenException("Only admins can override the fee or apply a discount")
        if snapshot.total_amount != price:
            raise ValidationException(
                "Price has changed since it was quoted",
                code="PRICE_MISMATCH",
                details={"quoted": snapshot.total_amount, "current": price},
            )
        fee = settings.default_service_fee if snapshot.service_fee is None else snapshot.service_fee
        breakdown = compute_breakdown(snapshot.total_amount, fee, snapshot.discount_amount)

        with self.transaction():
            booking = self.booking_repository.create(
                customer_id=customer_id,
                professional_id=professional_id or None,
                service_id=service_id,
                professional_service_id=offering_id,
                address_id=address_id,
                scheduled_at=scheduled_at,
                duration_minutes=duration,
                total_amount=breakdown.total_amount,
                service_fee=breakdown.service_fee,
                discount_amount=breakdown.discount_amount,
                final_amount=breakdown.final_amount,
                currency=settings.default_currency,
                status=BookingStatus.PENDING.value,
                notes=notes,
            )

        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            customer_id=customer_id,
            final_amount=booking.final_amount,
        )
        return booking

    def get_booking(self, booking_id: str, actor: Actor) -> Booking:
        booking = self._load(booking_id)
        if not self._can_view(actor, booking):
            raise ForbiddenException("You do not have access to this booking")
        return booking

    def list_bookings(self, actor: Actor, *, limit: int = 50) -> List[Booking]:
        if actor.role == RoleName.PROFESSIONAL:
            return self.booking_repository.get_for_professional(actor.id, limit=limit)
        if actor.role == RoleName.CUSTOMER:
            return self.booking_repository.get_for_customer(actor.id, limit=limit)
        raise ForbiddenException("Only customers and professionals have a booking list")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @BaseService.measure_operation("booking.transition")
    def transition(
        self,
        booking_id: str,
        target_status: Union[str, BookingStatus],
        actor: Actor,
        *,
        expected_status: Union[str, BookingStatus, None] = None,
        reason: Optional[str] = None,
    ) -> Booking:
        """Apply one legal transition in its own transaction."""
        with self.transaction():
            return self.apply_transition(
                booking_id,
                target_status,
                actor,
                expected_status=expected_status,
                reason=reason,
            )

    def apply_transition(
        self,
        booking_id: str,
        target_status: Union[str, BookingStatus],
        actor: Actor,
        *,
        expected_status: Union[str, BookingStatus, None] = None,
        reason: Optional[str] = None,
        audit: bool = True,
    ) -> Booking:
        """
        Apply a transition inside the caller's transaction.

        Checks run in a fixed order: existence, expected status, edge,
        role, ownership, then edge-specific preconditions. ``audit=False``
        is for callers that write their own, more specific admin action.
        """
        target = _parse_status(target_status)
        expected = _parse_status(expected_status, "expected_status") if expected_status else None

        booking = self._load(booking_id)
        current = BookingStatus(booking.status)

        if expected is not None and current != expected:
            raise ConflictException(
                "Booking status changed; re-read and retry",
                code="STATUS_CONFLICT",
                details={"expected_status": expected.value, "current_status": current.value},
            )
        if expected is not None and current == target:
            raise ConflictException(
                "Booking is already in the requested status",
                code="STATUS_CONFLICT",
                details={"current_status": current.value},
            )

        roles = allowed_roles(current, target)
        if not roles:
            raise IllegalStateException(
                f"Cannot move a {current.value} booking to {target.value}",
                current_status=current.value,
                target_status=target.value,
            )
        if actor.role not in roles:
            raise ForbiddenException(
                f"Role {actor.role.value} may not move a booking from {current.value} to {target.value}",
                details={"current_status": current.value, "target_status": target.value},
            )
        self._ensure_owner(actor, booking)

        fields: Dict[str, Any] = {}
        now = _utcnow()
        cleaned_reason = (reason or "").strip()
        if target == BookingStatus.CANCELLED:
            if not cleaned_reason:
                raise ValidationException(
                    "A cancellation reason is required", code="REASON_REQUIRED"
                )
            fields.update(
                cancelled_at=now,
                cancelled_by_id=actor.id,
                cancellation_reason=reason,
            )
        elif target == BookingStatus.CONFIRMED:
            if not isinstance(booking.assignment, Assigned):
                raise ValidationException(
                    "A booking needs an assigned professional before it can be confirmed",
                    code="PROFESSIONAL_REQUIRED",
                    details={"booking_id": booking.id},
                )
            fields["confirmed_at"] = now
        elif target == BookingStatus.COMPLETED:
            fields["completed_at"] = now

        applied = self.booking_repository.transition_status(booking, current, target, **fields)
        prometheus_metrics.record_booking_transition(
            current.value, target.value, "applied" if applied else "conflict"
        )
        if not applied:
            self.logger.info(
                "Lost status race on booking %s (%s -> %s)", booking_id, current.value, target.value
            )
            raise ConflictException(
                "Booking was modified concurrently; re-read and retry",
                code="STATUS_CONFLICT",
                details={"expected_status": current.value, "target_status": target.value},
            )

        if target == BookingStatus.COMPLETED:
            self.payout_service.record_completion(booking)
        elif target == BookingStatus.CANCELLED:
            self._flag_captured_payments(booking)

        if audit and actor.is_admin:
            cancelled = target == BookingStatus.CANCELLED
            self.audit_service.record(
                actor=actor,
                action_type=(
                    AdminActionType.BOOKING_CANCELLED
                    if cancelled
                    else AdminActionType.BOOKING_STATUS_CHANGED
                ),
                target_type="booking",
                target_id=booking.id,
                description=f"Booking moved from {current.value} to {target.value}",
                details={
                    "from_status": current.value,
                    "to_status": target.value,
                    "reason": reason,
                },
            )

        self.logger.info(
            "Booking %s moved %s -> %s by %s %s",
            booking.id,
            current.value,
            target.value,
            actor.role.value,
            actor.id,
        )
        return booking

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id, load_relationships=False)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

    def _ensure_owner(self, actor: Actor, booking: Booking) -> None:
        if actor.role == RoleName.CUSTOMER and booking.customer_id != actor.id:
            raise ForbiddenException("Customers can only change their own bookings")
        if actor.role == RoleName.PROFESSIONAL and booking.professional_id != actor.id:
            raise ForbiddenException("Professionals can only change bookings assigned to them")

    def _can_view(self, actor: Actor, booking: Booking) -> bool:
        if actor.is_privileged():
            return True
        if actor.role == RoleName.CUSTOMER:
            return booking.customer_id == actor.id
        return booking.professional_id == actor.id

    def _flag_captured_payments(self, booking: Booking) -> None:
        """Cancellation never refunds; it records that captured money must go back."""
        for payment in self.payment_repository.get_for_booking(booking.id):
            if payment.status == PaymentStatus.COMPLETED and not payment.refund_required:
                payment.refund_required = True
                self.logger.warning(
                    "Booking %s cancelled with captured payment %s; refund required",
                    booking.id,
                    payment.id,
                )
        self.payment_repository.flush()

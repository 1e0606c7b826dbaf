# backend/urbanserve/services/admin_override_service.py
"""
Admin Override Gateway.

Privileged mutations outside the normal customer/professional edges. Each
one writes exactly one admin action in the same transaction as the change;
if the audit write fails the change is rolled back with it.
"""

from datetime import datetime
import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.enums import RoleName
from ..core.exceptions import (
    ForbiddenException,
    IllegalStateException,
    NotFoundException,
    ValidationException,
)
from ..integrations.payment_gateway_client import PaymentGatewayClient
from ..models.admin_action import AdminAction, AdminActionType
from ..models.booking import Booking, BookingStatus
from ..models.payment import Payment
from ..models.user import Profile
from ..repositories.factory import RepositoryFactory
from .assignment_validator import AssignmentValidator
from .audit_service import AuditService
from .base import BaseService
from .booking_state_machine import BookingStateMachine
from .cancellation_service import CancellationService

logger = logging.getLogger(__name__)


class AdminOverrideService(BaseService):
    def __init__(
        self,
        db: Session,
        gateway: PaymentGatewayClient,
        audit_service: Optional[AuditService] = None,
        assignment_validator: Optional[AssignmentValidator] = None,
        state_machine: Optional[BookingStateMachine] = None,
        cancellation_service: Optional[CancellationService] = None,
    ):
        super().__init__(db)
        self.audit_service = audit_service or AuditService(db)
        self.assignment_validator = assignment_validator or AssignmentValidator(db)
        self.state_machine = state_machine or BookingStateMachine(
            db,
            assignment_validator=self.assignment_validator,
            audit_service=self.audit_service,
        )
        self.cancellation_service = cancellation_service or CancellationService(
            db,
            gateway,
            state_machine=self.state_machine,
            audit_service=self.audit_service,
        )
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if not actor.is_admin:
            raise ForbiddenException("Admin privileges required")

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    @BaseService.measure_operation("admin.assign_professional")
    def assign_professional(self, booking_id: str, professional_id: str, actor: Actor) -> Booking:
        """
        Assign a professional to a pending booking and confirm it.

        Eligibility is re-checked now, whatever was checked at booking time.
        The booking's price snapshot is kept as is.
        """
        self._require_admin(actor)

        with self.transaction():
            booking = self.booking_repository.get_by_id(booking_id, load_relationships=False)
            if booking is None:
                raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
            if booking.status != BookingStatus.PENDING:
                raise IllegalStateException(
                    "Only pending bookings can be assigned",
                    current_status=booking.status,
                    target_status=BookingStatus.CONFIRMED.value,
                )

            check = self.assignment_validator.ensure_eligible(professional_id, booking.service_id)
            previous_professional_id = booking.professional_id

            booking.professional_id = professional_id
            booking.professional_service_id = check.offering_id
            self.booking_repository.flush()

            self.state_machine.apply_transition(
                booking.id,
                BookingStatus.CONFIRMED,
                actor,
                expected_status=BookingStatus.PENDING,
                audit=False,
            )
            self.audit_service.record(
                actor=actor,
                action_type=AdminActionType.BOOKING_ASSIGNED,
                target_type="booking",
                target_id=booking.id,
                description=f"Assigned professional {professional_id} and confirmed booking",
                details={
                    "professional_id": professional_id,
                    "previous_professional_id": previous_professional_id,
                    "offering_id": check.offering_id,
                    "effective_price": check.effective_price,
                    "final_amount": booking.final_amount,
                },
            )

        self.log_operation("assign_professional", booking_id=booking_id, professional_id=professional_id)
        return booking

    @BaseService.measure_operation("admin.force_transition")
    def force_transition(
        self,
        booking_id: str,
        target_status: Union[str, BookingStatus],
        actor: Actor,
        *,
        reason: Optional[str] = None,
        expected_status: Union[str, BookingStatus, None] = None,
    ) -> Booking:
        self._require_admin(actor)
        with self.transaction():
            booking = self.state_machine.apply_transition(
                booking_id,
                target_status,
                actor,
                expected_status=expected_status,
                reason=reason,
            )
        return booking

    @BaseService.measure_operation("admin.issue_refund")
    def issue_refund(self, payment_id: str, amount: int, reason: str, actor: Actor) -> Payment:
        self._require_admin(actor)
        return self.cancellation_service.issue_refund(payment_id, amount, reason, actor)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @BaseService.measure_operation("admin.approve_professional")
    def approve_professional(
        self, user_id: str, actor: Actor, notes: Optional[str] = None
    ) -> Profile:
        return self._update_professional(
            user_id,
            actor,
            is_verified=True,
            is_active=True,
            action_type=AdminActionType.PROFESSIONAL_APPROVED,
            description="Professional approved",
            note=notes,
        )

    @BaseService.measure_operation("admin.reject_professional")
    def reject_professional(
        self, user_id: str, actor: Actor, reason: Optional[str] = None
    ) -> Profile:
        return self._update_professional(
            user_id,
            actor,
            is_verified=False,
            is_active=False,
            action_type=AdminActionType.PROFESSIONAL_REJECTED,
            description="Professional rejected",
            note=reason,
        )

    @BaseService.measure_operation("admin.suspend_user")
    def suspend_user(self, user_id: str, actor: Actor, reason: Optional[str] = None) -> Profile:
        self._require_admin(actor)
        with self.transaction():
            profile = self._load_profile(user_id)
            if profile.role == RoleName.ADMIN:
                raise ForbiddenException("Admin accounts cannot be suspended")
            self.user_repository.set_flags(profile, is_active=False)
            self._audit_user(actor, profile, AdminActionType.USER_SUSPENDED, "User suspended", reason)
        return profile

    @BaseService.measure_operation("admin.activate_user")
    def activate_user(self, user_id: str, actor: Actor, reason: Optional[str] = None) -> Profile:
        self._require_admin(actor)
        with self.transaction():
            profile = self._load_profile(user_id)
            self.user_repository.set_flags(profile, is_active=True)
            self._audit_user(actor, profile, AdminActionType.USER_ACTIVATED, "User activated", reason)
        return profile

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def list_actions(
        self,
        actor: Actor,
        *,
        actor_id: Optional[str] = None,
        action_type: Optional[str] = None,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AdminAction], int]:
        return self.audit_service.list_actions(
            actor,
            actor_id=actor_id,
            action_type=action_type,
            target_type=target_type,
            target_id=target_id,
            start=start,
            end=end,
            limit=limit,
            offset=offset,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _update_professional(
        self,
        user_id: str,
        actor: Actor,
        *,
        is_verified: bool,
        is_active: bool,
        action_type: AdminActionType,
        description: str,
        note: Optional[str],
    ) -> Profile:
        self._require_admin(actor)
        with self.transaction():
            profile = self._load_profile(user_id)
            if profile.role != RoleName.PROFESSIONAL:
                raise ValidationException(
                    "User is not a professional",
                    code="NOT_A_PROFESSIONAL",
                    details={"user_id": user_id, "role": profile.role},
                )
            self.user_repository.set_flags(profile, is_verified=is_verified, is_active=is_active)
            self._audit_user(actor, profile, action_type, description, note)
        return profile

    def _load_profile(self, user_id: str) -> Profile:
        profile = self.user_repository.get_profile(user_id)
        if profile is None:
            raise NotFoundException(f"User {user_id} not found", code="USER_NOT_FOUND")
        return profile

    def _audit_user(
        self,
        actor: Actor,
        profile: Profile,
        action_type: AdminActionType,
        description: str,
        note: Optional[str],
    ) -> None:
        self.audit_service.record(
            actor=actor,
            action_type=action_type,
            target_type="user",
            target_id=profile.id,
            description=description,
            details={
                "role": profile.role,
                "is_active": profile.is_active,
                "is_verified": profile.is_verified,
                "note": note,
            },
        )

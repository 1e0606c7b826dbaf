from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tests.helpers import actor_for, future
from urbanserve.core.actor import Actor
from urbanserve.core.enums import RoleName
from urbanserve.core.exceptions import (
    ConflictException,
    ForbiddenException,
    IllegalStateException,
    IneligibleProfessionalException,
    NotFoundException,
    ValidationException,
)
from urbanserve.database import Base
from urbanserve.domain.assignment import Assigned, Unassigned
from urbanserve.models.admin_action import AdminAction
from urbanserve.models.booking import Booking, BookingStatus
from urbanserve.models.payout import ProfessionalPayout
from urbanserve.models.service_catalog import ProfessionalService, Service
from urbanserve.models.user import Profile
from urbanserve.services.booking_state_machine import BookingStateMachine
from urbanserve.services.pricing_service import PriceSnapshot


def _create(db, actor, customer, service, **kwargs):
    params = dict(
        actor=actor,
        customer_id=customer.id,
        service_id=service.id,
        scheduled_at=future(),
        address_id="addr_home_1",
    )
    params.update(kwargs)
    return BookingStateMachine(db).create_booking(**params)


class TestCreateBooking:
    def test_customer_creates_pending_booking_at_catalog_price(
        self, db, customer, customer_actor, service
    ):
        booking = _create(db, customer_actor, customer, service)

        assert booking.status == BookingStatus.PENDING
        assert booking.total_amount == 500
        assert booking.service_fee == 5000
        assert booking.final_amount == 5500
        assert booking.currency == "INR"
        assert isinstance(booking.assignment, Unassigned)

    def test_scenario_a_money_snapshot(self, make_booking):
        booking = make_booking(total_amount=500, service_fee=50, discount_amount=0)

        assert booking.final_amount == 550

    def test_chosen_professional_sets_offering_price(
        self, db, customer, customer_actor, service, professional, make_offering
    ):
        offering = make_offering(professional, service, price=700, duration_minutes=45)

        booking = _create(
            db,
            customer_actor,
            customer,
            service,
            professional_id=professional.id,
            price_snapshot=PriceSnapshot(total_amount=700),
        )

        assert booking.assignment == Assigned(professional.id)
        assert booking.professional_service_id == offering.id
        assert booking.total_amount == 700
        assert booking.duration_minutes == 45

    def test_ineligible_professional_rejected(
        self, db, customer, customer_actor, service, professional
    ):
        with pytest.raises(IneligibleProfessionalException):
            _create(db, customer_actor, customer, service, professional_id=professional.id)

        assert db.query(Booking).count() == 0

    def test_schedule_must_be_in_the_future(self, db, customer, customer_actor, service):
        with pytest.raises(ValidationException) as exc:
            _create(
                db,
                customer_actor,
                customer,
                service,
                scheduled_at=datetime.now(timezone.utc) - timedelta(minutes=1),
            )
        assert exc.value.code == "SCHEDULE_IN_PAST"

    def test_naive_schedule_treated_as_utc(self, db, customer, customer_actor, service):
        naive_past = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=1)
        with pytest.raises(ValidationException):
            _create(db, customer_actor, customer, service, scheduled_at=naive_past)

    def test_stale_quote_rejected(self, db, customer, customer_actor, service):
        with pytest.raises(ValidationException) as exc:
            _create(
                db,
                customer_actor,
                customer,
                service,
                price_snapshot=PriceSnapshot(total_amount=450),
            )
        assert exc.value.code == "PRICE_MISMATCH"

    def test_customer_cannot_apply_discount(self, db, customer, customer_actor, service):
        with pytest.raises(ForbiddenException):
            _create(
                db,
                customer_actor,
                customer,
                service,
                price_snapshot=PriceSnapshot(total_amount=500, discount_amount=100),
            )

    def test_discount_larger_than_total_rejected(self, db, customer, admin_actor, service):
        with pytest.raises(ValidationException):
            _create(
                db,
                admin_actor,
                customer,
                service,
                price_snapshot=PriceSnapshot(total_amount=500, service_fee=0, discount_amount=501),
            )

    def test_customer_cannot_book_for_someone_else(
        self, db, customer, service, make_profile
    ):
        other = make_profile(RoleName.CUSTOMER)
        with pytest.raises(ForbiddenException):
            _create(db, actor_for(other), customer, service)

    def test_address_required(self, db, customer, customer_actor, service):
        with pytest.raises(ValidationException) as exc:
            _create(db, customer_actor, customer, service, address_id="  ")
        assert exc.value.code == "ADDRESS_REQUIRED"

    def test_unknown_service(self, db, customer, customer_actor):
        missing = Service(id="01HXXXXXXXXXXXXXXXXXXXXXXX", name="x", base_price=1, duration_minutes=1)
        with pytest.raises(NotFoundException):
            _create(db, customer_actor, customer, missing)


class TestTransitions:
    def test_full_happy_path_writes_payout_once(
        self, db, make_booking, professional, offering, admin_actor, professional_actor
    ):
        booking = make_booking(professional=professional)
        machine = BookingStateMachine(db)

        machine.transition(booking.id, "confirmed", admin_actor)
        machine.transition(booking.id, "in_progress", professional_actor)
        done = machine.transition(booking.id, BookingStatus.COMPLETED, professional_actor)

        assert done.status == BookingStatus.COMPLETED
        assert done.confirmed_at is not None
        assert done.completed_at is not None
        payouts = db.query(ProfessionalPayout).filter_by(booking_id=booking.id).all()
        assert len(payouts) == 1
        assert payouts[0].amount == 550 * 80 // 100
        assert payouts[0].professional_id == professional.id

    def test_confirm_requires_assignment(self, db, make_booking, admin_actor):
        booking = make_booking()

        with pytest.raises(ValidationException) as exc:
            BookingStateMachine(db).transition(booking.id, "confirmed", admin_actor)

        assert exc.value.code == "PROFESSIONAL_REQUIRED"
        db.refresh(booking)
        assert booking.status == BookingStatus.PENDING

    def test_illegal_edge_leaves_booking_unchanged(self, db, make_booking, admin_actor):
        booking = make_booking()

        with pytest.raises(IllegalStateException):
            BookingStateMachine(db).transition(booking.id, "completed", admin_actor)

        db.refresh(booking)
        assert booking.status == BookingStatus.PENDING

    def test_customer_cannot_confirm(self, db, make_booking, professional, offering, customer_actor):
        booking = make_booking(professional=professional)

        with pytest.raises(ForbiddenException):
            BookingStateMachine(db).transition(booking.id, "confirmed", customer_actor)

    def test_other_professional_cannot_start(
        self, db, make_booking, professional, offering, admin_actor, make_profile
    ):
        booking = make_booking(professional=professional)
        machine = BookingStateMachine(db)
        machine.transition(booking.id, "confirmed", admin_actor)
        intruder = make_profile(RoleName.PROFESSIONAL)

        with pytest.raises(ForbiddenException):
            machine.transition(booking.id, "in_progress", actor_for(intruder))

    def test_customer_cannot_cancel_in_progress(
        self, db, make_booking, professional, offering, admin_actor, professional_actor, customer_actor
    ):
        booking = make_booking(professional=professional)
        machine = BookingStateMachine(db)
        machine.transition(booking.id, "confirmed", admin_actor)
        machine.transition(booking.id, "in_progress", professional_actor)

        with pytest.raises(ForbiddenException):
            machine.transition(booking.id, "cancelled", customer_actor, reason="changed my mind")

    def test_cancel_requires_reason(self, db, make_booking, customer_actor):
        booking = make_booking()

        with pytest.raises(ValidationException):
            BookingStateMachine(db).transition(booking.id, "cancelled", customer_actor, reason=" ")

    def test_customer_cancel_records_who_and_why(self, db, make_booking, customer_actor):
        booking = make_booking()

        cancelled = BookingStateMachine(db).transition(
            booking.id, "cancelled", customer_actor, reason="Plans changed"
        )

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancelled_by_id == customer_actor.id
        assert cancelled.cancellation_reason == "Plans changed"
        # Customer actions are not admin actions
        assert db.query(AdminAction).count() == 0

    def test_admin_transition_is_audited(self, db, make_booking, admin_actor):
        booking = make_booking()

        BookingStateMachine(db).transition(
            booking.id, "cancelled", admin_actor, reason="Duplicate booking"
        )

        actions = db.query(AdminAction).filter_by(target_id=booking.id).all()
        assert len(actions) == 1
        assert actions[0].action_type == "booking_cancelled"
        assert actions[0].actor_id == admin_actor.id

    def test_stale_expected_status_conflicts(self, db, make_booking, customer_actor):
        booking = make_booking()

        with pytest.raises(ConflictException):
            BookingStateMachine(db).transition(
                booking.id,
                "cancelled",
                customer_actor,
                expected_status="confirmed",
                reason="x",
            )

    def test_repeat_with_expected_status_conflicts_not_double_applied(
        self, db, make_booking, professional, offering, admin_actor
    ):
        booking = make_booking(professional=professional)
        machine = BookingStateMachine(db)
        machine.transition(booking.id, "confirmed", admin_actor, expected_status="pending")

        with pytest.raises(ConflictException):
            machine.transition(booking.id, "confirmed", admin_actor, expected_status="pending")

    def test_unknown_status_is_validation_error(self, db, make_booking, admin_actor):
        booking = make_booking()

        with pytest.raises(ValidationException):
            BookingStateMachine(db).transition(booking.id, "teleported", admin_actor)

    def test_unknown_booking(self, db, admin_actor):
        with pytest.raises(NotFoundException):
            BookingStateMachine(db).transition("01HNOPE0000000000000000000", "confirmed", admin_actor)

    def test_terminal_booking_cannot_move(self, db, make_booking, admin_actor):
        booking = make_booking()
        machine = BookingStateMachine(db)
        machine.transition(booking.id, "cancelled", admin_actor, reason="x")
        machine.transition(booking.id, "refunded", admin_actor)

        for target in BookingStatus:
            with pytest.raises((IllegalStateException, ConflictException)):
                machine.transition(booking.id, target, admin_actor, reason="x")


class TestReads:
    def test_visibility(self, db, make_booking, customer_actor, make_profile, admin_actor):
        booking = make_booking()
        machine = BookingStateMachine(db)
        stranger = actor_for(make_profile(RoleName.CUSTOMER))

        assert machine.get_booking(booking.id, customer_actor).id == booking.id
        assert machine.get_booking(booking.id, admin_actor).id == booking.id
        with pytest.raises(ForbiddenException):
            machine.get_booking(booking.id, stranger)

    def test_list_bookings_by_role(
        self, db, make_booking, professional, offering, customer_actor, professional_actor, admin_actor
    ):
        assigned = make_booking(professional=professional)
        make_booking()
        machine = BookingStateMachine(db)

        assert len(machine.list_bookings(customer_actor)) == 2
        assert [b.id for b in machine.list_bookings(professional_actor)] == [assigned.id]
        with pytest.raises(ForbiddenException):
            machine.list_bookings(admin_actor)


def test_concurrent_transitions_one_wins(tmp_path):
    """Two sessions race on the same pending booking; exactly one succeeds."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    setup = Session()
    customer = Profile(role="customer", full_name="C", email="c@example.com")
    pro = Profile(role="professional", full_name="P", email="p@example.com", is_verified=True)
    admin = Profile(role="admin", full_name="A", email="a@example.com")
    service = Service(name="Plumbing", base_price=500, duration_minutes=60)
    setup.add_all([customer, pro, admin, service])
    setup.commit()
    setup.add(ProfessionalService(professional_id=pro.id, service_id=service.id))
    setup.commit()
    booking = BookingStateMachine(setup).create_booking(
        actor=actor_for(admin),
        customer_id=customer.id,
        service_id=service.id,
        scheduled_at=future(),
        address_id="addr_1",
        professional_id=pro.id,
        price_snapshot=PriceSnapshot(total_amount=500, service_fee=50),
    )
    setup.close()

    session_a, session_b = Session(), Session()
    try:
        # B reads the booking first, then A commits a transition
        assert session_b.get(Booking, booking.id).status == BookingStatus.PENDING
        BookingStateMachine(session_a).transition(
            booking.id, "confirmed", actor_for(admin), expected_status="pending"
        )

        with pytest.raises(ConflictException):
            BookingStateMachine(session_b).transition(
                booking.id,
                "cancelled",
                Actor(id=customer.id, role=RoleName.CUSTOMER),
                expected_status="pending",
                reason="race",
            )

        check = Session()
        assert check.get(Booking, booking.id).status == BookingStatus.CONFIRMED
        check.close()
    finally:
        session_a.close()
        session_b.close()
        engine.dispose()

import pytest
from sqlalchemy.exc import IntegrityError

from urbanserve.models.payment import Payment, PaymentStatus
from urbanserve.repositories.payment_repository import PaymentRepository


def _payment(db, booking, status, order_id):
    payment = Payment(
        booking_id=booking.id,
        amount=booking.final_amount,
        currency="INR",
        status=status.value,
        gateway_order_id=order_id,
    )
    db.add(payment)
    db.flush()
    return payment


def test_fail_open_payments_touches_only_open_rows_of_the_booking(db, make_booking):
    booking = make_booking()
    other = make_booking()
    _payment(db, booking, PaymentStatus.FAILED, "order_old")
    _payment(db, booking, PaymentStatus.AUTHORIZED, "order_open")
    _payment(db, other, PaymentStatus.CREATED, "order_other")
    repo = PaymentRepository(db)

    touched = repo.fail_open_payments(booking.id, "superseded")

    assert touched == 1
    db.expire_all()
    statuses = {p.gateway_order_id: p.status for p in repo.get_for_booking(booking.id)}
    assert statuses == {"order_old": "failed", "order_open": "failed"}
    assert repo.get_by_gateway_order_id("order_old").failure_reason is None
    assert repo.get_by_gateway_order_id("order_other").status == "created"


def test_one_open_payment_per_booking(db, make_booking):
    booking = make_booking()
    _payment(db, booking, PaymentStatus.CREATED, "order_1")

    with pytest.raises(IntegrityError):
        _payment(db, booking, PaymentStatus.AUTHORIZED, "order_2")


def test_transition_from_any_expected_status(db, make_booking):
    booking = make_booking()
    payment = _payment(db, booking, PaymentStatus.AUTHORIZED, "order_x")
    repo = PaymentRepository(db)

    applied = repo.transition_status(
        payment,
        [PaymentStatus.CREATED, PaymentStatus.AUTHORIZED],
        PaymentStatus.COMPLETED,
        gateway_payment_id="pay_x",
    )

    assert applied is True
    assert payment.status == PaymentStatus.COMPLETED
    assert repo.get_by_gateway_payment_id("pay_x").id == payment.id
    assert repo.transition_status(payment, [PaymentStatus.CREATED], PaymentStatus.FAILED) is False

import pytest

from tests.helpers import auth, sign_checkout
from urbanserve.core.enums import RoleName
from urbanserve.services.payment_settlement_service import PaymentSettlementService


@pytest.mark.parametrize(
    "method,path",
    [
        ("post", "/api/v1/admin/bookings/bk_1/assign"),
        ("post", "/api/v1/admin/bookings/bk_1/status"),
        ("post", "/api/v1/admin/payments/pay_1/refund"),
        ("post", "/api/v1/admin/users/u_1/suspend"),
        ("get", "/api/v1/admin/audit-log"),
    ],
)
def test_non_admin_is_forbidden(client, customer, method, path):
    r = getattr(client, method)(path, headers=auth(customer))

    assert r.status_code == 403


def test_assign_professional(client, admin, professional, offering, make_booking):
    booking = make_booking()

    r = client.post(
        f"/api/v1/admin/bookings/{booking.id}/assign",
        json={"professional_id": professional.id},
        headers=auth(admin),
    )

    assert r.status_code == 200
    assert r.json()["status"] == "confirmed"
    assert r.json()["professional_id"] == professional.id


def test_assign_ineligible_professional(client, admin, make_profile, make_booking):
    booking = make_booking()
    no_offering = make_profile(RoleName.PROFESSIONAL)

    r = client.post(
        f"/api/v1/admin/bookings/{booking.id}/assign",
        json={"professional_id": no_offering.id},
        headers=auth(admin),
    )

    assert r.status_code == 422


def test_force_status(client, admin, make_booking):
    booking = make_booking()

    r = client.post(
        f"/api/v1/admin/bookings/{booking.id}/status",
        json={"target_status": "cancelled", "reason": "duplicate booking"},
        headers=auth(admin),
    )

    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"


def test_cancel_then_refund(client, db, gateway, admin, customer_actor, professional, offering, make_booking):
    booking = make_booking(professional=professional, total_amount=500, service_fee=50)
    settlement = PaymentSettlementService(db, gateway)
    intent = settlement.create_payment_intent(booking.id, customer_actor)
    result = settlement.verify_payment(
        intent.gateway_order_id,
        "pay_admin_1",
        sign_checkout(intent.gateway_order_id, "pay_admin_1"),
        booking.id,
    )

    r = client.post(
        f"/api/v1/bookings/{booking.id}/cancel",
        json={"reason": "service unavailable"},
        headers=auth(admin),
    )
    assert r.status_code == 200

    r = client.post(
        f"/api/v1/admin/payments/{result.payment.id}/refund",
        json={"amount": 550, "reason": "service unavailable"},
        headers=auth(admin),
    )
    assert r.status_code == 200
    assert r.json()["status"] == "refunded"
    assert r.json()["refund_amount"] == 550

    r = client.get(f"/api/v1/bookings/{booking.id}", headers=auth(admin))
    assert r.json()["status"] == "refunded"


def test_refund_rejects_non_positive_amount(client, admin):
    r = client.post(
        "/api/v1/admin/payments/pay_1/refund",
        json={"amount": 0, "reason": "x"},
        headers=auth(admin),
    )

    assert r.status_code == 422


def test_professional_approval_without_body(client, admin, make_profile):
    applicant = make_profile(RoleName.PROFESSIONAL, is_verified=False, is_active=False)

    r = client.post(f"/api/v1/admin/professionals/{applicant.id}/approve", headers=auth(admin))

    assert r.status_code == 200
    assert r.json()["is_verified"] is True


def test_suspend_user_then_requests_are_refused(client, admin, customer):
    r = client.post(
        f"/api/v1/admin/users/{customer.id}/suspend",
        json={"note": "chargeback abuse"},
        headers=auth(admin),
    )
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    r = client.get("/api/v1/bookings", headers=auth(customer))
    assert r.status_code == 403

    r = client.post(f"/api/v1/admin/users/{customer.id}/activate", headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["is_active"] is True


def test_audit_log_lists_actions(client, admin, customer):
    client.post(f"/api/v1/admin/users/{customer.id}/suspend", headers=auth(admin))
    client.post(f"/api/v1/admin/users/{customer.id}/activate", headers=auth(admin))

    r = client.get(
        "/api/v1/admin/audit-log",
        params={"target_id": customer.id, "limit": 1},
        headers=auth(admin),
    )

    assert r.status_code == 200
    data = r.json()
    assert data["total"] == 2
    assert data["limit"] == 1
    assert len(data["items"]) == 1
    assert data["items"][0]["actor_id"] == admin.id

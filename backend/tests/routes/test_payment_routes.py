import json

import pytest

from tests.helpers import auth, sign_checkout, sign_webhook
from urbanserve.models.payment import Payment


@pytest.fixture
def booking(make_booking, professional, offering):
    return make_booking(professional=professional, total_amount=500, service_fee=50)


def _create_intent(client, customer, booking):
    r = client.post(
        "/api/v1/payments/intents", json={"booking_id": booking.id}, headers=auth(customer)
    )
    assert r.status_code == 201
    return r.json()


def test_intent_then_verify_confirms_booking(client, customer, booking):
    intent = _create_intent(client, customer, booking)
    assert intent["amount"] == 550
    assert intent["currency"] == "INR"
    assert intent["gateway_order_id"]

    order_id = intent["gateway_order_id"]
    r = client.post(
        "/api/v1/payments/verify",
        json={
            "booking_id": booking.id,
            "gateway_order_id": order_id,
            "gateway_payment_id": "pay_route_1",
            "signature": sign_checkout(order_id, "pay_route_1"),
        },
        headers=auth(customer),
    )

    assert r.status_code == 200
    data = r.json()
    assert data["booking_status"] == "confirmed"
    assert data["booking_confirmed"] is True
    assert data["payment"]["status"] == "completed"
    assert data["payment"]["gateway_payment_id"] == "pay_route_1"
    assert data["replayed"] is False


def test_verify_with_bad_signature(client, db, customer, booking):
    intent = _create_intent(client, customer, booking)

    r = client.post(
        "/api/v1/payments/verify",
        json={
            "booking_id": booking.id,
            "gateway_order_id": intent["gateway_order_id"],
            "gateway_payment_id": "pay_route_1",
            "signature": "0" * 64,
        },
        headers=auth(customer),
    )

    assert r.status_code == 400
    db.refresh(booking)
    assert booking.status == "pending"


def test_intent_for_someone_elses_booking(client, booking, make_profile):
    stranger = make_profile()

    r = client.post(
        "/api/v1/payments/intents", json={"booking_id": booking.id}, headers=auth(stranger)
    )

    assert r.status_code == 403


def test_webhook_capture_is_idempotent(client, db, customer, booking):
    intent = _create_intent(client, customer, booking)
    body = json.dumps(
        {
            "event": "payment.captured",
            "payload": {
                "payment": {
                    "entity": {"id": "pay_hook_1", "order_id": intent["gateway_order_id"]}
                }
            },
        }
    ).encode()
    headers = {"X-Razorpay-Signature": sign_webhook(body), "Content-Type": "application/json"}

    r = client.post("/api/v1/webhooks/payment-gateway", content=body, headers=headers)
    assert r.status_code == 200
    assert r.json() == {"event": "payment.captured", "status": "processed"}

    r = client.post("/api/v1/webhooks/payment-gateway", content=body, headers=headers)
    assert r.status_code == 200
    assert r.json()["status"] == "duplicate"

    db.refresh(booking)
    assert booking.status == "confirmed"
    assert db.query(Payment).filter_by(status="completed").count() == 1


def test_webhook_without_signature_rejected(client):
    r = client.post("/api/v1/webhooks/payment-gateway", content=b'{"event": "payment.captured"}')

    assert r.status_code == 400


def test_webhook_signed_over_different_bytes_rejected(client):
    body = b'{"event": "payment.failed"}'
    signature = sign_webhook(b'{"event":"payment.failed"}')

    r = client.post(
        "/api/v1/webhooks/payment-gateway",
        content=body,
        headers={"X-Razorpay-Signature": signature},
    )

    assert r.status_code == 400

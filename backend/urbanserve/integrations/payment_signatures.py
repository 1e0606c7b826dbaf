"""HMAC helpers for gateway checkout callbacks and webhooks."""

from __future__ import annotations

import hashlib
import hmac


def checkout_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Hex HMAC-SHA256 of ``order_id|payment_id``, as the hosted checkout signs it."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def webhook_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def _matches(expected: str, provided: str | None) -> bool:
    if not provided:
        return False
    # Exact lowercase hex, compared as bytes
    return hmac.compare_digest(
        expected.encode("ascii"), provided.encode("utf-8", "surrogateescape")
    )


def verify_checkout_signature(
    order_id: str, payment_id: str, signature: str | None, secret: str
) -> bool:
    if not secret:
        return False
    return _matches(checkout_signature(order_id, payment_id, secret), signature)


def verify_webhook_signature(raw_body: bytes, signature: str | None, secret: str) -> bool:
    if not secret:
        return False
    return _matches(webhook_signature(raw_body, secret), signature)

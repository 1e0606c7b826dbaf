"""Small helpers shared by the test modules."""

from datetime import datetime, timedelta, timezone

from urbanserve.core.actor import Actor
from urbanserve.core.config import settings
from urbanserve.core.enums import RoleName
from urbanserve.integrations.payment_signatures import checkout_signature, webhook_signature
from urbanserve.models.user import Profile


def actor_for(profile: Profile) -> Actor:
    return Actor(id=profile.id, role=RoleName(profile.role))


def future(hours: int = 48) -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=hours)


def sign_checkout(order_id: str, payment_id: str) -> str:
    return checkout_signature(order_id, payment_id, settings.checkout_signing_secret)


def sign_webhook(raw_body: bytes) -> str:
    return webhook_signature(raw_body, settings.webhook_secret)


def auth(profile: Profile) -> dict:
    return {"X-User-Id": profile.id}

"""External service clients."""

from ..core.config import settings
from .payment_gateway_client import (
    FakePaymentGatewayClient,
    PaymentGatewayClient,
    PaymentGatewayError,
)


def build_payment_gateway_client() -> PaymentGatewayClient:
    """Return the configured gateway client (the fake one outside production without keys)."""
    if settings.use_fake_payment_gateway:
        return FakePaymentGatewayClient()
    return PaymentGatewayClient(
        key_id=settings.payment_gateway_key_id,
        key_secret=settings.payment_gateway_key_secret,
        base_url=settings.payment_gateway_base_url,
        timeout=settings.payment_gateway_timeout_seconds,
        max_retries=settings.payment_gateway_max_retries,
        backoff_seconds=settings.payment_gateway_retry_backoff_seconds,
    )


__all__ = [
    "FakePaymentGatewayClient",
    "PaymentGatewayClient",
    "PaymentGatewayError",
    "build_payment_gateway_client",
]

import pytest
from pydantic import ValidationError

from urbanserve.core.config import FAKE_GATEWAY_SECRET, Settings


def test_missing_keys_fall_back_to_fake_gateway_outside_production():
    cfg = Settings(
        environment="development",
        payment_gateway_key_id="",
        payment_gateway_key_secret="",
        payment_gateway_webhook_secret="",
    )

    assert cfg.use_fake_payment_gateway is True
    assert cfg.checkout_signing_secret == FAKE_GATEWAY_SECRET
    assert cfg.webhook_secret == FAKE_GATEWAY_SECRET


def test_production_never_silently_uses_fake_gateway():
    cfg = Settings(
        environment="production",
        payment_gateway_key_id="",
        payment_gateway_key_secret="",
        use_fake_payment_gateway=False,
    )

    assert cfg.use_fake_payment_gateway is False
    assert cfg.checkout_signing_secret == ""


def test_webhook_secret_falls_back_to_key_secret():
    cfg = Settings(
        payment_gateway_key_id="rzp_live_x",
        payment_gateway_key_secret="key-secret",
        payment_gateway_webhook_secret="",
        use_fake_payment_gateway=False,
    )

    assert cfg.webhook_secret == "key-secret"


def test_currency_normalized_and_share_bounded():
    assert Settings(default_currency=" inr ").default_currency == "INR"
    with pytest.raises(ValidationError):
        Settings(professional_share_percent=120)


def test_postgres_url_scheme_rewritten():
    cfg = Settings(database_url="postgres://u:p@localhost/db")
    assert cfg.get_database_url() == "postgresql://u:p@localhost/db"

# backend/urbanserve/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

FAKE_GATEWAY_SECRET = "fake-gateway-secret"

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path} (exists={env_path.exists()})")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Deployment environment name",
    )
    is_testing: bool = Field(default=False, description="Set by the test suite")

    # Database
    database_url: str = Field(
        default="sqlite:///./urbanserve.db",
        description="SQLAlchemy URL for the primary store",
    )
    database_echo: bool = False

    # Payment gateway (Razorpay-compatible order/refund API)
    payment_gateway_base_url: str = Field(
        default="https://api.razorpay.com/v1",
        description="Base URL for the payment gateway REST API",
    )
    payment_gateway_key_id: str = Field(default="", description="Gateway API key id")
    payment_gateway_key_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Gateway API key secret; also signs checkout callbacks",
    )
    payment_gateway_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Webhook signing secret (falls back to the key secret)",
    )
    payment_gateway_timeout_seconds: float = Field(
        default=8.0,
        description="Hard timeout for a single gateway HTTP call",
    )
    payment_gateway_max_retries: int = Field(
        default=2,
        description="Retries on transport errors / 5xx before giving up",
    )
    payment_gateway_retry_backoff_seconds: float = 0.25
    use_fake_payment_gateway: bool = Field(
        default=False,
        description="Use the in-memory gateway (development and tests)",
    )

    # Pricing (all money in minor currency units)
    default_currency: str = "INR"
    default_service_fee: int = Field(default=5000, description="Platform fee in minor units")
    professional_share_percent: int = Field(
        default=80,
        description="Share of final_amount credited to the professional on completion",
    )

    # Policy
    require_verified_professionals: bool = True

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> str:
        return str(value or "INR").strip().upper()

    @field_validator("professional_share_percent")
    @classmethod
    def _validate_share(cls, value: int) -> int:
        if not 0 <= value <= 100:
            raise ValueError("professional_share_percent must be between 0 and 100")
        return value

    @model_validator(mode="after")
    def _default_fake_gateway(self) -> "Settings":
        """Fall back to the in-memory gateway when no credentials are configured."""
        if self.environment == "production":
            return self
        if not self.payment_gateway_key_id or not self.payment_gateway_key_secret.get_secret_value():
            self.use_fake_payment_gateway = True
        return self

    @property
    def checkout_signing_secret(self) -> str:
        """Secret used to sign checkout callbacks (order_id|payment_id)."""
        secret = self.payment_gateway_key_secret.get_secret_value()
        if not secret and self.use_fake_payment_gateway:
            return FAKE_GATEWAY_SECRET
        return secret

    @property
    def webhook_secret(self) -> str:
        secret = self.payment_gateway_webhook_secret.get_secret_value()
        return secret or self.checkout_signing_secret

    def get_database_url(self) -> str:
        url = self.database_url
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url


settings = Settings()

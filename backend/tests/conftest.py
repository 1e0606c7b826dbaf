# backend/tests/conftest.py
"""
Pytest configuration.

Every test gets a fresh in-memory SQLite database shared across threads
through ``StaticPool``, so routes that hop to ``asyncio.to_thread`` see the
same data as the test body. The payment gateway is the in-memory fake.
"""

import os
import sys

# Set testing mode BEFORE any app imports
os.environ["is_testing"] = "true"
os.environ["environment"] = "test"
os.environ["use_fake_payment_gateway"] = "true"
os.environ["payment_gateway_key_id"] = ""
os.environ["payment_gateway_key_secret"] = ""
os.environ["payment_gateway_webhook_secret"] = "whsec_test_secret"

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tests.helpers import actor_for, future
from urbanserve.api.dependencies import get_db, get_payment_gateway
from urbanserve.core.actor import Actor
from urbanserve.core.config import settings
from urbanserve.core.enums import RoleName
from urbanserve.database import Base
from urbanserve.integrations.payment_gateway_client import FakePaymentGatewayClient
from urbanserve.main import app
import urbanserve.models  # noqa: F401
from urbanserve.models.booking import Booking
from urbanserve.models.service_catalog import ProfessionalService, Service
from urbanserve.models.user import Profile
from urbanserve.services.booking_state_machine import BookingStateMachine
from urbanserve.services.pricing_service import PriceSnapshot

settings.is_testing = True

TEST_DATABASE_URL = "sqlite://"


@pytest.fixture(scope="function")
def engine():
    test_engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine):
    """Create a new database session for each test."""
    TestSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestSessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def gateway() -> FakePaymentGatewayClient:
    return FakePaymentGatewayClient()


@pytest.fixture
def client(db: Session, gateway: FakePaymentGatewayClient):
    """Create a test client bound to the test session and the fake gateway."""

    def override_get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    # Don't use context manager - lifespan would create tables on the app engine
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_profile(db: Session) -> Callable[..., Profile]:
    counter = {"n": 0}

    def _make(
        role: RoleName = RoleName.CUSTOMER,
        *,
        is_active: bool = True,
        is_verified: bool = True,
        full_name: Optional[str] = None,
    ) -> Profile:
        counter["n"] += 1
        profile = Profile(
            role=role.value,
            full_name=full_name or f"Test {role.value.title()} {counter['n']}",
            email=f"{role.value}{counter['n']}@example.com",
            is_active=is_active,
            is_verified=is_verified,
        )
        db.add(profile)
        db.commit()
        return profile

    return _make


@pytest.fixture
def customer(make_profile) -> Profile:
    return make_profile(RoleName.CUSTOMER, full_name="Priya Customer")


@pytest.fixture
def professional(make_profile) -> Profile:
    return make_profile(RoleName.PROFESSIONAL, full_name="Arjun Electrician")


@pytest.fixture
def admin(make_profile) -> Profile:
    return make_profile(RoleName.ADMIN, full_name="Ops Admin")


@pytest.fixture
def service(db: Session) -> Service:
    svc = Service(
        name="Fan Installation",
        description="Ceiling fan installation",
        base_price=500,
        duration_minutes=60,
        is_active=True,
    )
    db.add(svc)
    db.commit()
    return svc


@pytest.fixture
def make_offering(db: Session) -> Callable[..., ProfessionalService]:
    def _make(
        professional: Profile,
        service: Service,
        *,
        price: Optional[int] = None,
        duration_minutes: Optional[int] = None,
        is_available: bool = True,
    ) -> ProfessionalService:
        offering = ProfessionalService(
            professional_id=professional.id,
            service_id=service.id,
            price=price,
            duration_minutes=duration_minutes,
            is_available=is_available,
        )
        db.add(offering)
        db.commit()
        return offering

    return _make


@pytest.fixture
def offering(make_offering, professional: Profile, service: Service) -> ProfessionalService:
    return make_offering(professional, service)


@pytest.fixture
def customer_actor(customer: Profile) -> Actor:
    return actor_for(customer)


@pytest.fixture
def professional_actor(professional: Profile) -> Actor:
    return actor_for(professional)


@pytest.fixture
def admin_actor(admin: Profile) -> Actor:
    return actor_for(admin)


@pytest.fixture
def make_booking(
    db: Session, customer: Profile, service: Service, admin_actor: Actor
) -> Callable[..., Booking]:
    """
    Create a pending booking through the state machine.

    Admin-created so tests can pin the fee and discount; the customer is
    still the booking's owner.
    """

    def _make(
        *,
        professional: Optional[Profile] = None,
        total_amount: Optional[int] = None,
        service_fee: int = 50,
        discount_amount: int = 0,
    ) -> Booking:
        machine = BookingStateMachine(db)
        return machine.create_booking(
            actor=admin_actor,
            customer_id=customer.id,
            service_id=service.id,
            scheduled_at=future(),
            address_id="addr_home_1",
            professional_id=professional.id if professional else None,
            price_snapshot=PriceSnapshot(
                total_amount=service.base_price if total_amount is None else total_amount,
                service_fee=service_fee,
                discount_amount=discount_amount,
            ),
        )

    return _make



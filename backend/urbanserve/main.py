# backend/urbanserve/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .core.config import is_running_tests, settings
from .database import Base, engine, is_sqlite_url
from .routes.v1 import (
    admin as admin_v1,
    bookings as bookings_v1,
    health as health_v1,
    payments as payments_v1,
    payouts as payouts_v1,
    prometheus as prometheus_v1,
    webhooks as webhooks_v1,
)

API_TITLE = "UrbanServe Booking & Settlement API"
API_VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info("%s starting up...", API_TITLE)
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    # Production schemas are managed by migrations; local SQLite is created on demand
    if is_sqlite_url(str(engine.url)) and settings.environment != "production":
        Base.metadata.create_all(bind=engine)
        logger.info("SQLite schema ensured at %s", engine.url)

    if settings.use_fake_payment_gateway:
        logger.warning("Using the in-memory payment gateway; no real money moves")

    yield

    logger.info("%s shutting down...", API_TITLE)


app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(payments_v1.router, prefix="/payments")
api_v1.include_router(webhooks_v1.router, prefix="/webhooks")
api_v1.include_router(admin_v1.router, prefix="/admin")
api_v1.include_router(payouts_v1.router, prefix="/payouts")
api_v1.include_router(health_v1.router)

app.include_router(api_v1)
app.include_router(health_v1.router)
app.include_router(prometheus_v1.router)

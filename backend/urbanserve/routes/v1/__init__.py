"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import admin, bookings, health, payments, payouts, prometheus, webhooks

__all__ = [
    "admin",
    "bookings",
    "health",
    "payments",
    "payouts",
    "prometheus",
    "webhooks",
]

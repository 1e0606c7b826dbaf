# backend/urbanserve/repositories/__init__.py
"""
Repository layer.

Repositories own data access and flush, services own transactions.
"""

from .admin_action_repository import AdminActionRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .catalog_repository import CatalogRepository
from .factory import RepositoryFactory
from .payment_repository import PaymentRepository
from .payout_repository import PayoutRepository
from .user_repository import UserRepository

__all__ = [
    "AdminActionRepository",
    "BaseRepository",
    "BookingRepository",
    "CatalogRepository",
    "PaymentRepository",
    "PayoutRepository",
    "RepositoryFactory",
    "UserRepository",
]

# backend/urbanserve/core/enums.py
"""Role names shared by the profile store and the capability table."""

from enum import Enum


class RoleName(str, Enum):
    """Roles an actor can hold."""

    CUSTOMER = "customer"
    PROFESSIONAL = "professional"
    ADMIN = "admin"
    # Internal caller (payment settlement, refund path); never stored on a profile.
    SYSTEM = "system"


PROFILE_ROLES = (RoleName.CUSTOMER, RoleName.PROFESSIONAL, RoleName.ADMIN)

# backend/urbanserve/domain/booking_transitions.py
"""
Capability table for booking status transitions.

Each legal edge ``(from_status, to_status)`` maps to the roles allowed to
drive it. An edge absent from the table is illegal for everyone; an edge
present but without the actor's role is a permission failure.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Tuple, Union

from ..core.enums import RoleName
from ..models.booking import BookingStatus

Edge = Tuple[BookingStatus, BookingStatus]

_ADMIN = RoleName.ADMIN
_SYSTEM = RoleName.SYSTEM
_CUSTOMER = RoleName.CUSTOMER
_PROFESSIONAL = RoleName.PROFESSIONAL

CAPABILITIES: Dict[Edge, FrozenSet[RoleName]] = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): frozenset({_ADMIN, _SYSTEM}),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): frozenset({_CUSTOMER, _ADMIN}),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): frozenset({_CUSTOMER, _ADMIN}),
    (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS): frozenset({_PROFESSIONAL, _ADMIN}),
    (BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED): frozenset({_PROFESSIONAL, _ADMIN}),
    (BookingStatus.CANCELLED, BookingStatus.REFUNDED): frozenset({_ADMIN, _SYSTEM}),
    # Exceptional override; audited like every admin transition
    (BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED): frozenset({_ADMIN}),
}

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.REFUNDED}
)


def _as_status(value: Union[str, BookingStatus]) -> BookingStatus:
    return value if isinstance(value, BookingStatus) else BookingStatus(value)


def is_legal_edge(from_status: Union[str, BookingStatus], to_status: Union[str, BookingStatus]) -> bool:
    return (_as_status(from_status), _as_status(to_status)) in CAPABILITIES


def allowed_roles(
    from_status: Union[str, BookingStatus], to_status: Union[str, BookingStatus]
) -> FrozenSet[RoleName]:
    """Roles permitted on the edge; empty when the edge does not exist."""
    return CAPABILITIES.get((_as_status(from_status), _as_status(to_status)), frozenset())


def can_drive(
    role: RoleName,
    from_status: Union[str, BookingStatus],
    to_status: Union[str, BookingStatus],
) -> bool:
    return role in allowed_roles(from_status, to_status)


def reachable_from(status: Union[str, BookingStatus]) -> FrozenSet[BookingStatus]:
    current = _as_status(status)
    return frozenset(target for (source, target) in CAPABILITIES if source == current)

"""Exhaustive checks of the booking capability table."""

from itertools import product

import pytest

from urbanserve.core.enums import RoleName
from urbanserve.domain.booking_transitions import (
    CAPABILITIES,
    TERMINAL_STATUSES,
    allowed_roles,
    can_drive,
    is_legal_edge,
    reachable_from,
)
from urbanserve.models.booking import BookingStatus

S = BookingStatus

LEGAL_EDGES = {
    (S.PENDING, S.CONFIRMED),
    (S.PENDING, S.CANCELLED),
    (S.CONFIRMED, S.CANCELLED),
    (S.CONFIRMED, S.IN_PROGRESS),
    (S.IN_PROGRESS, S.COMPLETED),
    (S.IN_PROGRESS, S.CANCELLED),
    (S.CANCELLED, S.REFUNDED),
}


@pytest.mark.parametrize("source, target", list(product(BookingStatus, BookingStatus)))
def test_every_pair_is_legal_only_if_listed(source, target):
    assert is_legal_edge(source, target) == ((source, target) in LEGAL_EDGES)
    if (source, target) not in LEGAL_EDGES:
        assert allowed_roles(source, target) == frozenset()


def test_terminal_statuses_have_no_outgoing_edges():
    for status in TERMINAL_STATUSES:
        assert reachable_from(status) == frozenset()


def test_no_self_loops():
    for status in BookingStatus:
        assert not is_legal_edge(status, status)


def test_only_admin_or_system_confirm():
    assert allowed_roles(S.PENDING, S.CONFIRMED) == {RoleName.ADMIN, RoleName.SYSTEM}
    assert not can_drive(RoleName.CUSTOMER, S.PENDING, S.CONFIRMED)
    assert not can_drive(RoleName.PROFESSIONAL, S.PENDING, S.CONFIRMED)


def test_professional_drives_service_delivery():
    assert can_drive(RoleName.PROFESSIONAL, S.CONFIRMED, S.IN_PROGRESS)
    assert can_drive(RoleName.PROFESSIONAL, S.IN_PROGRESS, S.COMPLETED)
    assert not can_drive(RoleName.CUSTOMER, S.IN_PROGRESS, S.COMPLETED)


def test_in_progress_cancellation_is_admin_only():
    assert allowed_roles(S.IN_PROGRESS, S.CANCELLED) == {RoleName.ADMIN}


def test_refund_edge_is_not_customer_driven():
    assert allowed_roles(S.CANCELLED, S.REFUNDED) == {RoleName.ADMIN, RoleName.SYSTEM}


def test_string_statuses_accepted():
    assert is_legal_edge("pending", "confirmed")
    assert reachable_from("confirmed") == {S.CANCELLED, S.IN_PROGRESS}


def test_table_contains_exactly_the_legal_edges():
    assert set(CAPABILITIES) == LEGAL_EDGES

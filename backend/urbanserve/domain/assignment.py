# backend/urbanserve/domain/assignment.py
"""
Assignment state of a booking.

A booking either has no professional yet or is held by exactly one. Code
that branches on this reads ``booking.assignment`` instead of testing the
nullable ``professional_id`` column directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Unassigned:
    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class Assigned:
    professional_id: str


Assignment = Union[Unassigned, Assigned]

UNASSIGNED = Unassigned()


def assignment_from(professional_id: Optional[str]) -> Assignment:
    if not professional_id:
        return UNASSIGNED
    return Assigned(professional_id=professional_id)

# backend/urbanserve/core/actor.py
"""Explicit caller identity passed into every engine operation."""

from __future__ import annotations

from dataclasses import dataclass

from .enums import RoleName

SYSTEM_ACTOR_ID = "system"


@dataclass(frozen=True)
class Actor:
    id: str
    role: RoleName

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=SYSTEM_ACTOR_ID, role=RoleName.SYSTEM)

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN

    @property
    def is_system(self) -> bool:
        return self.role == RoleName.SYSTEM

    def is_privileged(self) -> bool:
        return self.role in (RoleName.ADMIN, RoleName.SYSTEM)

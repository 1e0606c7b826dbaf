# backend/urbanserve/repositories/user_repository.py
"""Profile store access."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.user import Profile
from .base_repository import BaseRepository


class UserRepository(BaseRepository[Profile]):
    def __init__(self, db: Session):
        super().__init__(db, Profile)

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.get_by_id(user_id, load_relationships=False)

    def set_flags(self, profile: Profile, **flags: bool) -> Profile:
        """Update ``is_active`` / ``is_verified`` on a loaded profile."""
        for key, value in flags.items():
            setattr(profile, key, value)
        self.flush()
        return profile

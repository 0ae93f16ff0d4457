from __future__ import annotations

from typing import Optional

from sqlalchemy import select

from rackops.db.models.security import Profile
from .base import BaseRepository


class ProfileRepository(BaseRepository):
    """Repository for operator profiles."""

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        stmt = select(Profile).where(Profile.id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def ensure_profile(
        self,
        user_id: str,
        *,
        username: str,
        role: str = "operator",
        full_name: Optional[str] = None,
    ) -> Profile:
        profile = await self.get_profile(user_id)
        if profile:
            return profile
        profile = Profile(id=user_id, username=username, role=role, full_name=full_name, is_active=True)
        await self.add(profile)
        await self.flush()
        return profile

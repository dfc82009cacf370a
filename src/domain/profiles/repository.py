"""Profile persistence."""

import uuid
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.profiles.models import Profile
from src.infrastructure.database.repository import BaseRepository


class ProfileRepository(BaseRepository[Profile]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Profile)

    async def get_by_user_id(self, user_id: uuid.UUID) -> Profile | None:
        return await self.find_one_by(user_id=user_id)

    async def get_many(self, user_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Profile]:
        """Load profiles for several users keyed by user id."""
        ids = set(user_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(Profile).where(Profile.user_id.in_(ids))
        )
        return {profile.user_id: profile for profile in result.scalars()}

    async def upsert(
        self, user_id: uuid.UUID, email: str | None, full_name: str | None
    ) -> Profile:
        profile = await self.get_by_user_id(user_id)
        if profile is None:
            return await self.create(
                Profile(user_id=user_id, email=email, full_name=full_name)
            )
        data: dict[str, object] = {}
        if email is not None:
            data["email"] = email
        if full_name is not None:
            data["full_name"] = full_name
        return await self.update(profile, data) if data else profile

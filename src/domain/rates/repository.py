"""User rates persistence."""

import uuid

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.rates.models import UserRates
from src.infrastructure.database.repository import BaseRepository


class UserRatesRepository(BaseRepository[UserRates]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, UserRates)

    async def get_for_user(
        self, user_id: uuid.UUID, tent_id: int | None
    ) -> UserRates | None:
        """Return the rate card for a user in a tent, or the tent-less one."""
        stmt = select(UserRates).where(UserRates.user_id == user_id)
        if tent_id is None:
            stmt = stmt.where(UserRates.tent_id.is_(None))
        else:
            stmt = stmt.where(UserRates.tent_id == tent_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def delete_for_user(self, user_id: uuid.UUID, tent_id: int | None) -> int:
        stmt = delete(UserRates).where(UserRates.user_id == user_id)
        if tent_id is not None:
            stmt = stmt.where(UserRates.tent_id == tent_id)
        result = await self.session.execute(stmt)
        return result.rowcount or 0

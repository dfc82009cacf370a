"""Rate cards, including managers editing the rates of their client."""

import uuid
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ForbiddenError
from src.domain.rates.models import UserRates
from src.domain.rates.repository import UserRatesRepository
from src.domain.tents.repository import TentMemberRepository


class RatesService:
    def __init__(self, session: AsyncSession) -> None:
        self.rates = UserRatesRepository(session)
        self.members = TentMemberRepository(session)

    async def _readable_user(
        self, user_id: uuid.UUID, tent_id: int | None, target_user_id: uuid.UUID | None
    ) -> uuid.UUID:
        # Reads fall back to the caller's own rates when delegation is not allowed
        if target_user_id is None or target_user_id == user_id or tent_id is None:
            return user_id
        membership = await self.members.get_membership(tent_id, user_id)
        if membership is None or not membership.is_manager:
            return user_id
        if await self.members.get_membership(tent_id, target_user_id) is None:
            return user_id
        return target_user_id

    async def _writable_user(
        self, user_id: uuid.UUID, tent_id: int | None, target_user_id: uuid.UUID | None
    ) -> uuid.UUID:
        if target_user_id is None or target_user_id == user_id or tent_id is None:
            return user_id
        membership = await self.members.get_membership(tent_id, user_id)
        if membership is None or not membership.is_manager:
            raise ForbiddenError("Only managers can edit other users rates")
        if await self.members.get_membership(tent_id, target_user_id) is None:
            raise ForbiddenError("Target user not in tent")
        return target_user_id

    async def get_rates(
        self,
        user_id: uuid.UUID,
        tent_id: int | None,
        target_user_id: uuid.UUID | None = None,
    ) -> UserRates | None:
        owner = await self._readable_user(user_id, tent_id, target_user_id)
        return await self.rates.get_for_user(owner, tent_id)

    async def save_rates(
        self,
        user_id: uuid.UUID,
        tent_id: int | None,
        values: dict[str, Any],
        target_user_id: uuid.UUID | None = None,
    ) -> UserRates:
        """Create or replace the rate card of the caller or, for managers, a member.

        Raises:
            ForbiddenError: A non-manager targets another user, or the target
                is not a member of the tent.
        """
        owner = await self._writable_user(user_id, tent_id, target_user_id)
        existing = await self.rates.get_for_user(owner, tent_id)
        if existing is not None:
            rates = await self.rates.update(existing, values)
        else:
            rates = await self.rates.create(
                UserRates(user_id=owner, tent_id=tent_id, **values)
            )
        logger.info(
            "Rates saved for user {} in tent {} by {}", owner, tent_id, user_id
        )
        return rates

    async def delete_rates(self, user_id: uuid.UUID, tent_id: int | None) -> int:
        return await self.rates.delete_for_user(user_id, tent_id)

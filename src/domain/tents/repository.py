"""Tent, membership and activity log persistence."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.tents.models import Tent, TentActivityLog, TentMember
from src.infrastructure.database.repository import BaseRepository


class TentRepository(BaseRepository[Tent]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Tent)

    async def get_by_invite_code(
        self, invite_code: str, *, for_update: bool = False
    ) -> Tent | None:
        """Find a tent by its invite code.

        With ``for_update`` the row is locked until the transaction ends so two
        concurrent joins cannot both see a single member.
        """
        stmt = select(Tent).where(Tent.invite_code == invite_code)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def invite_code_exists(self, invite_code: str) -> bool:
        return await self.count(invite_code=invite_code) > 0

    async def list_for_user(self, user_id: uuid.UUID) -> list[tuple[Tent, TentMember]]:
        stmt = (
            select(Tent, TentMember)
            .join(TentMember, TentMember.tent_id == Tent.id)
            .where(TentMember.user_id == user_id)
            .order_by(Tent.id.desc())
        )
        result = await self.session.execute(stmt)
        return [(tent, member) for tent, member in result.tuples()]


class TentMemberRepository(BaseRepository[TentMember]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, TentMember)

    async def get_membership(
        self, tent_id: int, user_id: uuid.UUID
    ) -> TentMember | None:
        return await self.find_one_by(tent_id=tent_id, user_id=user_id)

    async def count_members(self, tent_id: int) -> int:
        return await self.count(tent_id=tent_id)

    async def list_members(self, tent_id: int) -> list[TentMember]:
        return await self.filter_by(tent_id=tent_id)


class ActivityLogRepository(BaseRepository[TentActivityLog]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, TentActivityLog)

    async def list_for_tent(
        self, tent_id: int, limit: int = 50, offset: int = 0
    ) -> list[TentActivityLog]:
        stmt = (
            select(TentActivityLog)
            .where(TentActivityLog.tent_id == tent_id)
            .order_by(TentActivityLog.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

"""Notification persistence and delivery."""

import uuid
from typing import Any

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.notifications.models import Notification
from src.infrastructure.database.repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Notification)

    async def notify(
        self,
        user_id: uuid.UUID,
        type_: str,
        title: str,
        message: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Create an unread notification for a user."""
        notification = await self.create(
            Notification(
                user_id=user_id,
                type=type_,
                title=title,
                message=message,
                data=data or {},
                read=False,
            )
        )
        logger.info(
            "Notification queued",
            notification_type=type_,
            recipient=str(user_id),
        )
        return notification

    async def list_for_user(
        self, user_id: uuid.UUID, *, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        stmt = stmt.order_by(Notification.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        return result.rowcount or 0

    async def get_for_user(
        self, notification_id: int, user_id: uuid.UUID
    ) -> Notification | None:
        return await self.find_one_by(id=notification_id, user_id=user_id)

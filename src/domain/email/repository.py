"""Persistence for mailbox connections, OAuth clients, inquiries and replies."""

import uuid
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.email.models import (
    AutoReplyLog,
    EmailConnection,
    EmailInquiry,
    EmailSyncLog,
    OAuthConfiguration,
)
from src.infrastructure.database.repository import BaseRepository


class EmailConnectionRepository(BaseRepository[EmailConnection]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, EmailConnection)

    async def list_for_tent(self, tent_id: int) -> list[EmailConnection]:
        result = await self.session.execute(
            select(EmailConnection)
            .where(EmailConnection.tent_id == tent_id)
            .order_by(EmailConnection.id.desc())
        )
        return list(result.scalars().all())

    async def list_active(self) -> list[EmailConnection]:
        result = await self.session.execute(
            select(EmailConnection)
            .where(EmailConnection.is_active.is_(True))
            .order_by(EmailConnection.id)
        )
        return list(result.scalars().all())

    async def get_for_address(
        self, user_id: uuid.UUID, tent_id: int, email_address: str
    ) -> EmailConnection | None:
        return await self.find_one_by(
            user_id=user_id, tent_id=tent_id, email_address=email_address
        )


class OAuthConfigurationRepository(BaseRepository[OAuthConfiguration]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, OAuthConfiguration)

    async def get_for_tent(
        self, tent_id: int, provider: str
    ) -> OAuthConfiguration | None:
        return await self.find_one_by(tent_id=tent_id, provider=provider)


class EmailSyncLogRepository(BaseRepository[EmailSyncLog]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, EmailSyncLog)


class EmailInquiryRepository(BaseRepository[EmailInquiry]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, EmailInquiry)

    async def list_for_tent(
        self, tent_id: int, status: str | None = None
    ) -> list[EmailInquiry]:
        stmt = select(EmailInquiry).where(EmailInquiry.tent_id == tent_id)
        if status:
            stmt = stmt.where(EmailInquiry.status == status)
        result = await self.session.execute(
            stmt.order_by(EmailInquiry.received_at.desc(), EmailInquiry.id.desc())
        )
        return list(result.scalars().all())

    async def existing_message_ids(
        self, connection_id: int, message_ids: Iterable[str]
    ) -> set[str]:
        """Return which of the given provider message ids are already stored."""
        ids = set(message_ids)
        if not ids:
            return set()
        result = await self.session.execute(
            select(EmailInquiry.email_message_id).where(
                EmailInquiry.email_connection_id == connection_id,
                EmailInquiry.email_message_id.in_(ids),
            )
        )
        return set(result.scalars().all())


class AutoReplyLogRepository(BaseRepository[AutoReplyLog]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, AutoReplyLog)

    async def history(
        self, user_id: uuid.UUID, tent_id: int | None = None, limit: int = 50
    ) -> list[tuple[AutoReplyLog, EmailInquiry]]:
        stmt = (
            select(AutoReplyLog, EmailInquiry)
            .join(EmailInquiry, EmailInquiry.id == AutoReplyLog.inquiry_id)
            .where(AutoReplyLog.user_id == user_id)
        )
        if tent_id is not None:
            stmt = stmt.where(AutoReplyLog.tent_id == tent_id)
        result = await self.session.execute(
            stmt.order_by(AutoReplyLog.id.desc()).limit(limit)
        )
        return [(log, inquiry) for log, inquiry in result.all()]

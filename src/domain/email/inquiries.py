"""Inquiry review, reply suggestions and rate-card auto-replies."""

import uuid
from dataclasses import dataclass

import httpx
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings, get_settings
from src.core.exceptions import (
    BusinessRuleError,
    CreatorTentError,
    NotFoundError,
    ValidationError,
)
from src.domain.email.analyzer import EmailAnalyzer
from src.domain.email.auto_reply import ReplyComposer
from src.domain.email.models import (
    AutoReplyLog,
    EmailConnection,
    EmailInquiry,
    EmailProviderName,
    InquiryStatus,
    ReplyStatus,
)
from src.domain.email.providers import GmailClient, OutgoingEmail
from src.domain.email.repository import (
    AutoReplyLogRepository,
    EmailConnectionRepository,
    EmailInquiryRepository,
)
from src.domain.email.sync import EmailSyncService
from src.domain.rates.repository import UserRatesRepository
from src.domain.tents.repository import TentMemberRepository
from src.domain.tents.service import require_membership
from src.infrastructure.database.base import utcnow


def parse_inquiry_status(value: str | None) -> InquiryStatus:
    try:
        return InquiryStatus(value)
    except ValueError as e:
        raise ValidationError("Invalid inquiry status", cause=e) from e


class InquiryService:
    def __init__(self, session: AsyncSession, analyzer: EmailAnalyzer) -> None:
        self.analyzer = analyzer
        self.inquiries = EmailInquiryRepository(session)
        self.members = TentMemberRepository(session)

    async def list_inquiries(
        self, tent_id: int | None, user_id: uuid.UUID, status: str | None = None
    ) -> list[EmailInquiry]:
        if not tent_id:
            raise ValidationError("Tent ID is required")
        await require_membership(self.members, tent_id, user_id)
        if status:
            status = parse_inquiry_status(status)
        return await self.inquiries.list_for_tent(tent_id, status)

    async def get_inquiry(self, inquiry_id: int, user_id: uuid.UUID) -> EmailInquiry:
        inquiry = await self.inquiries.get_by_id(inquiry_id)
        if inquiry is None:
            raise NotFoundError("Inquiry not found")
        await require_membership(self.members, inquiry.tent_id, user_id)
        return inquiry

    async def update_status(
        self, inquiry_id: int, user_id: uuid.UUID, status: str | None
    ) -> EmailInquiry:
        new_status = parse_inquiry_status(status)
        inquiry = await self.get_inquiry(inquiry_id, user_id)
        return await self.inquiries.update(inquiry, {"status": new_status})

    async def suggestions(self, inquiry_id: int, user_id: uuid.UUID) -> dict[str, str]:
        inquiry = await self.get_inquiry(inquiry_id, user_id)
        return await self.analyzer.reply_suggestions(
            inquiry.subject, inquiry.ai_summary, inquiry.inquiry_type
        )


@dataclass(frozen=True)
class AutoReplyResult:
    log: AutoReplyLog
    body: str


class AutoReplyService:
    """Generate, record and deliver auto-replies.

    A reply is always recorded and the inquiry marked as replied before
    delivery is attempted. Delivery problems only change the log status.
    """

    def __init__(
        self,
        session: AsyncSession,
        http: httpx.AsyncClient,
        analyzer: EmailAnalyzer,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.http = http
        self.settings = settings or get_settings()
        self.composer = ReplyComposer(analyzer)
        self.sync = EmailSyncService(session, http, analyzer, self.settings)
        self.inquiries = EmailInquiryRepository(session)
        self.connections = EmailConnectionRepository(session)
        self.replies = AutoReplyLogRepository(session)
        self.rates = UserRatesRepository(session)
        self.members = TentMemberRepository(session)

    async def _deliver(
        self, connection: EmailConnection, inquiry: EmailInquiry, log: AutoReplyLog
    ) -> AutoReplyLog:
        message = OutgoingEmail(
            to=log.recipient_email,
            subject=log.subject,
            body=log.body,
            thread_id=inquiry.thread_id,
            in_reply_to=inquiry.email_message_id
            if connection.email_provider == EmailProviderName.YAHOO
            else None,
        )
        try:
            match EmailProviderName(connection.email_provider):
                case EmailProviderName.GMAIL:
                    token = await self.sync.access_token(connection)
                    await GmailClient(
                        self.http, token, self.settings.email_sync_config
                    ).send(message, connection.email_address)
                case EmailProviderName.YAHOO:
                    client = await self.sync.yahoo_client(connection)
                    await client.send(message)
                case EmailProviderName.OUTLOOK:
                    logger.info("Outlook delivery unavailable, reply {} queued", log.id)
                    return log
        except CreatorTentError as e:
            logger.warning("Auto-reply {} delivery failed: {}", log.id, e.message)
            return await self.replies.update(
                log, {"status": ReplyStatus.FAILED, "error_message": e.message}
            )
        return await self.replies.update(
            log, {"status": ReplyStatus.SENT, "sent_at": utcnow()}
        )

    async def send_auto_reply(
        self, user_id: uuid.UUID, inquiry_id: int | None
    ) -> AutoReplyResult:
        """Reply to an inquiry with the caller's rate card for its tent.

        Raises:
            ValidationError: No inquiry id.
            NotFoundError: Unknown inquiry.
            ForbiddenError: The caller is not a member of the inquiry's tent.
            BusinessRuleError: Already replied, no rates, auto-reply disabled,
                or the inquiry scores below the caller's threshold.
        """
        if not inquiry_id:
            raise ValidationError("Inquiry ID required")
        inquiry = await self.inquiries.get_by_id(inquiry_id)
        if inquiry is None:
            raise NotFoundError("Inquiry not found")
        await require_membership(self.members, inquiry.tent_id, user_id)

        if inquiry.auto_reply_sent:
            raise BusinessRuleError("Auto-reply already sent for this inquiry")
        rates = await self.rates.get_for_user(user_id, inquiry.tent_id)
        if rates is None:
            raise BusinessRuleError("Please configure your rates first")
        if not rates.auto_reply_enabled:
            raise BusinessRuleError("Auto-reply is not enabled")
        if inquiry.seriousness_score < rates.min_seriousness_score:
            raise BusinessRuleError(
                f"Inquiry seriousness score ({inquiry.seriousness_score}) is below "
                f"minimum threshold ({rates.min_seriousness_score})"
            )

        body = await self.composer.compose(inquiry, rates)
        log = await self.replies.create(
            AutoReplyLog(
                inquiry_id=inquiry.id,
                user_id=user_id,
                tent_id=inquiry.tent_id,
                recipient_email=inquiry.from_email,
                subject=f"Re: {inquiry.subject}",
                body=body,
                status=ReplyStatus.QUEUED,
            )
        )
        await self.inquiries.update(
            inquiry,
            {
                "auto_reply_sent": True,
                "auto_reply_sent_at": utcnow(),
                "status": InquiryStatus.REPLIED,
            },
        )

        connection = await self.connections.get_by_id(inquiry.email_connection_id)
        if connection is not None:
            log = await self._deliver(connection, inquiry, log)
        logger.info(
            "Auto-reply {} for inquiry {} is {}", log.id, inquiry.id, log.status
        )
        return AutoReplyResult(log=log, body=body)

    async def history(
        self, user_id: uuid.UUID, tent_id: int | None = None, limit: int = 50
    ) -> list[tuple[AutoReplyLog, EmailInquiry]]:
        return await self.replies.history(user_id, tent_id, limit)

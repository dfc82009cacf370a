"""Inbox sync: fetch unread mail, classify it and store serious inquiries.

Each run writes an ``email_sync_log`` row. A failed run marks both the log
and the connection and commits those rows before re-raising, so the request
rollback does not erase the failure record.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import httpx
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings, get_settings
from src.core.encryption import decrypt
from src.core.exceptions import (
    CreatorTentError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from src.core.observability import trace_operation
from src.domain.email.analyzer import EmailAnalyzer
from src.domain.email.connections import EmailConnectionService
from src.domain.email.models import (
    EmailConnection,
    EmailInquiry,
    EmailProviderName,
    EmailSyncLog,
    InquiryStatus,
    SyncStatus,
)
from src.domain.email.oauth import OAuthClient
from src.domain.email.providers import (
    FetchedEmail,
    GmailClient,
    OutlookClient,
    YahooMailClient,
)
from src.domain.email.repository import (
    EmailConnectionRepository,
    EmailInquiryRepository,
    EmailSyncLogRepository,
)
from src.domain.notifications.models import NotificationType
from src.domain.notifications.repository import NotificationRepository
from src.domain.tents.repository import TentMemberRepository
from src.domain.tents.service import require_membership
from src.infrastructure.database.base import as_utc, utcnow

TOKEN_REFRESH_MARGIN = timedelta(seconds=60)


@dataclass(frozen=True)
class SyncResult:
    connection_id: int
    emails_fetched: int
    inquiries_created: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "connectionId": self.connection_id,
            "success": True,
            "emailsFetched": self.emails_fetched,
            "inquiriesCreated": self.inquiries_created,
        }


class EmailSyncService:
    def __init__(
        self,
        session: AsyncSession,
        http: httpx.AsyncClient,
        analyzer: EmailAnalyzer,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.http = http
        self.analyzer = analyzer
        self.settings = settings or get_settings()
        self.connections = EmailConnectionRepository(session)
        self.sync_logs = EmailSyncLogRepository(session)
        self.inquiries = EmailInquiryRepository(session)
        self.members = TentMemberRepository(session)
        self.notifications = NotificationRepository(session)
        self.connection_service = EmailConnectionService(session, self.settings)

    def window_start(self, connection: EmailConnection) -> datetime:
        """Fetch mail received since the last sync, or a provider lookback."""
        last_sync = as_utc(connection.last_sync_at)
        if last_sync is not None:
            return last_sync
        config = self.settings.email_sync_config
        days = (
            config.imap_lookback_days
            if connection.email_provider == EmailProviderName.YAHOO
            else config.api_lookback_days
        )
        return utcnow() - timedelta(days=days)

    async def access_token(self, connection: EmailConnection) -> str:
        """Return a usable access token, refreshing it when about to expire."""
        provider = EmailProviderName(connection.email_provider)
        token = decrypt(connection.access_token) if connection.access_token else ""
        expiry = as_utc(connection.token_expiry)
        if token and (expiry is None or expiry - TOKEN_REFRESH_MARGIN > utcnow()):
            return token
        if not connection.refresh_token:
            raise ExternalServiceError(
                "Access token expired and no refresh token is stored",
                service=provider.value,
            )

        credentials = await self.connection_service.resolve_credentials(
            connection.tent_id, provider
        )
        if credentials is None:
            raise ExternalServiceError(
                f"{provider.label} OAuth is not configured", service=provider.value
            )
        tokens = await OAuthClient(self.http, provider).refresh(
            credentials, decrypt(connection.refresh_token)
        )
        await self.connection_service.store_tokens(connection, tokens)
        logger.info("Refreshed {} token for connection {}", provider, connection.id)
        return tokens.access_token

    async def fetch(
        self, connection: EmailConnection, since: datetime
    ) -> list[FetchedEmail]:
        """Fetch unread mail, wrapping unexpected provider failures."""
        try:
            return await self._fetch_from_provider(connection, since)
        except CreatorTentError:
            raise
        except Exception as e:
            logger.exception("Unexpected {} fetch failure", connection.email_provider)
            raise ExternalServiceError(
                "Email sync failed",
                service=connection.email_provider,
                context={"connection_id": connection.id},
                cause=e,
            ) from e

    async def _fetch_from_provider(
        self, connection: EmailConnection, since: datetime
    ) -> list[FetchedEmail]:
        config = self.settings.email_sync_config
        match EmailProviderName(connection.email_provider):
            case EmailProviderName.GMAIL:
                token = await self.access_token(connection)
                return await GmailClient(self.http, token, config).fetch_unread(since)
            case EmailProviderName.OUTLOOK:
                token = await self.access_token(connection)
                return await OutlookClient(self.http, token, config).fetch_unread(
                    since
                )
            case EmailProviderName.YAHOO:
                client = await self.yahoo_client(connection)
                return await client.fetch_unread(since)

    async def yahoo_client(self, connection: EmailConnection) -> YahooMailClient:
        config = self.settings.email_sync_config
        if connection.access_token:
            # OAuth connection: refresh_token holds an OAuth token, not a password
            return YahooMailClient(
                config,
                connection.email_address,
                access_token=await self.access_token(connection),
            )
        return YahooMailClient(
            config,
            connection.email_address,
            app_password=decrypt(connection.refresh_token)
            if connection.refresh_token
            else None,
        )

    async def _store_inquiries(
        self, connection: EmailConnection, emails: list[FetchedEmail]
    ) -> int:
        known = await self.inquiries.existing_message_ids(
            connection.id, (email.message_id for email in emails)
        )
        created = 0
        for email in emails:
            if email.message_id in known:
                continue
            known.add(email.message_id)
            analysis = await self.analyzer.analyze(
                email.sender, email.subject, email.body_text
            )
            if not analysis.is_business_inquiry or (
                analysis.seriousness_score < self.settings.ai_config.min_store_score
            ):
                continue
            await self.inquiries.create(
                EmailInquiry(
                    tent_id=connection.tent_id,
                    email_connection_id=connection.id,
                    email_message_id=email.message_id,
                    thread_id=email.thread_id,
                    from_email=email.from_email,
                    from_name=email.from_name,
                    subject=email.subject,
                    body_text=email.body_text,
                    body_html=email.body_html,
                    received_at=email.received_at,
                    inquiry_type=analysis.inquiry_type,
                    seriousness_score=analysis.seriousness_score,
                    is_business_inquiry=analysis.is_business_inquiry,
                    ai_summary=analysis.summary,
                    status=InquiryStatus.PENDING,
                )
            )
            created += 1

        if created:
            await self.notifications.notify(
                connection.user_id,
                NotificationType.EMAIL_INQUIRY,
                "New business inquiries",
                f"{created} new inquiries in {connection.email_address}",
                {"tent_id": connection.tent_id, "connection_id": connection.id},
            )
        return created

    async def _run(self, connection: EmailConnection) -> SyncResult:
        sync_log = await self.sync_logs.create(
            EmailSyncLog(
                email_connection_id=connection.id,
                sync_started_at=utcnow(),
                status=SyncStatus.RUNNING,
            )
        )
        try:
            with trace_operation(
                "email.sync",
                connection_id=connection.id,
                provider=connection.email_provider,
            ):
                emails = await self.fetch(connection, self.window_start(connection))
                created = await self._store_inquiries(connection, emails)
        except CreatorTentError as e:
            await self.sync_logs.update(
                sync_log,
                {
                    "status": SyncStatus.FAILED,
                    "sync_completed_at": utcnow(),
                    "error_message": e.message,
                },
            )
            await self.connections.update(
                connection,
                {"sync_status": SyncStatus.ERROR, "error_message": e.message},
            )
            await self.session.commit()
            logger.error(
                "Sync failed for connection {}: {}", connection.id, e.message
            )
            raise

        now = utcnow()
        await self.sync_logs.update(
            sync_log,
            {
                "status": SyncStatus.COMPLETED,
                "sync_completed_at": now,
                "emails_fetched": len(emails),
                "inquiries_created": created,
            },
        )
        await self.connections.update(
            connection,
            {
                "last_sync_at": now,
                "sync_status": SyncStatus.ACTIVE,
                "error_message": None,
            },
        )
        logger.info(
            "Synced connection {}: {} fetched, {} inquiries",
            connection.id,
            len(emails),
            created,
        )
        return SyncResult(connection.id, len(emails), created)

    async def sync_connection(
        self, connection_id: int | None, user_id: uuid.UUID
    ) -> SyncResult:
        """Sync one mailbox on behalf of a member of its tent.

        Raises:
            ValidationError: No connection id.
            NotFoundError: Unknown connection.
            ForbiddenError: The caller is not a member of the connection's tent.
            ExternalServiceError: The provider call failed.
        """
        if not connection_id:
            raise ValidationError("Connection ID required")
        connection = await self.connections.get_by_id(connection_id)
        if connection is None:
            raise NotFoundError("Email connection not found")
        await require_membership(self.members, connection.tent_id, user_id)
        return await self._run(connection)

    async def sync_all(self) -> dict[str, Any]:
        """Sync every active connection, collecting per-connection outcomes."""
        connections = await self.connections.list_active()
        results: list[dict[str, Any]] = []
        for connection in connections:
            try:
                result = await self._run(connection)
            except CreatorTentError as e:
                results.append(
                    {
                        "connectionId": connection.id,
                        "success": False,
                        "error": e.message,
                    }
                )
                continue
            await self.session.commit()
            results.append(result.to_dict())

        synced = sum(1 for result in results if result["success"])
        logger.info("Cron sync finished: {}/{} connections", synced, len(connections))
        return {
            "success": True,
            "totalConnections": len(connections),
            "totalSynced": synced,
            "results": results,
        }

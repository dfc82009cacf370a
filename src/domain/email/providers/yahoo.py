"""Yahoo Mail over IMAP (sync) and SMTP (replies).

``imaplib`` and ``smtplib`` are blocking, so every session runs in a worker
thread through ``asyncio.to_thread``. Connections authenticate with the
mailbox app password, or with XOAUTH2 when only an OAuth token is stored.
"""

import asyncio
import imaplib
import smtplib
from datetime import datetime
from email import message_from_bytes, policy
from email.message import EmailMessage

from loguru import logger

from src.core.config import EmailSyncConfig
from src.core.exceptions import ExternalServiceError
from src.core.observability import trace_operation
from src.domain.email.providers.base import (
    FetchedEmail,
    OutgoingEmail,
    build_mime,
    parse_date,
    parse_sender,
)


def imap_since(value: datetime) -> str:
    """Format a date for an IMAP ``SINCE`` criterion, e.g. ``05-Mar-2025``."""
    return value.strftime("%d-%b-%Y")


def _body_text(message: EmailMessage, subtype: str) -> str | None:
    part = message.get_body(preferencelist=(subtype,))
    if part is None:
        return None
    try:
        content = part.get_content()
    except (LookupError, ValueError):
        # unknown or lying charset label
        payload = part.get_payload(decode=True)
        if not isinstance(payload, bytes):
            return None
        return payload.decode("utf-8", errors="replace")
    return content if isinstance(content, str) else None


def parse_rfc822(raw: bytes, fallback_id: str) -> FetchedEmail:
    message = message_from_bytes(raw, policy=policy.default)
    if not isinstance(message, EmailMessage):
        raise ExternalServiceError("Unreadable Yahoo message", service="yahoo")
    from_email, from_name = parse_sender(message.get("From"))
    message_id = (message.get("Message-ID") or "").strip() or fallback_id
    return FetchedEmail(
        message_id=message_id,
        thread_id=(message.get("In-Reply-To") or "").strip() or None,
        from_email=from_email,
        from_name=from_name,
        subject=str(message.get("Subject") or ""),
        body_text=_body_text(message, "plain") or "",
        body_html=_body_text(message, "html"),
        received_at=parse_date(message.get("Date")),
    )


class YahooMailClient:
    """IMAP/SMTP session factory for one Yahoo mailbox.

    Args:
        config: Hosts, ports and fetch limits.
        email_address: Mailbox login.
        app_password: Yahoo app password, preferred when present.
        access_token: OAuth access token used for XOAUTH2 otherwise.
    """

    def __init__(
        self,
        config: EmailSyncConfig,
        email_address: str,
        app_password: str | None = None,
        access_token: str | None = None,
    ) -> None:
        if not app_password and not access_token:
            raise ExternalServiceError(
                "Yahoo connection has no credentials", service="yahoo"
            )
        self.config = config
        self.email_address = email_address
        self.app_password = app_password
        self.access_token = access_token

    def _xoauth2(self, _challenge: bytes) -> bytes:
        return (
            f"user={self.email_address}\x01auth=Bearer {self.access_token}\x01\x01"
        ).encode()

    def _smtp_xoauth2(self, _challenge: bytes | None = None) -> str:
        return self._xoauth2(b"").decode()

    def _login(self, imap: imaplib.IMAP4_SSL) -> None:
        if self.app_password:
            imap.login(self.email_address, self.app_password)
        else:
            imap.authenticate("XOAUTH2", self._xoauth2)

    def _fetch_sync(self, since: datetime) -> list[FetchedEmail]:
        imap = imaplib.IMAP4_SSL(self.config.imap_host, self.config.imap_port)
        try:
            self._login(imap)
            imap.select("INBOX", readonly=True)
            _, data = imap.search(None, "SINCE", imap_since(since), "UNSEEN")
            ids = data[0].split() if data and data[0] else []
            emails = []
            for num in ids[-self.config.imap_max_messages :]:
                _, parts = imap.fetch(num, "(RFC822)")
                for part in parts:
                    if isinstance(part, tuple):
                        emails.append(
                            parse_rfc822(part[1], f"yahoo-{num.decode()}")
                        )
            return emails
        finally:
            try:
                imap.logout()
            except (imaplib.IMAP4.error, OSError) as e:
                logger.debug("IMAP logout failed: {}", e)

    async def fetch_unread(self, since: datetime) -> list[FetchedEmail]:
        with trace_operation("yahoo.imap_fetch", host=self.config.imap_host):
            try:
                emails = await asyncio.to_thread(self._fetch_sync, since)
            except (imaplib.IMAP4.error, OSError, LookupError, ValueError) as e:
                logger.error("Yahoo IMAP fetch failed: {}", e)
                raise ExternalServiceError(
                    "Failed to fetch Yahoo messages", service="yahoo", cause=e
                ) from e
        logger.info("Fetched {} unread Yahoo messages", len(emails))
        return emails

    def _send_sync(self, message: OutgoingEmail) -> None:
        mime = build_mime(message, self.email_address)
        with smtplib.SMTP_SSL(self.config.smtp_host, self.config.smtp_port) as smtp:
            if self.app_password:
                smtp.login(self.email_address, self.app_password)
            else:
                smtp.auth("XOAUTH2", self._smtp_xoauth2, initial_response_ok=True)
            smtp.send_message(mime)

    async def send(self, message: OutgoingEmail) -> None:
        with trace_operation("yahoo.smtp_send", host=self.config.smtp_host):
            try:
                await asyncio.to_thread(self._send_sync, message)
            except (smtplib.SMTPException, OSError) as e:
                logger.error("Yahoo SMTP send failed: {}", e)
                raise ExternalServiceError(
                    "Failed to send Yahoo message", service="yahoo", cause=e
                ) from e

"""Provider-neutral message types and header parsing helpers."""

import base64
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from email.utils import parseaddr, parsedate_to_datetime

from src.infrastructure.database.base import as_utc, utcnow


@dataclass(frozen=True)
class FetchedEmail:
    """One unread inbound message as returned by a mailbox provider."""

    message_id: str
    from_email: str
    subject: str
    body_text: str
    received_at: datetime
    from_name: str | None = None
    body_html: str | None = None
    thread_id: str | None = None

    @property
    def sender(self) -> str:
        if self.from_name:
            return f"{self.from_name} <{self.from_email}>"
        return self.from_email


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    body: str
    thread_id: str | None = None
    in_reply_to: str | None = None


def parse_sender(value: str | None) -> tuple[str, str | None]:
    """Split a ``From`` header into ``(address, display name)``."""
    name, address = parseaddr(value or "")
    return address or (value or ""), name or None


def parse_date(value: str | None) -> datetime:
    """Parse an RFC 2822 date header, defaulting to now when absent or bad."""
    if not value:
        return utcnow()
    try:
        return as_utc(parsedate_to_datetime(value)) or utcnow()
    except (TypeError, ValueError):
        return utcnow()


def parse_iso_datetime(value: str | None) -> datetime:
    if not value:
        return utcnow()
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00"))) or utcnow()
    except ValueError:
        return utcnow()


def b64url_decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def build_mime(message: OutgoingEmail, sender: str) -> EmailMessage:
    mime = EmailMessage()
    mime["To"] = message.to
    mime["From"] = sender
    mime["Subject"] = message.subject
    if message.in_reply_to:
        mime["In-Reply-To"] = message.in_reply_to
        mime["References"] = message.in_reply_to
    mime.set_content(message.body)
    return mime

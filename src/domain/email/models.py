"""Email connection, OAuth configuration, sync log, inquiry and reply models.

Token columns hold values produced by ``src.core.encryption.encrypt``. For
Yahoo app-password connections the app password is stored in
``refresh_token`` and ``access_token`` is empty.
"""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.base import BaseModel


class EmailProviderName(StrEnum):
    GMAIL = "gmail"
    OUTLOOK = "outlook"
    YAHOO = "yahoo"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class SyncStatus(StrEnum):
    ACTIVE = "active"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ERROR = "error"


class InquiryType(StrEnum):
    COLLABORATION = "collaboration"
    BOOKING = "booking"
    SPONSORSHIP = "sponsorship"
    GENERAL = "general"
    SPAM = "spam"


class InquiryStatus(StrEnum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    REPLIED = "replied"
    ARCHIVED = "archived"
    DECLINED = "declined"


class ReplyStatus(StrEnum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"


class EmailConnection(BaseModel):
    __tablename__ = "email_connections"
    __table_args__ = (UniqueConstraint("user_id", "tent_id", "email_address"),)

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    tent_id: Mapped[int] = mapped_column(
        ForeignKey("tents.id", ondelete="CASCADE"), index=True, nullable=False
    )
    email_provider: Mapped[str] = mapped_column(String(16), nullable=False)
    email_address: Mapped[str] = mapped_column(String(320), nullable=False)
    access_token: Mapped[str] = mapped_column(Text, default="", nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(Text)
    token_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sync_status: Mapped[str] = mapped_column(
        String(16), default=SyncStatus.ACTIVE, nullable=False
    )
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[str | None] = mapped_column(Text)


class OAuthConfiguration(BaseModel):
    """Per-tent OAuth client that overrides the application-wide one."""

    __tablename__ = "oauth_configurations"
    __table_args__ = (UniqueConstraint("tent_id", "provider"),)

    tent_id: Mapped[int] = mapped_column(
        ForeignKey("tents.id", ondelete="CASCADE"), nullable=False
    )
    provider: Mapped[str] = mapped_column(String(16), nullable=False)
    client_id: Mapped[str] = mapped_column(String(512), nullable=False)
    client_secret: Mapped[str] = mapped_column(Text, nullable=False)
    redirect_uri: Mapped[str | None] = mapped_column(String(512))
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)


class EmailSyncLog(BaseModel):
    __tablename__ = "email_sync_log"

    email_connection_id: Mapped[int] = mapped_column(
        ForeignKey("email_connections.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    sync_started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    sync_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    status: Mapped[str] = mapped_column(
        String(16), default=SyncStatus.RUNNING, nullable=False
    )
    emails_fetched: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    inquiries_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text)


class EmailInquiry(BaseModel):
    """An inbound message the analyzer classified as a serious business inquiry."""

    __tablename__ = "email_inquiries"
    __table_args__ = (UniqueConstraint("email_connection_id", "email_message_id"),)

    tent_id: Mapped[int] = mapped_column(
        ForeignKey("tents.id", ondelete="CASCADE"), index=True, nullable=False
    )
    email_connection_id: Mapped[int] = mapped_column(
        ForeignKey("email_connections.id", ondelete="CASCADE"), nullable=False
    )
    email_message_id: Mapped[str] = mapped_column(String(512), nullable=False)
    thread_id: Mapped[str | None] = mapped_column(String(512))
    from_email: Mapped[str] = mapped_column(String(320), nullable=False)
    from_name: Mapped[str | None] = mapped_column(String(255))
    subject: Mapped[str] = mapped_column(Text, default="", nullable=False)
    body_text: Mapped[str] = mapped_column(Text, default="", nullable=False)
    body_html: Mapped[str | None] = mapped_column(Text)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    inquiry_type: Mapped[str] = mapped_column(
        String(32), default=InquiryType.GENERAL, nullable=False
    )
    seriousness_score: Mapped[int] = mapped_column(Integer, nullable=False)
    is_business_inquiry: Mapped[bool] = mapped_column(Boolean, nullable=False)
    ai_summary: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default=InquiryStatus.PENDING, index=True, nullable=False
    )
    auto_reply_sent: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    auto_reply_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )


class AutoReplyLog(BaseModel):
    __tablename__ = "auto_reply_log"

    inquiry_id: Mapped[int] = mapped_column(
        ForeignKey("email_inquiries.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    tent_id: Mapped[int] = mapped_column(
        ForeignKey("tents.id", ondelete="CASCADE"), nullable=False
    )
    recipient_email: Mapped[str] = mapped_column(String(320), nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default=ReplyStatus.QUEUED, nullable=False
    )
    error_message: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

"""Mailbox connection, inquiry and auto-reply schemas.

``ConnectionOut`` deliberately has no token fields: stored credentials never
leave the backend.
"""

import uuid
from datetime import datetime

from pydantic import Field

from src.api.schemas.base import RequestModel, ResponseModel


class CreateConnectionRequest(RequestModel):
    tent_id: int | None = None
    provider: str | None = Field(default=None, examples=["gmail"])
    email: str | None = None
    api_key: str | None = None


class YahooAppPasswordRequest(RequestModel):
    tent_id: int | None = None
    email: str | None = None
    app_password: str | None = None


class SyncRequest(RequestModel):
    connection_id: int | None = None


class UpdateInquiryRequest(RequestModel):
    status: str | None = Field(default=None, examples=["reviewed"])


class AutoReplyRequest(RequestModel):
    inquiry_id: int | None = None


class ConnectionOut(ResponseModel):
    id: int
    tent_id: int
    user_id: uuid.UUID
    email_provider: str
    email_address: str
    is_active: bool
    sync_status: str
    last_sync_at: datetime | None
    error_message: str | None
    created_at: datetime


class InquiryOut(ResponseModel):
    id: int
    tent_id: int
    email_connection_id: int
    from_email: str
    from_name: str | None
    subject: str
    body_text: str
    received_at: datetime
    inquiry_type: str
    seriousness_score: int
    is_business_inquiry: bool
    ai_summary: str
    status: str
    auto_reply_sent: bool
    auto_reply_sent_at: datetime | None


class AutoReplyOut(ResponseModel):
    id: int
    inquiry_id: int
    tent_id: int
    recipient_email: str
    subject: str
    body: str
    status: str
    error_message: str | None
    sent_at: datetime | None
    created_at: datetime

"""Notification model."""

import uuid
from enum import StrEnum

from sqlalchemy import JSON, Boolean, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.base import BaseModel


class NotificationType(StrEnum):
    TENT_JOINED = "tent_joined"
    INVOICE_STATUS = "invoice_status"
    INVOICE_SUBMITTED = "invoice_submitted"
    EMAIL_INQUIRY = "email_inquiry"


class Notification(BaseModel):
    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str | None] = mapped_column(Text)
    data: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

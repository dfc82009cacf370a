"""User rates model."""

import uuid
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.base import BaseModel

DEFAULT_REPLY_TEMPLATE = (
    "Thank you for reaching out! I'm interested in discussing this opportunity.\n"
    "\n"
    "Here are my current rates:\n"
    "{{service_rates}}\n"
    "\n"
    "Let me know which package works best for your campaign."
)


class UserRates(BaseModel):
    """A user's rate card and auto-reply settings, optionally scoped to a tent.

    ``service_rates`` holds a list of ``{service, rate, currency, notes}``
    objects.
    """

    __tablename__ = "user_rates"
    __table_args__ = (UniqueConstraint("user_id", "tent_id"),)

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    tent_id: Mapped[int | None] = mapped_column(
        ForeignKey("tents.id", ondelete="CASCADE"), index=True
    )
    service_rates: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )
    default_currency: Mapped[str] = mapped_column(
        String(3), default="PHP", nullable=False
    )
    auto_reply_enabled: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    auto_reply_delay_minutes: Mapped[int] = mapped_column(
        Integer, default=5, nullable=False
    )
    reply_template: Mapped[str] = mapped_column(
        Text, default=DEFAULT_REPLY_TEMPLATE, nullable=False
    )
    email_signature: Mapped[str] = mapped_column(
        Text, default="Best regards", nullable=False
    )
    min_seriousness_score: Mapped[int] = mapped_column(
        Integer, default=5, nullable=False
    )
    additional_notes: Mapped[str | None] = mapped_column(Text)

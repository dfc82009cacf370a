"""Tent, membership and activity log models."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.base import BaseModel

MAX_TENT_MEMBERS = 2


class TentRole(StrEnum):
    CLIENT = "client"
    MANAGER = "manager"

    @property
    def counterpart(self) -> "TentRole":
        """The role the other member of a tent must hold."""
        return TentRole.MANAGER if self is TentRole.CLIENT else TentRole.CLIENT


class ActivityType(StrEnum):
    TENT_CREATED = "tent_created"
    TENT_SETTINGS_UPDATED = "tent_settings_updated"
    MEMBER_JOINED = "member_joined"
    INVOICE_CREATED = "invoice_created"
    INVOICE_UPDATED = "invoice_updated"
    INVOICE_STATUS_CHANGED = "invoice_status_changed"
    EMAIL_CONNECTED = "email_connected"
    OAUTH_CONFIG_UPDATED = "oauth_config_updated"


class Tent(BaseModel):
    """A workspace shared by exactly one client and one manager."""

    __tablename__ = "tents"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    invite_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    invite_link: Mapped[str] = mapped_column(String(512), nullable=False)
    creator_role: Mapped[str] = mapped_column(String(16), nullable=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)


class TentMember(BaseModel):
    __tablename__ = "tent_members"
    __table_args__ = (UniqueConstraint("tent_id", "user_id"),)

    tent_id: Mapped[int] = mapped_column(
        ForeignKey("tents.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    tent_role: Mapped[str] = mapped_column(String(16), nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    @property
    def is_manager(self) -> bool:
        return self.tent_role == TentRole.MANAGER


class TentActivityLog(BaseModel):
    """Audit trail of what happened inside a tent."""

    __tablename__ = "tent_activity_logs"

    tent_id: Mapped[int] = mapped_column(
        ForeignKey("tents.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)
    action_description: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(32))
    entity_id: Mapped[int | None] = mapped_column(BigInteger)
    metadata_: Mapped[dict[str, object]] = mapped_column(
        "metadata", JSON, default=dict, nullable=False
    )

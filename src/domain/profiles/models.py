"""Profile model."""

import uuid

from sqlalchemy import JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.base import BaseModel


class Profile(BaseModel):
    """Display information for a user identified by the auth provider."""

    __tablename__ = "profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(320))
    full_name: Mapped[str | None] = mapped_column(String(255))
    preferences: Mapped[dict[str, object]] = mapped_column(
        JSON, default=dict, nullable=False
    )

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or "Someone"

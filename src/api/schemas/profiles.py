"""Profile and notification schemas."""

import uuid
from datetime import datetime
from typing import Any

from src.api.schemas.base import RequestModel, ResponseModel


class UpdateProfileRequest(RequestModel):
    email: str | None = None
    full_name: str | None = None


class ProfileOut(ResponseModel):
    id: int
    user_id: uuid.UUID
    email: str | None
    full_name: str | None
    preferences: dict[str, Any]


class NotificationOut(ResponseModel):
    id: int
    type: str
    title: str
    message: str | None
    data: dict[str, Any]
    read: bool
    created_at: datetime

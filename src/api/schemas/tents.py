"""Tent, membership and activity schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import Field

from src.api.schemas.base import RequestModel, ResponseModel


class CreateTentRequest(RequestModel):
    name: str | None = None
    description: str | None = None
    creator_role: str | None = Field(default=None, examples=["manager"])


class JoinTentRequest(RequestModel):
    invite_code: str | None = Field(default=None, examples=["K7Q2ZP4M"])


class UpdateTentRequest(RequestModel):
    name: str | None = None
    description: str | None = None


class OAuthConfigRequest(RequestModel):
    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str | None = None


class TentOut(ResponseModel):
    id: int
    name: str
    description: str | None
    invite_code: str
    invite_link: str
    creator_role: str
    is_locked: bool
    created_by: uuid.UUID
    created_at: datetime


class TentMemberOut(ResponseModel):
    id: int
    tent_id: int
    user_id: uuid.UUID
    tent_role: str
    is_admin: bool
    joined_at: datetime


class ActivityOut(ResponseModel):
    id: int
    tent_id: int
    user_id: uuid.UUID
    action_type: str
    action_description: str
    entity_type: str | None
    entity_id: int | None
    metadata: dict[str, Any] = Field(validation_alias="metadata_")
    created_at: datetime


class OAuthConfigOut(ResponseModel):
    """Per-tent OAuth client. The secret is never echoed back."""

    id: int
    tent_id: int
    provider: str
    client_id: str
    redirect_uri: str | None

"""Profile of the authenticated user."""

from typing import Any

from fastapi import APIRouter

from src.api.dependencies import AuthenticatedUser
from src.api.schemas.profiles import ProfileOut, UpdateProfileRequest
from src.core.exceptions import NotFoundError
from src.domain.profiles.repository import ProfileRepository
from src.infrastructure.database.dependencies import DatabaseSession

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("")
async def get_profile(user: AuthenticatedUser, db: DatabaseSession) -> dict[str, Any]:
    profile = await ProfileRepository(db).get_by_user_id(user.id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return {"profile": ProfileOut.model_validate(profile)}


@router.put("")
async def update_profile(
    body: UpdateProfileRequest, user: AuthenticatedUser, db: DatabaseSession
) -> dict[str, Any]:
    """Create or update the caller's profile; the token email is the default."""
    profile = await ProfileRepository(db).upsert(
        user.id, body.email or user.email, body.full_name
    )
    return {"profile": ProfileOut.model_validate(profile)}

"""Tent endpoints: creation, invites, membership, activity and statistics."""

from typing import Annotated, Any

from fastapi import APIRouter, Query, Response

from src.api.dependencies import AuthenticatedUser
from src.api.schemas.invoices import DashboardStatsOut
from src.api.schemas.tents import (
    ActivityOut,
    CreateTentRequest,
    JoinTentRequest,
    OAuthConfigOut,
    OAuthConfigRequest,
    TentMemberOut,
    TentOut,
    UpdateTentRequest,
)
from src.api.utils.responses import ORJSONResponse
from src.core.exceptions import NotFoundError
from src.domain.email.connections import EmailConnectionService
from src.domain.email.oauth import parse_provider
from src.domain.invoices.service import InvoiceService
from src.domain.tents.service import TentService
from src.infrastructure.database.dependencies import DatabaseSession

router = APIRouter(prefix="/api/tents", tags=["tents"])


@router.post("")
async def create_tent(
    body: CreateTentRequest, user: AuthenticatedUser, db: DatabaseSession
) -> dict[str, Any]:
    """Create a tent with the caller as its admin member.

    The response carries the invite code and link to hand to the other party,
    together with the role that party will get.
    """
    created = await TentService(db).create_tent(
        user.id, body.name, body.description, body.creator_role
    )
    return {
        "tent": TentOut.model_validate(created.tent),
        "inviteCode": created.tent.invite_code,
        "inviteLink": created.tent.invite_link,
        "invitedUserRole": created.invited_user_role.value,
        "message": "Tent created successfully",
    }


@router.post("/join")
async def join_tent(
    body: JoinTentRequest, user: AuthenticatedUser, db: DatabaseSession
) -> dict[str, Any]:
    result = await TentService(db).join_tent(user.id, body.invite_code)
    tent = TentOut.model_validate(result.tent)
    if result.already_member:
        return {
            "message": "You are already a member of this tent",
            "tent": tent,
            "alreadyMember": True,
        }
    return {
        "message": "Successfully joined tent",
        "tent": tent,
        "member": TentMemberOut.model_validate(result.member),
        "role": result.role.value,
    }


@router.get("/invite/{invite_code}", response_model=None)
async def preview_invite(
    invite_code: str, user: AuthenticatedUser, db: DatabaseSession
) -> Response | dict[str, Any]:
    """Show what an invite code leads to before joining."""
    try:
        preview = await TentService(db).preview_invite(invite_code)
    except NotFoundError as e:
        return ORJSONResponse(
            status_code=404, content={"valid": False, "message": e.message}
        )
    return {
        "valid": True,
        "tent": {
            "id": preview.tent.id,
            "name": preview.tent.name,
            "description": preview.tent.description,
            "isFull": preview.is_full,
            "isLocked": preview.tent.is_locked,
        },
    }


@router.get("")
async def list_tents(user: AuthenticatedUser, db: DatabaseSession) -> dict[str, Any]:
    rows = await TentService(db).list_tents(user.id)
    return {
        "tents": [
            TentOut.model_validate(tent).model_dump()
            | {"role": member.tent_role, "is_admin": member.is_admin}
            for tent, member in rows
        ]
    }


@router.get("/{tent_id}")
async def get_tent(
    tent_id: int, user: AuthenticatedUser, db: DatabaseSession
) -> dict[str, Any]:
    service = TentService(db)
    tent, membership, members = await service.get_tent(tent_id, user.id)
    profiles = await service.profiles.get_many(member.user_id for member in members)
    return {
        "tent": TentOut.model_validate(tent),
        "role": membership.tent_role,
        "isAdmin": membership.is_admin,
        "members": [
            TentMemberOut.model_validate(member).model_dump()
            | {
                "full_name": profiles[member.user_id].full_name
                if member.user_id in profiles
                else None,
                "email": profiles[member.user_id].email
                if member.user_id in profiles
                else None,
            }
            for member in members
        ],
    }


@router.patch("/{tent_id}")
async def update_tent(
    tent_id: int,
    body: UpdateTentRequest,
    user: AuthenticatedUser,
    db: DatabaseSession,
) -> dict[str, Any]:
    tent = await TentService(db).update_tent(
        tent_id, user.id, body.model_dump(exclude_unset=True)
    )
    return {"tent": TentOut.model_validate(tent)}


@router.get("/{tent_id}/activity")
async def list_activity(
    tent_id: int,
    user: AuthenticatedUser,
    db: DatabaseSession,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> dict[str, Any]:
    entries = await TentService(db).list_activity(tent_id, user.id, limit, offset)
    return {"activity": [ActivityOut.model_validate(entry) for entry in entries]}


@router.get("/{tent_id}/stats")
async def tent_stats(
    tent_id: int, user: AuthenticatedUser, db: DatabaseSession
) -> dict[str, Any]:
    stats = await InvoiceService(db).dashboard_stats(tent_id, user.id)
    return {"stats": DashboardStatsOut.model_validate(stats)}


@router.put("/{tent_id}/oauth-config/{provider}")
async def save_oauth_config(
    tent_id: int,
    provider: str,
    body: OAuthConfigRequest,
    user: AuthenticatedUser,
    db: DatabaseSession,
) -> dict[str, Any]:
    """Store a tent's own OAuth client for a mail provider (admins only)."""
    config = await EmailConnectionService(db).save_oauth_config(
        tent_id,
        user.id,
        parse_provider(provider),
        body.client_id,
        body.client_secret,
        body.redirect_uri,
    )
    return {"success": True, "config": OAuthConfigOut.model_validate(config)}

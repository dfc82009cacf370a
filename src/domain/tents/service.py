"""Tent creation, invitations and membership rules.

A tent holds at most two members: the creator and one invited user with the
opposite role. The tent locks itself when the second member joins.
"""

import secrets
import string
import uuid
from dataclasses import dataclass
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings, get_settings
from src.core.exceptions import (
    CreatorTentError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    Severity,
    ValidationError,
)
from src.domain.notifications.models import NotificationType
from src.domain.notifications.repository import NotificationRepository
from src.domain.profiles.repository import ProfileRepository
from src.domain.tents.models import (
    MAX_TENT_MEMBERS,
    ActivityType,
    Tent,
    TentActivityLog,
    TentMember,
    TentRole,
)
from src.domain.tents.repository import (
    ActivityLogRepository,
    TentMemberRepository,
    TentRepository,
)

INVITE_CODE_LENGTH = 8
INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_INVITE_CODE_ATTEMPTS = 5


def generate_invite_code() -> str:
    return "".join(
        secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH)
    )


def parse_role(value: str | None) -> TentRole:
    try:
        return TentRole(value)
    except ValueError as e:
        raise ValidationError("Invalid creator role", cause=e) from e


@dataclass(frozen=True)
class TentCreation:
    tent: Tent
    member: TentMember
    invited_user_role: TentRole


@dataclass(frozen=True)
class JoinResult:
    tent: Tent
    member: TentMember
    role: TentRole
    already_member: bool = False


@dataclass(frozen=True)
class InvitePreview:
    tent: Tent
    member_count: int

    @property
    def is_full(self) -> bool:
        return self.member_count >= MAX_TENT_MEMBERS


async def require_membership(
    members: TentMemberRepository,
    tent_id: int,
    user_id: uuid.UUID,
    message: str = "Access denied to this tent",
) -> TentMember:
    """Return the caller's membership or raise ``ForbiddenError``."""
    membership = await members.get_membership(tent_id, user_id)
    if membership is None:
        raise ForbiddenError(message, context={"tent_id": tent_id})
    return membership


class TentService:
    """Operations on tents for an authenticated user."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.tents = TentRepository(session)
        self.members = TentMemberRepository(session)
        self.activity = ActivityLogRepository(session)
        self.profiles = ProfileRepository(session)
        self.notifications = NotificationRepository(session)

    async def _unique_invite_code(self) -> str:
        for _ in range(MAX_INVITE_CODE_ATTEMPTS):
            code = generate_invite_code()
            if not await self.tents.invite_code_exists(code):
                return code
        raise CreatorTentError(
            ErrorCode.INTERNAL_ERROR,
            "Failed to create tent",
            severity=Severity.HIGH,
        )

    async def log_activity(
        self,
        tent_id: int,
        user_id: uuid.UUID,
        action_type: ActivityType,
        description: str,
        entity_type: str | None = None,
        entity_id: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TentActivityLog:
        return await self.activity.create(
            TentActivityLog(
                tent_id=tent_id,
                user_id=user_id,
                action_type=action_type,
                action_description=description,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata_=metadata or {},
            )
        )

    async def create_tent(
        self,
        user_id: uuid.UUID,
        name: str | None,
        description: str | None,
        creator_role: str | None,
    ) -> TentCreation:
        """Create a tent and add the caller as its first member.

        Raises:
            ValidationError: Missing name or role, or an unknown role.
            NotFoundError: The caller has no profile yet.
            CreatorTentError: The creator membership could not be stored. The
                request transaction is rolled back, so the tent is not kept.
        """
        if not name or not creator_role:
            raise ValidationError("Name and creator role are required")
        role = parse_role(creator_role)

        if await self.profiles.get_by_user_id(user_id) is None:
            raise NotFoundError("Profile not found")

        invite_code = await self._unique_invite_code()
        tent = await self.tents.create(
            Tent(
                name=name,
                description=description,
                created_by=user_id,
                invite_code=invite_code,
                invite_link=f"{self.settings.app_url}/tents/join/{invite_code}",
                creator_role=role,
                is_locked=False,
            )
        )

        try:
            member = await self.members.create(
                TentMember(
                    tent_id=tent.id, user_id=user_id, tent_role=role, is_admin=True
                )
            )
        except SQLAlchemyError as e:
            logger.error("Error adding creator to tent {}: {}", tent.id, e)
            raise CreatorTentError(
                ErrorCode.INTERNAL_ERROR,
                "Failed to create tent member",
                severity=Severity.HIGH,
                context={"tent_id": tent.id},
                cause=e,
            ) from e

        await self.log_activity(
            tent.id,
            user_id,
            ActivityType.TENT_CREATED,
            f"Created tent {tent.name}",
            entity_type="tent",
            entity_id=tent.id,
        )
        logger.info("Tent {} created with invite code {}", tent.id, invite_code)
        return TentCreation(
            tent=tent, member=member, invited_user_role=role.counterpart
        )

    async def join_tent(
        self, user_id: uuid.UUID, invite_code: str | None
    ) -> JoinResult:
        """Join a tent through its invite code.

        Raises:
            ValidationError: No invite code given.
            NotFoundError: No tent has this code.
            ForbiddenError: The tent is locked, even for its own members, or
                already has two members.
        """
        if not invite_code:
            raise ValidationError("Invite code is required")

        tent = await self.tents.get_by_invite_code(
            invite_code.strip().upper(), for_update=True
        )
        if tent is None:
            raise NotFoundError("Invalid invite code")

        if tent.is_locked:
            raise ForbiddenError("This tent is no longer accepting new members")

        existing = await self.members.get_membership(tent.id, user_id)
        if existing is not None:
            return JoinResult(
                tent=tent,
                member=existing,
                role=TentRole(existing.tent_role),
                already_member=True,
            )

        member_count = await self.members.count_members(tent.id)
        if member_count >= MAX_TENT_MEMBERS:
            raise ForbiddenError(
                f"This tent is already at maximum capacity ({MAX_TENT_MEMBERS} members)"
            )

        role = TentRole(tent.creator_role).counterpart
        member = await self.members.create(
            TentMember(
                tent_id=tent.id,
                user_id=user_id,
                tent_role=role,
                is_admin=role is TentRole.MANAGER,
            )
        )

        if member_count + 1 >= MAX_TENT_MEMBERS:
            tent = await self.tents.update(tent, {"is_locked": True})

        profile = await self.profiles.get_by_user_id(user_id)
        joiner_name = profile.display_name if profile else "Someone"
        if tent.created_by != user_id:
            await self.notifications.notify(
                tent.created_by,
                NotificationType.TENT_JOINED,
                "New member joined your tent",
                f"{joiner_name} has joined {tent.name}",
                {
                    "tent_id": tent.id,
                    "joined_user_id": str(user_id),
                    "joined_user_name": joiner_name,
                },
            )
        await self.log_activity(
            tent.id,
            user_id,
            ActivityType.MEMBER_JOINED,
            f"{joiner_name} joined as {role}",
            entity_type="member",
            entity_id=member.id,
        )

        logger.info("User {} joined tent {} as {}", user_id, tent.id, role)
        return JoinResult(tent=tent, member=member, role=role)

    async def preview_invite(self, invite_code: str) -> InvitePreview:
        tent = await self.tents.get_by_invite_code(invite_code.strip().upper())
        if tent is None:
            raise NotFoundError("Invalid invite code")
        return InvitePreview(
            tent=tent, member_count=await self.members.count_members(tent.id)
        )

    async def list_tents(self, user_id: uuid.UUID) -> list[tuple[Tent, TentMember]]:
        return await self.tents.list_for_user(user_id)

    async def get_tent(
        self, tent_id: int, user_id: uuid.UUID
    ) -> tuple[Tent, TentMember, list[TentMember]]:
        """Return a tent, the caller's membership and all members."""
        tent = await self.tents.get_by_id(tent_id)
        if tent is None:
            raise NotFoundError("Tent not found", context={"tent_id": tent_id})
        membership = await require_membership(self.members, tent_id, user_id)
        return tent, membership, await self.members.list_members(tent_id)

    async def update_tent(
        self, tent_id: int, user_id: uuid.UUID, changes: dict[str, Any]
    ) -> Tent:
        tent, membership, _ = await self.get_tent(tent_id, user_id)
        if not membership.is_admin:
            raise ForbiddenError("Only tent admins can update tent settings")
        if not changes:
            return tent
        if "name" in changes and not changes["name"]:
            raise ValidationError("Name cannot be empty")

        tent = await self.tents.update(tent, changes)
        await self.log_activity(
            tent.id,
            user_id,
            ActivityType.TENT_SETTINGS_UPDATED,
            "Updated tent settings",
            entity_type="tent",
            entity_id=tent.id,
            metadata={"fields": sorted(changes)},
        )
        return tent

    async def list_activity(
        self, tent_id: int, user_id: uuid.UUID, limit: int = 50, offset: int = 0
    ) -> list[TentActivityLog]:
        await require_membership(self.members, tent_id, user_id)
        return await self.activity.list_for_tent(tent_id, limit=limit, offset=offset)

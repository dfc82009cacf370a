"""In-app notification endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Query

from src.api.dependencies import AuthenticatedUser
from src.api.schemas.profiles import NotificationOut
from src.core.exceptions import NotFoundError
from src.domain.notifications.repository import NotificationRepository
from src.infrastructure.database.dependencies import DatabaseSession

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    user: AuthenticatedUser,
    db: DatabaseSession,
    unread_only: Annotated[bool, Query(alias="unreadOnly")] = False,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> dict[str, Any]:
    notifications = await NotificationRepository(db).list_for_user(
        user.id, unread_only=unread_only, limit=limit
    )
    return {
        "notifications": [
            NotificationOut.model_validate(notification)
            for notification in notifications
        ]
    }


@router.post("/read-all")
async def mark_all_read(user: AuthenticatedUser, db: DatabaseSession) -> dict[str, Any]:
    updated = await NotificationRepository(db).mark_all_read(user.id)
    return {"success": True, "updated": updated}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: int, user: AuthenticatedUser, db: DatabaseSession
) -> dict[str, Any]:
    notifications = NotificationRepository(db)
    notification = await notifications.get_for_user(notification_id, user.id)
    if notification is None:
        raise NotFoundError("Notification not found")
    notification = await notifications.update(notification, {"read": True})
    return {
        "success": True,
        "notification": NotificationOut.model_validate(notification),
    }

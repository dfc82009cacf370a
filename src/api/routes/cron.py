"""Scheduled jobs triggered over HTTP by the platform scheduler."""

import secrets
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header

from src.api.dependencies import Analyzer
from src.core.config import Settings, get_settings
from src.core.exceptions import UnauthorizedError
from src.domain.email.sync import EmailSyncService
from src.infrastructure.database.dependencies import DatabaseSession
from src.infrastructure.http import HttpClient

router = APIRouter(prefix="/api/cron", tags=["cron"])


async def verify_cron_secret(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Accept only ``Authorization: Bearer <CRON_SECRET>``.

    With no secret configured every call is rejected.
    """
    secret = settings.security_config.cron_secret
    if not secret or not authorization:
        raise UnauthorizedError("Unauthorized")
    if not secrets.compare_digest(authorization, f"Bearer {secret}"):
        raise UnauthorizedError("Unauthorized")


@router.get("/sync-emails", dependencies=[Depends(verify_cron_secret)])
async def sync_emails(
    db: DatabaseSession, http: HttpClient, analyzer: Analyzer
) -> dict[str, Any]:
    return await EmailSyncService(db, http, analyzer).sync_all()

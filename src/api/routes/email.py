"""Mailbox connection, OAuth, sync, inquiry and auto-reply endpoints.

The OAuth callback is hit by the provider redirecting the user's browser, so
it answers with redirects to the dashboard instead of JSON.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Query
from fastapi.responses import RedirectResponse
from loguru import logger

from src.api.constants import OAUTH_FAILURE_PATH, OAUTH_SUCCESS_PATH
from src.api.dependencies import Analyzer, AuthenticatedUser
from src.api.schemas.email import (
    AutoReplyOut,
    AutoReplyRequest,
    ConnectionOut,
    CreateConnectionRequest,
    InquiryOut,
    SyncRequest,
    UpdateInquiryRequest,
    YahooAppPasswordRequest,
)
from src.core.config import Settings, get_settings
from src.core.exceptions import CreatorTentError, ValidationError
from src.domain.email.connections import EmailConnectionService
from src.domain.email.inquiries import AutoReplyService, InquiryService
from src.domain.email.models import EmailProviderName
from src.domain.email.oauth import OAuthClient, decode_state, parse_provider
from src.domain.email.sync import EmailSyncService
from src.infrastructure.database.dependencies import DatabaseSession
from src.infrastructure.http import HttpClient

router = APIRouter(prefix="/api/email", tags=["email"])

TentIdQuery = Annotated[int | None, Query(alias="tentId")]


def _failure_redirect(
    settings: Settings, provider: EmailProviderName
) -> RedirectResponse:
    return RedirectResponse(
        f"{settings.app_url}{OAUTH_FAILURE_PATH}?error={provider}_connection_failed"
    )


@router.get("/connections")
async def list_connections(
    user: AuthenticatedUser, db: DatabaseSession, tent_id: TentIdQuery = None
) -> dict[str, Any]:
    connections, membership = await EmailConnectionService(db).list_connections(
        tent_id, user.id
    )
    return {
        "connections": [ConnectionOut.model_validate(c) for c in connections],
        "userRole": membership.tent_role,
    }


@router.post("/connections")
async def create_connection(
    body: CreateConnectionRequest, user: AuthenticatedUser, db: DatabaseSession
) -> dict[str, Any]:
    connection = await EmailConnectionService(db).create_connection(
        user.id, body.tent_id, body.provider, body.email, body.api_key
    )
    return {"success": True, "connection": ConnectionOut.model_validate(connection)}


@router.delete("/connections/{connection_id}")
async def delete_connection(
    connection_id: int, user: AuthenticatedUser, db: DatabaseSession
) -> dict[str, Any]:
    await EmailConnectionService(db).delete_connection(connection_id, user.id)
    return {"success": True}


@router.post("/yahoo/app-password")
async def connect_yahoo_app_password(
    body: YahooAppPasswordRequest, user: AuthenticatedUser, db: DatabaseSession
) -> dict[str, Any]:
    connection = await EmailConnectionService(db).connect_yahoo_app_password(
        user.id, body.tent_id, body.email, body.app_password
    )
    return {
        "success": True,
        "connection": {
            "id": connection.id,
            "email_address": connection.email_address,
            "email_provider": connection.email_provider,
        },
    }


@router.post("/sync")
async def sync_connection(
    body: SyncRequest,
    user: AuthenticatedUser,
    db: DatabaseSession,
    http: HttpClient,
    analyzer: Analyzer,
) -> dict[str, Any]:
    result = await EmailSyncService(db, http, analyzer).sync_connection(
        body.connection_id, user.id
    )
    return result.to_dict()


@router.get("/inquiries")
async def list_inquiries(
    user: AuthenticatedUser,
    db: DatabaseSession,
    analyzer: Analyzer,
    tent_id: TentIdQuery = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> dict[str, Any]:
    inquiries = await InquiryService(db, analyzer).list_inquiries(
        tent_id, user.id, status_filter
    )
    return {"inquiries": [InquiryOut.model_validate(i) for i in inquiries]}


@router.patch("/inquiries/{inquiry_id}")
async def update_inquiry(
    inquiry_id: int,
    body: UpdateInquiryRequest,
    user: AuthenticatedUser,
    db: DatabaseSession,
    analyzer: Analyzer,
) -> dict[str, Any]:
    inquiry = await InquiryService(db, analyzer).update_status(
        inquiry_id, user.id, body.status
    )
    return {"success": True, "inquiry": InquiryOut.model_validate(inquiry)}


@router.get("/inquiries/{inquiry_id}/suggestions")
async def reply_suggestions(
    inquiry_id: int, user: AuthenticatedUser, db: DatabaseSession, analyzer: Analyzer
) -> dict[str, Any]:
    suggestions = await InquiryService(db, analyzer).suggestions(inquiry_id, user.id)
    return {"suggestions": suggestions}


@router.post("/auto-reply")
async def send_auto_reply(
    body: AutoReplyRequest,
    user: AuthenticatedUser,
    db: DatabaseSession,
    http: HttpClient,
    analyzer: Analyzer,
) -> dict[str, Any]:
    result = await AutoReplyService(db, http, analyzer).send_auto_reply(
        user.id, body.inquiry_id
    )
    return {
        "success": True,
        "replyId": result.log.id,
        "replyBody": result.body,
        "status": result.log.status,
    }


@router.get("/auto-reply")
async def auto_reply_history(
    user: AuthenticatedUser,
    db: DatabaseSession,
    http: HttpClient,
    analyzer: Analyzer,
    tent_id: TentIdQuery = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> dict[str, Any]:
    rows = await AutoReplyService(db, http, analyzer).history(user.id, tent_id, limit)
    return {
        "replies": [
            AutoReplyOut.model_validate(log).model_dump()
            | {
                "inquiry": {
                    "subject": inquiry.subject,
                    "from_email": inquiry.from_email,
                    "from_name": inquiry.from_name,
                    "received_at": inquiry.received_at,
                }
            }
            for log, inquiry in rows
        ]
    }


@router.get("/{provider}/auth")
async def start_oauth(
    provider: str,
    user: AuthenticatedUser,
    db: DatabaseSession,
    tent_id: TentIdQuery = None,
) -> dict[str, Any]:
    """Return the consent URL the browser should open to connect a mailbox."""
    auth_url = await EmailConnectionService(db).authorization_url(
        user.id, tent_id, parse_provider(provider)
    )
    return {"authUrl": auth_url}


@router.get("/{provider}/callback", response_model=None)
async def oauth_callback(
    provider: str,
    db: DatabaseSession,
    http: HttpClient,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> RedirectResponse:
    """Finish the OAuth flow and send the browser back to the tent settings.

    The caller is identified by the encrypted ``state`` issued in
    ``start_oauth``, not by a bearer token.
    """
    settings = get_settings()
    provider_name = parse_provider(provider)
    if error:
        logger.warning("{} OAuth error: {}", provider_name.label, error)
        return _failure_redirect(settings, provider_name)
    if not code:
        raise ValidationError("No authorization code provided")
    oauth_state = decode_state(state, provider_name)

    service = EmailConnectionService(db, settings)
    try:
        credentials = await service.resolve_credentials(
            oauth_state.tent_id, provider_name
        )
        if credentials is None:
            logger.error("{} OAuth is not configured", provider_name.label)
            return _failure_redirect(settings, provider_name)
        client = OAuthClient(http, provider_name)
        tokens = await client.exchange_code(credentials, code)
        email_address = await client.fetch_email_address(tokens.access_token)
        await service.connect_oauth(oauth_state, tokens, email_address)
    except CreatorTentError as e:
        logger.error("{} OAuth callback failed: {}", provider_name.label, e.message)
        return _failure_redirect(settings, provider_name)

    success_path = OAUTH_SUCCESS_PATH.format(tent_id=oauth_state.tent_id)
    return RedirectResponse(
        f"{settings.app_url}{success_path}"
        f"?email_connected=true&provider={provider_name}"
    )

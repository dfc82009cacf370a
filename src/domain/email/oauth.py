"""OAuth 2.0 authorization-code flow for Gmail, Outlook and Yahoo mailboxes.

The ``state`` parameter carries the user and tent the mailbox is being
connected for. It is encrypted with the application key and expires after
``SECURITY_CONFIG__OAUTH_STATE_MAX_AGE_SECONDS``.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import httpx
import orjson
from loguru import logger

from src.core.config import Settings, get_settings
from src.core.encryption import decrypt, encrypt
from src.core.exceptions import (
    EncryptionError,
    ExternalServiceError,
    ValidationError,
)
from src.core.observability import trace_operation
from src.domain.email.models import EmailProviderName
from src.infrastructure.database.base import utcnow


@dataclass(frozen=True)
class ProviderEndpoints:
    authorize_url: str
    token_url: str
    userinfo_url: str
    scope: str
    auth_params: dict[str, str] = field(default_factory=dict)


PROVIDERS: dict[EmailProviderName, ProviderEndpoints] = {
    EmailProviderName.GMAIL: ProviderEndpoints(
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        userinfo_url="https://gmail.googleapis.com/gmail/v1/users/me/profile",
        scope=" ".join(
            [
                "https://www.googleapis.com/auth/gmail.readonly",
                "https://www.googleapis.com/auth/gmail.send",
                "https://www.googleapis.com/auth/gmail.modify",
            ]
        ),
        auth_params={"access_type": "offline", "prompt": "consent"},
    ),
    EmailProviderName.OUTLOOK: ProviderEndpoints(
        authorize_url="https://login.microsoftonline.com/common/oauth2/v2.0/authorize",
        token_url="https://login.microsoftonline.com/common/oauth2/v2.0/token",
        userinfo_url="https://graph.microsoft.com/v1.0/me",
        scope=" ".join(
            [
                "openid",
                "profile",
                "email",
                "offline_access",
                "https://graph.microsoft.com/User.Read",
                "https://graph.microsoft.com/Mail.Read",
            ]
        ),
        auth_params={"response_mode": "query"},
    ),
    EmailProviderName.YAHOO: ProviderEndpoints(
        authorize_url="https://api.login.yahoo.com/oauth2/request_auth",
        token_url="https://api.login.yahoo.com/oauth2/get_token",
        userinfo_url="https://api.login.yahoo.com/openid/v1/userinfo",
        scope="mail-r profile email",
    ),
}


def parse_provider(value: str) -> EmailProviderName:
    try:
        return EmailProviderName(value.lower())
    except ValueError as e:
        raise ValidationError(f"Unsupported email provider: {value}", cause=e) from e


@dataclass(frozen=True)
class OAuthCredentials:
    client_id: str
    client_secret: str | None
    redirect_uri: str


@dataclass(frozen=True)
class OAuthState:
    user_id: uuid.UUID
    tent_id: int
    provider: EmailProviderName
    issued_at: float


@dataclass(frozen=True)
class TokenSet:
    access_token: str
    refresh_token: str | None
    expires_at: datetime | None


def default_redirect_uri(provider: EmailProviderName, settings: Settings) -> str:
    return f"{settings.app_url}/api/email/{provider}/callback"


def encode_state(
    user_id: uuid.UUID, tent_id: int, provider: EmailProviderName
) -> str:
    payload = {
        "userId": str(user_id),
        "tentId": tent_id,
        "provider": provider.value,
        "issuedAt": time.time(),
    }
    return encrypt(orjson.dumps(payload).decode())


def decode_state(
    state: str | None,
    provider: EmailProviderName,
    max_age_seconds: int | None = None,
) -> OAuthState:
    """Decrypt and validate a state value returned by the provider.

    Raises:
        ValidationError: The state is missing, tampered with, expired, or was
            issued for another provider.
    """
    if not state:
        raise ValidationError("Invalid state parameter")
    if max_age_seconds is None:
        max_age_seconds = get_settings().security_config.oauth_state_max_age_seconds
    try:
        payload = orjson.loads(decrypt(state))
        parsed = OAuthState(
            user_id=uuid.UUID(payload["userId"]),
            tent_id=int(payload["tentId"]),
            provider=EmailProviderName(payload["provider"]),
            issued_at=float(payload["issuedAt"]),
        )
    except (EncryptionError, ValueError, KeyError, TypeError) as e:
        raise ValidationError("Invalid state parameter", cause=e) from e

    if parsed.provider is not provider:
        raise ValidationError("Invalid state parameter")
    if time.time() - parsed.issued_at > max_age_seconds:
        raise ValidationError("Invalid state parameter", context={"expired": True})
    return parsed


def build_authorization_url(
    provider: EmailProviderName, credentials: OAuthCredentials, state: str
) -> str:
    endpoints = PROVIDERS[provider]
    params = {
        "client_id": credentials.client_id,
        "redirect_uri": credentials.redirect_uri,
        "response_type": "code",
        "scope": endpoints.scope,
        "state": state,
        **endpoints.auth_params,
    }
    return f"{endpoints.authorize_url}?{urlencode(params)}"


def _token_set(payload: dict[str, Any], previous_refresh: str | None) -> TokenSet:
    expires_in = payload.get("expires_in")
    return TokenSet(
        access_token=payload["access_token"],
        refresh_token=payload.get("refresh_token") or previous_refresh,
        expires_at=utcnow() + timedelta(seconds=int(expires_in))
        if expires_in
        else None,
    )


class OAuthClient:
    """Token endpoint and profile calls for one provider."""

    def __init__(self, http: httpx.AsyncClient, provider: EmailProviderName) -> None:
        self.http = http
        self.provider = provider
        self.endpoints = PROVIDERS[provider]

    async def _token_request(self, form: dict[str, str]) -> dict[str, Any]:
        with trace_operation("oauth.token", provider=self.provider.value):
            try:
                response = await self.http.post(
                    self.endpoints.token_url,
                    data=form,
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
                payload = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.error(
                    "Token request to {} failed: {}", self.provider.value, e
                )
                raise ExternalServiceError(
                    "Failed to exchange authorization code",
                    service=self.provider.value,
                    cause=e,
                ) from e
        if "access_token" not in payload:
            raise ExternalServiceError(
                "Token response did not include an access token",
                service=self.provider.value,
            )
        return payload

    async def exchange_code(self, credentials: OAuthCredentials, code: str) -> TokenSet:
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": credentials.redirect_uri,
            "client_id": credentials.client_id,
        }
        if credentials.client_secret:
            form["client_secret"] = credentials.client_secret
        return _token_set(await self._token_request(form), None)

    async def refresh(
        self, credentials: OAuthCredentials, refresh_token: str
    ) -> TokenSet:
        form = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": credentials.client_id,
        }
        if credentials.client_secret:
            form["client_secret"] = credentials.client_secret
        return _token_set(await self._token_request(form), refresh_token)

    async def fetch_email_address(self, access_token: str) -> str:
        """Return the mailbox address that the access token belongs to."""
        with trace_operation("oauth.userinfo", provider=self.provider.value):
            try:
                response = await self.http.get(
                    self.endpoints.userinfo_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                profile = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise ExternalServiceError(
                    "Failed to fetch mailbox profile",
                    service=self.provider.value,
                    cause=e,
                ) from e

        match self.provider:
            case EmailProviderName.GMAIL:
                address = profile.get("emailAddress")
            case EmailProviderName.OUTLOOK:
                address = profile.get("mail") or profile.get("userPrincipalName")
            case EmailProviderName.YAHOO:
                address = profile.get("email")
        if not address:
            raise ExternalServiceError(
                "Mailbox profile did not include an email address",
                service=self.provider.value,
            )
        return str(address)

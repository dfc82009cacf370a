"""Mailbox connections and the OAuth clients used to create them.

Connections belong to one user inside one tent and are unique per mailbox
address. Tokens are encrypted before they reach the database and are only
decrypted when a provider call needs them.
"""

import uuid
from datetime import datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings, get_settings
from src.core.encryption import decrypt, encrypt
from src.core.exceptions import (
    CreatorTentError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    Severity,
    ValidationError,
)
from src.domain.email.models import (
    EmailConnection,
    EmailProviderName,
    OAuthConfiguration,
    SyncStatus,
)
from src.domain.email.oauth import (
    OAuthCredentials,
    OAuthState,
    TokenSet,
    build_authorization_url,
    default_redirect_uri,
    encode_state,
)
from src.domain.email.repository import (
    EmailConnectionRepository,
    OAuthConfigurationRepository,
)
from src.domain.tents.models import ActivityType, TentActivityLog, TentMember
from src.domain.tents.repository import ActivityLogRepository, TentMemberRepository
from src.domain.tents.service import require_membership

YAHOO_DOMAINS = ("@yahoo.com", "@ymail.com")
YAHOO_APP_PASSWORD_LENGTH = 16


def normalize_app_password(value: str) -> str:
    """Strip the spaces Yahoo shows between the four-letter groups."""
    return "".join(value.split())


class EmailConnectionService:
    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.connections = EmailConnectionRepository(session)
        self.oauth_configs = OAuthConfigurationRepository(session)
        self.members = TentMemberRepository(session)
        self.activity = ActivityLogRepository(session)

    async def _log(
        self,
        tent_id: int,
        user_id: uuid.UUID,
        action_type: ActivityType,
        description: str,
        entity_type: str,
        entity_id: int,
        provider: str,
    ) -> None:
        await self.activity.create(
            TentActivityLog(
                tent_id=tent_id,
                user_id=user_id,
                action_type=action_type,
                action_description=description,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata_={"provider": provider},
            )
        )

    async def list_connections(
        self, tent_id: int | None, user_id: uuid.UUID
    ) -> tuple[list[EmailConnection], TentMember]:
        """Return the tent's connections, newest first, with the caller's membership."""
        if not tent_id:
            raise ValidationError("Tent ID is required")
        membership = await require_membership(self.members, tent_id, user_id)
        return await self.connections.list_for_tent(tent_id), membership

    async def _upsert(
        self,
        user_id: uuid.UUID,
        tent_id: int,
        provider: EmailProviderName,
        email_address: str,
        access_token: str,
        refresh_token: str | None,
        token_expiry: datetime | None,
    ) -> EmailConnection:
        values = {
            "email_provider": provider.value,
            "access_token": encrypt(access_token) if access_token else "",
            "refresh_token": encrypt(refresh_token) if refresh_token else None,
            "token_expiry": token_expiry,
            "is_active": True,
            "sync_status": SyncStatus.ACTIVE,
            "error_message": None,
        }
        existing = await self.connections.get_for_address(
            user_id, tent_id, email_address
        )
        if existing is not None:
            return await self.connections.update(existing, values)

        connection = await self.connections.create(
            EmailConnection(
                user_id=user_id,
                tent_id=tent_id,
                email_address=email_address,
                **values,
            )
        )
        await self._log(
            tent_id,
            user_id,
            ActivityType.EMAIL_CONNECTED,
            f"Connected {provider.label} mailbox {email_address}",
            "email_connection",
            connection.id,
            provider.value,
        )
        return connection

    async def create_connection(
        self,
        user_id: uuid.UUID,
        tent_id: int | None,
        provider: str | None,
        email_address: str | None,
        api_key: str | None,
    ) -> EmailConnection:
        """Store a mailbox connection with a caller-supplied credential."""
        if not tent_id or not provider or not email_address:
            raise ValidationError("Missing required fields")
        try:
            provider_name = EmailProviderName(provider)
        except ValueError as e:
            raise ValidationError(f"Unsupported email provider: {provider}") from e
        await require_membership(self.members, tent_id, user_id)
        return await self._upsert(
            user_id, tent_id, provider_name, email_address, api_key or "", None, None
        )

    async def connect_yahoo_app_password(
        self,
        user_id: uuid.UUID,
        tent_id: int | None,
        email_address: str | None,
        app_password: str | None,
    ) -> EmailConnection:
        """Connect a Yahoo mailbox with an app password.

        The app password is kept, encrypted, in ``refresh_token``.

        Raises:
            ValidationError: Missing fields, a non-Yahoo address, or a
                password that is not 16 characters once spaces are removed.
            ForbiddenError: The caller is not a member of the tent.
        """
        if not tent_id or not email_address or not app_password:
            raise ValidationError("Missing required fields")
        address = email_address.strip().lower()
        if not address.endswith(YAHOO_DOMAINS):
            raise ValidationError("Please use a valid Yahoo email address")
        password = normalize_app_password(app_password)
        if len(password) != YAHOO_APP_PASSWORD_LENGTH:
            raise ValidationError(
                "Invalid app password format. "
                "Yahoo app passwords are 16 characters long."
            )
        await require_membership(self.members, tent_id, user_id)

        connection = await self._upsert(
            user_id, tent_id, EmailProviderName.YAHOO, address, "", password, None
        )
        logger.info("Yahoo app password connection saved for {}", address)
        return connection

    async def connect_oauth(
        self, state: OAuthState, tokens: TokenSet, email_address: str
    ) -> EmailConnection:
        """Persist the mailbox a user authorized in the OAuth callback."""
        await require_membership(self.members, state.tent_id, state.user_id)
        connection = await self._upsert(
            state.user_id,
            state.tent_id,
            state.provider,
            email_address,
            tokens.access_token,
            tokens.refresh_token,
            tokens.expires_at,
        )
        logger.info(
            "{} mailbox {} connected to tent {}",
            state.provider.label,
            email_address,
            state.tent_id,
        )
        return connection

    async def store_tokens(
        self, connection: EmailConnection, tokens: TokenSet
    ) -> EmailConnection:
        """Replace the tokens of a connection after a refresh."""
        values: dict[str, object] = {
            "access_token": encrypt(tokens.access_token),
            "token_expiry": tokens.expires_at,
        }
        if tokens.refresh_token:
            values["refresh_token"] = encrypt(tokens.refresh_token)
        return await self.connections.update(connection, values)

    async def delete_connection(self, connection_id: int, user_id: uuid.UUID) -> None:
        connection = await self.connections.get_by_id(connection_id)
        if connection is None or connection.user_id != user_id:
            raise NotFoundError("Email connection not found")
        await self.connections.delete(connection)

    async def save_oauth_config(
        self,
        tent_id: int,
        user_id: uuid.UUID,
        provider: EmailProviderName,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str | None = None,
    ) -> OAuthConfiguration:
        """Create or replace a tent's own OAuth client for a provider."""
        membership = await require_membership(self.members, tent_id, user_id)
        if not membership.is_admin:
            raise ForbiddenError("Only tent admins can configure OAuth")
        if not client_id or not client_secret:
            raise ValidationError("Missing required fields")

        values = {
            "client_id": client_id,
            "client_secret": encrypt(client_secret),
            "redirect_uri": redirect_uri,
        }
        existing = await self.oauth_configs.get_for_tent(tent_id, provider.value)
        if existing is not None:
            config = await self.oauth_configs.update(existing, values)
        else:
            config = await self.oauth_configs.create(
                OAuthConfiguration(
                    tent_id=tent_id,
                    provider=provider.value,
                    created_by=user_id,
                    **values,
                )
            )
        await self._log(
            tent_id,
            user_id,
            ActivityType.OAUTH_CONFIG_UPDATED,
            f"Updated {provider.label} OAuth settings",
            "oauth_configuration",
            config.id,
            provider.value,
        )
        return config

    async def authorization_url(
        self, user_id: uuid.UUID, tent_id: int | None, provider: EmailProviderName
    ) -> str:
        """Build the provider consent URL for connecting a mailbox to a tent.

        Raises:
            ValidationError: No tent id.
            ForbiddenError: The caller is not a member of the tent.
            CreatorTentError: No OAuth client is configured for the provider.
        """
        if not tent_id:
            raise ValidationError("Tent ID required")
        await require_membership(self.members, tent_id, user_id)
        credentials = await self.resolve_credentials(tent_id, provider)
        if credentials is None:
            raise CreatorTentError(
                ErrorCode.INTERNAL_ERROR,
                f"{provider.label} OAuth is not configured",
                severity=Severity.HIGH,
                context={"provider": provider.value},
            )
        return build_authorization_url(
            provider, credentials, encode_state(user_id, tent_id, provider)
        )

    async def resolve_credentials(
        self, tent_id: int | None, provider: EmailProviderName
    ) -> OAuthCredentials | None:
        """Pick the tent's OAuth client, else the one from settings.

        Returns ``None`` when neither is configured.
        """
        if tent_id:
            config = await self.oauth_configs.get_for_tent(tent_id, provider.value)
            if config is not None:
                return OAuthCredentials(
                    client_id=config.client_id,
                    client_secret=decrypt(config.client_secret),
                    redirect_uri=config.redirect_uri
                    or default_redirect_uri(provider, self.settings),
                )

        oauth = self.settings.oauth_config
        client_id, client_secret = {
            EmailProviderName.GMAIL: (
                oauth.google_client_id,
                oauth.google_client_secret,
            ),
            EmailProviderName.OUTLOOK: (
                oauth.microsoft_client_id,
                oauth.microsoft_client_secret,
            ),
            EmailProviderName.YAHOO: (oauth.yahoo_client_id, oauth.yahoo_client_secret),
        }[provider]
        if not client_id:
            return None
        return OAuthCredentials(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=default_redirect_uri(provider, self.settings),
        )

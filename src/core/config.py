"""Application settings loaded from the environment.

Settings are read with Pydantic Settings from environment variables and an
optional ``.env`` file. Nested groups use the ``__`` delimiter, for example
``OAUTH_CONFIG__GOOGLE_CLIENT_ID`` or ``AI_CONFIG__OPENAI_API_KEY``. Empty
strings in optional fields are treated as unset, so a blank line in ``.env``
never enables a half-configured OAuth client.

In production the log formatter and trace exporter are picked from the
platform (Cloud Run, AWS, Vercel) unless set explicitly.
"""

import os
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import BaseModel, BeforeValidator, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

type EmailProvider = Literal["gmail", "outlook", "yahoo"]
type FormatterType = Literal["console", "json", "gcp", "aws"]
type ExporterType = Literal["console", "gcp", "aws", "otlp", "none"]


def _blank_to_none(value: object) -> object:
    return None if value == "" else value


OptionalStr = Annotated[str | None, BeforeValidator(_blank_to_none)]


class LogConfig(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_formatter_type: FormatterType | None = Field(
        default=None, description="Detected from the platform when unset"
    )
    excluded_paths: list[str] = Field(
        default_factory=lambda: ["/health"],
        description="Paths without request logging",
    )
    slow_request_threshold_ms: int = Field(default=1000, gt=0)
    enable_sql_logging: bool = Field(
        default=False, description="Time statements and warn about slow ones"
    )
    slow_query_threshold_ms: int = Field(default=100, gt=0)
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "app_password",
            "token",
            "secret",
            "api_key",
            "authorization",
        ],
        description="Field name fragments redacted from logs",
    )


class ObservabilityConfig(BaseModel):
    enable_tracing: bool = True
    exporter_type: ExporterType = Field(
        default="console",
        description="Span exporter; console logs finished spans through loguru",
    )
    exporter_endpoint: OptionalStr = Field(
        default=None, description="OTLP collector endpoint (otlp and aws)"
    )
    gcp_project_id: OptionalStr = None
    trace_sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)


class DatabaseConfig(BaseModel):
    database_url: str = Field(
        default=(
            "postgresql+asyncpg://creatortent:creatortent_pass"
            "@localhost:5432/creatortent_db"
        ),
    )
    pool_size: int = Field(default=10, ge=1, le=100)
    max_overflow: int = Field(default=5, ge=0, le=50)
    pool_timeout: float = Field(default=30.0, gt=0, le=300)
    pool_pre_ping: bool = True
    echo: bool = False

    @field_validator("database_url", mode="after")
    @classmethod
    def require_asyncpg(cls, v: str) -> str:
        if not v.startswith("postgresql+asyncpg://"):
            msg = "Database URL must use the postgresql+asyncpg:// driver"
            raise ValueError(msg)
        return v


class AuthConfig(BaseModel):
    """Verification of access tokens issued by the hosted auth provider."""

    jwt_secret: str = Field(
        default="change-me-in-production",
        description="HS256 secret shared with the auth provider",
    )
    jwt_algorithm: str = "HS256"
    jwt_audience: OptionalStr = Field(
        default="authenticated",
        description="Expected 'aud' claim; unset skips the audience check",
    )


class SecurityConfig(BaseModel):
    encryption_key: str = Field(
        default="default-32-char-encryption-key!!",
        description="Secret hashed with SHA-256 into the AES-256 key",
    )
    cron_secret: OptionalStr = Field(
        default=None,
        description="Bearer secret required by /api/cron/sync-emails",
    )
    oauth_state_max_age_seconds: int = Field(default=600, gt=0)


class OAuthConfig(BaseModel):
    """Application-wide OAuth clients, used when a tent has no override."""

    google_client_id: OptionalStr = None
    google_client_secret: OptionalStr = None
    microsoft_client_id: OptionalStr = None
    microsoft_client_secret: OptionalStr = None
    yahoo_client_id: OptionalStr = None
    yahoo_client_secret: OptionalStr = None
    http_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout for token exchange and mail API calls",
    )


class AIConfig(BaseModel):
    """OpenAI models for inquiry analysis, reply suggestions and auto-replies.

    Without an API key, analysis falls back to a default that marks every
    message as not a business inquiry, so nothing is stored.
    """

    openai_api_key: OptionalStr = None
    analysis_model: str = "gpt-4o-mini"
    analysis_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    suggestion_model: str = "gpt-3.5-turbo"
    suggestion_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    reply_model: str = "gpt-4o-mini"
    reply_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    reply_max_tokens: int = Field(default=1000, gt=0)
    min_store_score: int = Field(
        default=7,
        ge=1,
        le=10,
        description="Minimum seriousness score for a message to be saved",
    )


class EmailSyncConfig(BaseModel):
    api_lookback_days: int = Field(
        default=7,
        gt=0,
        description="Window for Gmail and Outlook when a mailbox never synced",
    )
    api_max_results: int = Field(default=50, gt=0, le=500)
    imap_host: str = "imap.mail.yahoo.com"
    imap_port: int = 993
    imap_lookback_days: int = Field(default=2, gt=0)
    imap_max_messages: int = Field(default=20, gt=0)
    smtp_host: str = "smtp.mail.yahoo.com"
    smtp_port: int = 465


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
    )

    app_name: str = "CreatorTent"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    app_url: str = Field(
        default="http://localhost:3000",
        description="Public URL of the web app, used for redirects and invite links",
    )

    api_host: str = "127.0.0.1"
    api_port: int = 8000
    docs_url: OptionalStr = "/docs"
    redoc_url: OptionalStr = "/redoc"
    openapi_url: OptionalStr = "/openapi.json"

    log_config: LogConfig = Field(default_factory=LogConfig)
    observability_config: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig
    )
    database_config: DatabaseConfig = Field(default_factory=DatabaseConfig)
    auth_config: AuthConfig = Field(default_factory=AuthConfig)
    security_config: SecurityConfig = Field(default_factory=SecurityConfig)
    oauth_config: OAuthConfig = Field(default_factory=OAuthConfig)
    ai_config: AIConfig = Field(default_factory=AIConfig)
    email_sync_config: EmailSyncConfig = Field(default_factory=EmailSyncConfig)

    @field_validator("app_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Drop a trailing slash so URLs can be joined with a leading one."""
        return v.rstrip("/")

    def model_post_init(self, __context: object) -> None:
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = self._detect_formatter()

        if self.environment == "production":
            if self.observability_config.exporter_type == "console":
                self.observability_config.exporter_type = self._detect_exporter()
            if self.observability_config.trace_sample_rate == 1.0:
                self.observability_config.trace_sample_rate = 0.1

    def _detect_formatter(self) -> FormatterType:
        if os.getenv("K_SERVICE"):  # Cloud Run
            return "gcp"
        if os.getenv("AWS_EXECUTION_ENV"):
            return "aws"
        if os.getenv("VERCEL") or self.environment != "development":
            return "json"
        return "console"

    def _detect_exporter(self) -> ExporterType:
        if os.getenv("K_SERVICE"):
            return "gcp"
        if os.getenv("AWS_EXECUTION_ENV"):
            return "aws"
        return "otlp"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, read once."""
    return Settings()

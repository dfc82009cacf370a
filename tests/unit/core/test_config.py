"""Unit tests for Settings and its nested configuration groups."""

import pytest
import pytest_check
from pydantic import ValidationError

from src.core.config import (
    AIConfig,
    DatabaseConfig,
    EmailSyncConfig,
    SecurityConfig,
    Settings,
    get_settings,
)

PLATFORM_VARIABLES = ("K_SERVICE", "AWS_EXECUTION_ENV", "VERCEL", "ENVIRONMENT")


@pytest.fixture(autouse=True)
def plain_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove platform markers so detection starts from a local machine."""
    for name in PLATFORM_VARIABLES:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
class TestSettingsDefaults:
    """Defaults for local development."""

    def test_application_defaults(self) -> None:
        settings = Settings()

        with pytest_check.check:
            assert settings.app_name == "CreatorTent"
        with pytest_check.check:
            assert settings.environment == "development"
        with pytest_check.check:
            assert settings.app_url == "http://localhost:3000"
        with pytest_check.check:
            assert settings.log_config.log_formatter_type == "console"
        with pytest_check.check:
            assert settings.observability_config.exporter_type == "console"

    def test_ai_defaults(self) -> None:
        """Analysis is conservative, replies are more creative."""
        config = AIConfig()

        with pytest_check.check:
            assert config.openai_api_key is None
        with pytest_check.check:
            assert config.analysis_model == "gpt-4o-mini"
        with pytest_check.check:
            assert config.analysis_temperature == 0.3
        with pytest_check.check:
            assert config.suggestion_model == "gpt-3.5-turbo"
        with pytest_check.check:
            assert config.min_store_score == 7

    def test_email_sync_defaults(self) -> None:
        config = EmailSyncConfig()

        assert config.api_lookback_days == 7
        assert config.imap_lookback_days == 2
        assert (config.imap_host, config.imap_port) == ("imap.mail.yahoo.com", 993)
        assert (config.smtp_host, config.smtp_port) == ("smtp.mail.yahoo.com", 465)

    def test_cron_secret_unset_by_default(self) -> None:
        assert SecurityConfig().cron_secret is None

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


@pytest.mark.unit
class TestSettingsFromEnvironment:
    """Environment variables, including nested groups."""

    def test_nested_delimiter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OAUTH_CONFIG__GOOGLE_CLIENT_ID", "google-client")
        monkeypatch.setenv("SECURITY_CONFIG__CRON_SECRET", "cron-secret")

        settings = Settings()

        assert settings.oauth_config.google_client_id == "google-client"
        assert settings.security_config.cron_secret == "cron-secret"

    def test_blank_optional_values_are_unset(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A blank line in .env never half-configures an OAuth client."""
        monkeypatch.setenv("OAUTH_CONFIG__MICROSOFT_CLIENT_ID", "")
        monkeypatch.setenv("AI_CONFIG__OPENAI_API_KEY", "")

        settings = Settings()

        assert settings.oauth_config.microsoft_client_id is None
        assert settings.ai_config.openai_api_key is None

    def test_app_url_trailing_slash_is_stripped(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("APP_URL", "https://app.creatortent.com/")

        assert Settings().app_url == "https://app.creatortent.com"

    def test_database_url_requires_asyncpg(self) -> None:
        with pytest.raises(ValidationError, match="postgresql\\+asyncpg"):
            DatabaseConfig(database_url="sqlite:///local.db")


@pytest.mark.unit
class TestPlatformDetection:
    """Formatter and exporter detection from the hosting platform."""

    @pytest.mark.parametrize(
        ("variable", "expected"),
        [
            ("K_SERVICE", "gcp"),
            ("AWS_EXECUTION_ENV", "aws"),
            ("VERCEL", "json"),
        ],
    )
    def test_formatter_detected_from_platform(
        self, monkeypatch: pytest.MonkeyPatch, variable: str, expected: str
    ) -> None:
        monkeypatch.setenv(variable, "1")

        assert Settings().log_config.log_formatter_type == expected

    def test_explicit_formatter_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("K_SERVICE", "api")
        monkeypatch.setenv("LOG_CONFIG__LOG_FORMATTER_TYPE", "console")

        assert Settings().log_config.log_formatter_type == "console"

    def test_production_defaults(self) -> None:
        """Production logs JSON, exports over OTLP and samples 10% of traces."""
        settings = Settings(environment="production")

        assert settings.log_config.log_formatter_type == "json"
        assert settings.observability_config.exporter_type == "otlp"
        assert settings.observability_config.trace_sample_rate == 0.1

    def test_production_on_cloud_run(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("K_SERVICE", "creatortent-api")

        settings = Settings(environment="production")

        assert settings.log_config.log_formatter_type == "gcp"
        assert settings.observability_config.exporter_type == "gcp"

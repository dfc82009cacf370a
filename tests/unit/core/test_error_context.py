"""Unit tests for secret redaction in src/core/error_context.py."""

import pytest

from src.core.error_context import (
    MAX_DEPTH,
    REDACTED,
    is_sensitive_field,
    sanitize_dict,
    sanitize_error_context,
    sanitize_sql_params,
    sanitize_value,
)
from src.core.exceptions import ExternalServiceError


@pytest.mark.unit
class TestSensitiveFieldDetection:
    """Field names that hold mailbox credentials or API keys."""

    @pytest.mark.parametrize(
        "field_name",
        [
            "access_token",
            "refresh_token",
            "app_password",
            "client_secret",
            "Authorization",
            "openai_api_key",
            "encryption_key",
            "session_id",
        ],
    )
    def test_sensitive_fields(self, field_name: str) -> None:
        assert is_sensitive_field(field_name)

    @pytest.mark.parametrize(
        "field_name", ["email_address", "tent_id", "invite_code", "status"]
    )
    def test_regular_fields(self, field_name: str) -> None:
        assert not is_sensitive_field(field_name)

    def test_configured_fields_extend_the_pattern(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """LOG_CONFIG__SENSITIVE_FIELDS adds names beyond the default pattern."""
        monkeypatch.setenv("LOG_CONFIG__SENSITIVE_FIELDS", '["invite_code"]')

        assert is_sensitive_field("invite_code")


@pytest.mark.unit
class TestSanitizeValue:
    """Recursive redaction of copies."""

    def test_nested_structures(self) -> None:
        data = {
            "connection": {
                "email_address": "creator@gmail.com",
                "refresh_token": "1//0g-refresh",
            },
            "items": [{"password": "hunter2", "name": "reel"}],
        }

        result = sanitize_dict(data)

        assert result["connection"] == {
            "email_address": "creator@gmail.com",
            "refresh_token": REDACTED,
        }
        assert result["items"] == [{"password": REDACTED, "name": "reel"}]
        assert data["connection"]["refresh_token"] == "1//0g-refresh"

    def test_tuples_keep_their_type(self) -> None:
        assert sanitize_value(("a", {"token": "x"})) == ("a", {"token": REDACTED})

    def test_sensitive_field_redacts_whole_container(self) -> None:
        assert sanitize_value({"nested": 1}, field_name="credentials") == REDACTED

    def test_depth_limit(self) -> None:
        deep: dict[str, object] = {"value": "leaf"}
        for _ in range(MAX_DEPTH + 2):
            deep = {"child": deep}

        result = sanitize_value(deep)

        for _ in range(MAX_DEPTH + 1):
            assert isinstance(result, dict)
            result = result["child"]
        assert result == REDACTED


@pytest.mark.unit
class TestSanitizeErrorContext:
    """Loggable descriptions of exceptions."""

    def test_includes_type_message_and_context(self) -> None:
        error = ValueError("bad value")

        result = sanitize_error_context(
            error, {"tent_id": 4, "app_password": "abcdabcdabcdabcd"}
        )

        assert result["error_type"] == "ValueError"
        assert result["error_message"] == "bad value"
        assert result["tent_id"] == 4
        assert result["app_password"] == REDACTED

    def test_exception_attributes_are_sanitized(self) -> None:
        """Public attributes are included without the stack trace or secrets."""
        error = ExternalServiceError(
            "Failed to exchange authorization code",
            service="outlook",
            context={"client_secret": "s3cret"},
        )

        attributes = sanitize_error_context(error)["error_attributes"]

        assert attributes["service"] == "outlook"
        assert attributes["context"]["client_secret"] == REDACTED
        assert "stack_trace" not in attributes


@pytest.mark.unit
class TestSanitizeSqlParams:
    """SQL parameters logged with slow queries."""

    def test_named_parameters_are_redacted_by_key(self) -> None:
        params = {"email_address": "a@b.com", "access_token": "enc"}

        assert sanitize_sql_params(params) == {
            "email_address": "a@b.com",
            "access_token": REDACTED,
        }

    @pytest.mark.parametrize("params", [None, ("a", 1), ["a", 1]])
    def test_positional_parameters_pass_through(self, params: object) -> None:
        assert sanitize_sql_params(params) == params

    def test_unknown_shape_is_redacted(self) -> None:
        assert sanitize_sql_params("raw") == REDACTED

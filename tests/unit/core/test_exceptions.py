"""Unit tests for the exception hierarchy in src/core/exceptions.py."""

import pytest

from src.core.exceptions import (
    BusinessRuleError,
    CreatorTentError,
    EncryptionError,
    ErrorCode,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    Severity,
    UnauthorizedError,
    ValidationError,
)


@pytest.mark.unit
class TestExceptionDefaults:
    """Each specialized error carries its own code and severity."""

    @pytest.mark.parametrize(
        ("error", "code", "severity"),
        [
            (ValidationError("bad"), ErrorCode.VALIDATION_ERROR, Severity.LOW),
            (NotFoundError("missing"), ErrorCode.NOT_FOUND, Severity.LOW),
            (UnauthorizedError("who"), ErrorCode.UNAUTHORIZED, Severity.HIGH),
            (ForbiddenError("no"), ErrorCode.FORBIDDEN, Severity.MEDIUM),
            (
                BusinessRuleError("twice"),
                ErrorCode.BUSINESS_RULE_VIOLATION,
                Severity.MEDIUM,
            ),
            (EncryptionError("bad key"), ErrorCode.ENCRYPTION_ERROR, Severity.HIGH),
        ],
    )
    def test_code_and_severity(
        self, error: CreatorTentError, code: ErrorCode, severity: Severity
    ) -> None:
        assert error.error_code == code.value
        assert error.severity == severity

    def test_low_and_medium_errors_are_expected(self) -> None:
        """Client mistakes are expected; auth and upstream failures are not."""
        assert ValidationError("bad").is_expected
        assert ForbiddenError("no").is_expected
        assert not UnauthorizedError("who").is_expected
        assert not ExternalServiceError("down", service="gmail").is_expected

    def test_str_includes_code_and_message(self) -> None:
        assert str(NotFoundError("Tent not found")) == "[NOT_FOUND] Tent not found"

    def test_custom_error_code_string(self) -> None:
        error = CreatorTentError("QUOTA_EXCEEDED", "Too many syncs")

        assert error.error_code == "QUOTA_EXCEEDED"
        assert error.severity == Severity.MEDIUM
        assert error.context == {}


@pytest.mark.unit
class TestExceptionContext:
    """Context, cause chaining and fingerprints."""

    def test_external_service_error_records_service(self) -> None:
        """The service name is kept as an attribute and in the context."""
        error = ExternalServiceError(
            "Failed to fetch Gmail messages", service="gmail", context={"id": 7}
        )

        assert error.service == "gmail"
        assert error.context == {"service": "gmail", "id": 7}

    def test_cause_is_chained(self) -> None:
        cause = ValueError("invalid literal")
        error = ValidationError("Invalid state parameter", cause=cause)

        assert error.cause is cause
        assert error.__cause__ is cause

    def test_stack_trace_is_captured(self) -> None:
        error = ForbiddenError("Access denied to this tent")

        assert error.stack_trace
        frames = error.stack_trace
        assert any("test_stack_trace_is_captured" in frame for frame in frames)

    def test_fingerprint_is_stable_for_same_origin(self) -> None:
        """Errors raised from the same place group under one fingerprint."""
        fingerprints = {
            NotFoundError(f"Invoice {i} not found").fingerprint for i in range(3)
        }

        assert len(fingerprints) == 1
        assert len(fingerprints.pop()) == 16

    def test_fingerprint_differs_by_error_type(self) -> None:
        assert NotFoundError("x").fingerprint != ValidationError("x").fingerprint

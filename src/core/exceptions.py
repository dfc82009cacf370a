"""Exception hierarchy for the CreatorTent backend.

Services raise the subclass that matches the failure (a missing tent is a
``NotFoundError``, joining a full tent a ``ForbiddenError``, a Gmail outage
an ``ExternalServiceError``) and the API's exception handlers turn it into an
``ErrorResponse`` with the mapped status code. ``message`` is shown to the
user as is, so it must never contain tokens or mailbox content.
"""

import hashlib
import traceback
from enum import Enum
from typing import Any

FINGERPRINT_FRAMES = 5


class ErrorCode(Enum):
    """Machine-readable ``error_code`` values of error responses."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    ENCRYPTION_ERROR = "ENCRYPTION_ERROR"


class Severity(Enum):
    """How bad an error is. LOW and MEDIUM are expected in normal operation."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class CreatorTentError(Exception):
    """Base class of every error the API knows how to render.

    Args:
        error_code: ``ErrorCode`` member or a custom code string.
        message: Human-readable text returned to the client.
        severity: Drives the log level at the API boundary.
        context: Extra details returned as ``details`` (sanitized in logs).
        cause: The underlying exception, chained as ``__cause__``.
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause
        self.stack_trace = traceback.format_stack()[:-1]
        self.fingerprint = self._fingerprint()
        if cause:
            self.__cause__ = cause

    def _fingerprint(self) -> str:
        # Same error type raised from the same place hashes the same
        parts = [self.__class__.__name__, self.error_code]
        for frame in self.stack_trace[-FINGERPRINT_FRAMES:]:
            if "site-packages" not in frame and "src/" in frame:
                parts.append(frame.strip().split("\n")[0])
        return hashlib.sha256(":".join(parts).encode()).hexdigest()[:16]

    @property
    def is_expected(self) -> bool:
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class ValidationError(CreatorTentError):
    """Raised when request data is missing or malformed (HTTP 400)."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.VALIDATION_ERROR,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.LOW, context, cause)


class NotFoundError(CreatorTentError):
    """Raised when a tent, invoice, inquiry or other resource does not exist (404)."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.NOT_FOUND,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.LOW, context, cause)


class UnauthorizedError(CreatorTentError):
    """Raised when the caller has no valid credentials (401)."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.UNAUTHORIZED,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.HIGH, context, cause)


class ForbiddenError(CreatorTentError):
    """Raised when the caller lacks access to a tent or action (403).

    Covers non-members reading a tent, joining a full or locked tent, and
    non-managers editing someone else's rates.
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.FORBIDDEN,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.MEDIUM, context, cause)


class BusinessRuleError(CreatorTentError):
    """Raised when a well-formed request is not allowed in the current state.

    Examples are editing a paid invoice or replying to an inquiry twice.
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.MEDIUM, context, cause)


class ExternalServiceError(CreatorTentError):
    """Raised when a call to Google, Microsoft, Yahoo or OpenAI fails.

    Args:
        message: What failed, suitable for returning to the client
        service: Name of the remote service (e.g. ``"gmail"``)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        service: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.service = service
        merged = {"service": service, **(context or {})}
        super().__init__(
            ErrorCode.EXTERNAL_SERVICE_ERROR, message, Severity.HIGH, merged, cause
        )


class EncryptionError(CreatorTentError):
    """Raised when a stored secret cannot be encrypted or decrypted."""

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.ENCRYPTION_ERROR, message, Severity.HIGH, cause=cause
        )

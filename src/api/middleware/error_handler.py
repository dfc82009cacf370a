"""Global exception handlers for the FastAPI application.

Every failure leaves the API as an ``ErrorResponse``. Domain errors carry
their own status mapping; request validation, Starlette HTTP errors and
unexpected exceptions are normalized to the same shape.
"""

import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from loguru import logger
from starlette.exceptions import HTTPException

from src.api.schemas.errors import ErrorResponse, ServiceInfo
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings, get_settings
from src.core.context import RequestContext, generate_request_id
from src.core.error_context import sanitize_error_context
from src.core.exceptions import (
    BusinessRuleError,
    CreatorTentError,
    ErrorCode,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    Severity,
    UnauthorizedError,
    ValidationError,
)

_STATUS_BY_ERROR: tuple[tuple[type[CreatorTentError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (BusinessRuleError, status.HTTP_400_BAD_REQUEST),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
)

# Starlette raises these for unknown routes and wrong methods
_HTTP_ERROR_CODES: dict[int, tuple[ErrorCode, Severity]] = {
    status.HTTP_400_BAD_REQUEST: (ErrorCode.VALIDATION_ERROR, Severity.LOW),
    status.HTTP_401_UNAUTHORIZED: (ErrorCode.UNAUTHORIZED, Severity.HIGH),
    status.HTTP_403_FORBIDDEN: (ErrorCode.FORBIDDEN, Severity.MEDIUM),
    status.HTTP_404_NOT_FOUND: (ErrorCode.NOT_FOUND, Severity.LOW),
}


def get_service_info(settings: Settings) -> ServiceInfo:
    return ServiceInfo(
        name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )


def status_code_for(exc: CreatorTentError) -> int:
    """HTTP status for a domain error; anything unmapped is a 500."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_response(
    status_code: int,
    error_code: str,
    message: str,
    severity: Severity,
    *,
    details: dict[str, Any] | None = None,
    debug_info: dict[str, Any] | None = None,
) -> ORJSONResponse:
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        details=details,
        correlation_id=RequestContext.get_correlation_id(),
        request_id=generate_request_id(),
        severity=severity.value,
        service_info=get_service_info(get_settings()),
        debug_info=debug_info,
    )
    return ORJSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def creatortent_error_handler(request: Request, exc: Exception) -> Response:
    """Render a ``CreatorTentError`` with its mapped status code.

    Expected client errors are logged as warnings, everything else as errors.
    Stack trace and raw context are only exposed in development.

    Raises:
        TypeError: If exc is not a CreatorTentError instance.
    """
    if not isinstance(exc, CreatorTentError):
        raise TypeError(f"Expected CreatorTentError, got {type(exc).__name__}")

    status_code = status_code_for(exc)
    log = logger.warning if exc.is_expected else logger.error
    log(
        "{} on {} {}: {}",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc.message,
        user_id=RequestContext.get_user_id(),
        status_code=status_code,
        fingerprint=exc.fingerprint,
        **sanitize_error_context(exc, {"error_code": exc.error_code}),
    )

    debug_info = None
    if get_settings().environment == "development":
        debug_info = {
            "stack_trace": exc.stack_trace,
            "error_context": exc.context,
            "exception_type": type(exc).__name__,
        }
        if exc.cause:
            debug_info["cause"] = {
                "type": type(exc.cause).__name__,
                "message": str(exc.cause),
            }

    return _error_response(
        status_code,
        exc.error_code,
        exc.message,
        exc.severity,
        details=exc.context or None,
        debug_info=debug_info,
    )


def _field_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        # ("body", "items", 0, "unitPrice") -> "items.0.unitPrice"
        location = [str(part) for part in error.get("loc", ())[1:]]
        field = ".".join(location) or "root"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return errors


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Render request body, query and header validation failures as 422."""
    if not isinstance(exc, RequestValidationError):
        raise TypeError(f"Expected RequestValidationError, got {type(exc).__name__}")

    field_errors = _field_errors(exc)
    logger.warning(
        "Request validation failed on {} {}",
        request.method,
        request.url.path,
        validation_errors=field_errors,
    )
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorCode.VALIDATION_ERROR.value,
        "Request validation failed",
        Severity.LOW,
        details={"validation_errors": field_errors},
    )


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    error_code, severity = _HTTP_ERROR_CODES.get(
        exc.status_code, (ErrorCode.INTERNAL_ERROR, Severity.MEDIUM)
    )
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        severity = Severity.HIGH

    logger.warning(
        "HTTP {} on {} {}: {}",
        exc.status_code,
        request.method,
        request.url.path,
        exc.detail,
    )
    return _error_response(
        exc.status_code, error_code.value, str(exc.detail), severity
    )


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Catch-all for exceptions no other handler claimed.

    Production responses never include the exception text, which may contain
    mailbox content or provider responses.
    """
    logger.opt(exception=exc).error(
        "Unhandled {} on {} {}",
        type(exc).__name__,
        request.method,
        request.url.path,
        **sanitize_error_context(exc),
    )

    if get_settings().environment == "production":
        message = "An internal server error occurred"
        details = None
        debug_info = None
    else:
        message = f"Internal server error: {type(exc).__name__}"
        details = {"error": str(exc), "type": type(exc).__name__}
        debug_info = {
            "stack_trace": traceback.format_tb(exc.__traceback__),
            "exception_type": type(exc).__name__,
        }

    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR.value,
        message,
        Severity.CRITICAL,
        details=details,
        debug_info=debug_info,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CreatorTentError, creatortent_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

"""Error body returned by every endpoint on failure.

``message`` is the text the dashboard shows to the user, for example
"Tent is full" or "Signature required".
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ServiceInfo(BaseModel):
    name: str = Field(..., examples=["CreatorTent"])
    version: str = Field(..., examples=["0.1.0"])
    environment: str = Field(..., examples=["development", "production"])


class ErrorResponse(BaseModel):
    """Uniform error payload.

    ``correlation_id`` echoes the ``X-Correlation-ID`` response header and is
    the value to search logs for. ``debug_info`` is only filled in
    development.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error_code": "VALIDATION_ERROR",
                    "message": "Name and creator role are required",
                    "correlation_id": "550e8400-e29b-41d4-a716-446655440000",
                    "request_id": "req-660e8400-e29b-41d4-a716-446655440000",
                    "timestamp": "2026-03-02T09:15:00+00:00",
                    "severity": "LOW",
                    "service_info": {
                        "name": "CreatorTent",
                        "version": "0.1.0",
                        "environment": "production",
                    },
                },
                {
                    "error_code": "EXTERNAL_SERVICE_ERROR",
                    "message": "Gmail token refresh failed",
                    "details": {"service": "gmail", "connection_id": 7},
                    "timestamp": "2026-03-02T09:16:00+00:00",
                    "severity": "HIGH",
                },
            ]
        }
    )

    error_code: str = Field(
        ...,
        description="Error type identifier",
        examples=["VALIDATION_ERROR", "NOT_FOUND", "FORBIDDEN"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Invalid invite code", "Access denied to this tent"],
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Structured context, e.g. field-level validation errors",
    )
    correlation_id: str | None = Field(default=None)
    request_id: str | None = Field(
        default=None,
        description="Identifier of this error response",
        examples=["req-550e8400-e29b-41d4-a716-446655440000"],
    )
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    severity: str | None = Field(
        default=None, examples=["LOW", "MEDIUM", "HIGH", "CRITICAL"]
    )
    service_info: ServiceInfo | None = Field(default=None)
    debug_info: dict[str, Any] | None = Field(
        default=None, description="Stack trace and raw context (development only)"
    )

"""Redaction of secrets before they reach logs or error responses.

CreatorTent stores OAuth access and refresh tokens, Yahoo app passwords and
per-tent OAuth client secrets. Those values travel through service calls and
exception attributes, so anything logged from an error context, a request
query string or a SQL parameter set passes through here first.

A field is sensitive when its name matches ``DEFAULT_SENSITIVE_PATTERN`` or
contains one of ``LOG_CONFIG__SENSITIVE_FIELDS``. Only copies are redacted;
the original data is never modified.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Final

from src.core.config import get_settings

REDACTED: Final[str] = "[REDACTED]"

DEFAULT_SENSITIVE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(password|passwd|secret|token|api[_-]?key|authorization|credential|"
    r"private[_-]?key|cookie|session[_-]?id|encryption[_-]?key)",
    re.IGNORECASE,
)

MAX_DEPTH: Final[int] = 10


@lru_cache(maxsize=1)
def _configured_fields() -> tuple[str, ...]:
    return tuple(
        field.lower() for field in get_settings().log_config.sensitive_fields
    )


def is_sensitive_field(field_name: str) -> bool:
    """Return True when the field name looks like it holds a secret."""
    if DEFAULT_SENSITIVE_PATTERN.search(field_name):
        return True
    lowered = field_name.lower()
    return any(field in lowered for field in _configured_fields())


def sanitize_value(value: object, field_name: str = "", depth: int = 0) -> object:
    """Redact ``value`` if its field is sensitive, recursing into containers."""
    if depth > MAX_DEPTH:
        return REDACTED
    if field_name and is_sensitive_field(field_name):
        return REDACTED
    if isinstance(value, dict):
        return {k: sanitize_value(v, str(k), depth + 1) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return type(value)(sanitize_value(item, "", depth + 1) for item in value)
    return value


def sanitize_dict(data: dict[str, Any]) -> dict[str, Any]:
    return {key: sanitize_value(value, key) for key, value in data.items()}


def sanitize_error_context(
    error: Exception, context: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Build a loggable description of ``error`` with secrets removed.

    Public attributes of the exception (a ``CreatorTentError``'s ``context``,
    an ``httpx`` error's request) are included under ``error_attributes``.
    """
    result: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }
    if context:
        result.update(sanitize_dict(context))

    attributes = {
        key: value
        for key, value in getattr(error, "__dict__", {}).items()
        if not key.startswith("_") and key != "stack_trace"
    }
    if attributes:
        result["error_attributes"] = sanitize_dict(attributes)
    return result


def sanitize_sql_params(params: object) -> object:
    """Redact named SQL parameters by key.

    Positional parameters carry no names to judge by and are returned as is;
    any other shape is redacted entirely.
    """
    if params is None or isinstance(params, list | tuple):
        return params
    if isinstance(params, dict):
        return sanitize_dict(params)
    return REDACTED

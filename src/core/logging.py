"""Loguru configuration with console and structured cloud formatters.

Formatter types (``LOG_CONFIG__LOG_FORMATTER_TYPE``):
- **console**: colored single line with the request context inline
- **json**: one JSON object per line (Vercel, self-hosted)
- **gcp**: Cloud Logging structured format with trace and error reporting
- **aws**: CloudWatch Logs Insights friendly JSON

When no type is configured, settings detect one from the platform.

Every formatter redacts extra fields whose names look sensitive. Mailbox
tokens, Yahoo app passwords and OAuth client secrets pass through the email
services, and a stray ``logger.bind(access_token=...)`` must not reach the
log store in clear text.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import Any, Final, cast

import orjson
from loguru import logger

from src.core.config import Settings
from src.core.error_context import REDACTED, is_sensitive_field

type LogRecord = dict[str, Any]
type Formatter = Callable[[LogRecord], str]

CORRELATION_ID_DISPLAY_LENGTH: Final[int] = 8
MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Shown first, in this order, by the console formatter
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "correlation_id",
    "request_id",
    "user_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "tent_id",
    "connection_id",
)

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore", "openai", "asyncio")

GCP_SEVERITY: Final[dict[str, str]] = {
    "TRACE": "DEBUG",
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "INFO",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}
GCP_ERROR_EVENT: Final[str] = (
    "type.googleapis.com/google.devtools.clouderrorreporting.v1beta1.ReportedErrorEvent"
)


class _LoggingState:
    def __init__(self) -> None:
        self.configured = False
        self.service_context: dict[str, str] = {}


_state = _LoggingState()


def _escape(value: object) -> str:
    # Loguru treats braces in a format result as placeholders
    return str(value).replace("{", "{{").replace("}", "}}")


def redact_extra(extra: dict[str, Any]) -> dict[str, Any]:
    """Drop private loguru keys and redact sensitive values."""
    return {
        key: REDACTED if is_sensitive_field(key) else value
        for key, value in extra.items()
        if not key.startswith("_")
    }


def _format_priority_field(field: str, value: object) -> str:
    if field == "correlation_id" and len(str(value)) > CORRELATION_ID_DISPLAY_LENGTH:
        return _escape(str(value)[:CORRELATION_ID_DISPLAY_LENGTH])
    if field == "duration_ms":
        return _escape(f"{value}ms")
    if field == "status_code":
        color = {"2": "green", "3": "yellow"}.get(str(value)[:1], "red")
        return f"<{color}>{_escape(value)}</{color}>"
    return _escape(value)


def _format_extra_field(key: str, value: object) -> str:
    text = str(value)
    if len(text) > MAX_FIELD_VALUE_LENGTH:
        text = text[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
    return f"{_escape(key)}={_escape(text)}"


def format_console_with_context(record: LogRecord) -> str:
    """Format a record as one colored line followed by any exception."""
    extra = redact_extra(record.get("extra", {}))
    parts = [
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green>",
        "<level>{level: <8}</level>",
        "<cyan>{name}:{function}:{line}</cyan>",
    ]

    context = [
        f"[<yellow>{_format_priority_field(field, extra[field])}</yellow>]"
        for field in PRIORITY_FIELDS
        if extra.get(field) is not None
    ]
    context += [
        f"[<dim>{_format_extra_field(key, value)}</dim>]"
        for key, value in extra.items()
        if key not in PRIORITY_FIELDS and value is not None
    ]
    if context:
        parts.append(" ".join(context))

    parts.append(_escape(record["message"]))
    line = " | ".join(parts)
    if record.get("exception"):
        line += "\n{exception}"
    return line + "\n"


def _dumps(entry: dict[str, Any]) -> str:
    return orjson.dumps(entry, default=str).decode() + "\n"


def _base_entry(record: LogRecord) -> dict[str, Any]:
    return {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }


def serialize_for_json(record: LogRecord) -> str:
    entry = _base_entry(record)
    entry.update(redact_extra(record.get("extra", {})))
    if exc := record.get("exception"):
        entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }
    return _dumps(entry)


def serialize_for_gcp(record: LogRecord) -> str:
    """Format a record for Cloud Logging structured ingestion.

    The correlation ID becomes the trace, errors carry a source location and
    the Error Reporting type so they are grouped in Error Reporting.
    """
    extra = redact_extra(record.get("extra", {}))
    level = record["level"].name
    labels = {"function": record["function"], "line": str(record["line"])}
    if request_id := extra.pop("request_id", None):
        labels["request_id"] = str(request_id)
    if fingerprint := extra.get("fingerprint"):
        labels["error_fingerprint"] = str(fingerprint)[:8]

    entry: dict[str, Any] = {
        "severity": GCP_SEVERITY.get(level, "INFO"),
        "message": record["message"],
        "timestamp": record["time"].isoformat(),
        "serviceContext": _state.service_context,
        "logging.googleapis.com/labels": labels,
    }
    if correlation_id := extra.pop("correlation_id", None):
        entry["logging.googleapis.com/trace"] = correlation_id
    if extra:
        entry["jsonPayload"] = extra
    if record.get("exception") or level in {"ERROR", "CRITICAL"}:
        entry["logging.googleapis.com/sourceLocation"] = {
            "file": record["file"].path,
            "line": str(record["line"]),
            "function": record["function"],
        }
        entry["@type"] = GCP_ERROR_EVENT
    return _dumps(entry)


def serialize_for_aws(record: LogRecord) -> str:
    entry = _base_entry(record)
    extra = redact_extra(record.get("extra", {}))
    if correlation_id := extra.pop("correlation_id", None):
        entry["traceId"] = correlation_id
    if request_id := extra.pop("request_id", None):
        entry["requestId"] = request_id
    entry.update({k: v for k, v in extra.items() if k not in entry})
    if exc := record.get("exception"):
        entry["error"] = {
            "type": exc.type.__name__ if exc.type else None,
            "message": str(exc.value) if exc.value else None,
        }
    return _dumps(entry)


LOG_FORMATTERS: dict[str, Formatter] = {
    "json": serialize_for_json,
    "gcp": serialize_for_gcp,
    "aws": serialize_for_aws,
}


class InterceptHandler(logging.Handler):
    """Forward standard library records (uvicorn, SQLAlchemy, httpx) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of the logging module so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        extra: dict[str, Any] = {}
        if record.name == "uvicorn.access" and hasattr(record, "scope"):
            scope = record.scope
            extra["method"] = scope.get("method", "")
            extra["path"] = scope.get("path", "")
            headers = dict(scope.get("headers", []))
            if correlation_id := headers.get(b"x-correlation-id"):
                extra["correlation_id"] = correlation_id.decode("utf-8")

        logger.opt(depth=depth, exception=record.exc_info).bind(**extra).log(
            level, record.getMessage()
        )


def setup_logging(settings: Settings) -> None:
    """Install the configured loguru sink once per process."""
    if _state.configured:
        return

    logger.remove()
    log_config = settings.log_config
    formatter_type = log_config.log_formatter_type or "console"
    _state.service_context = {
        "service": settings.app_name,
        "version": settings.app_version,
    }

    formatter = LOG_FORMATTERS.get(formatter_type)
    if formatter is None:
        logger.add(
            sys.stdout,
            format=cast("Any", format_console_with_context),
            level=log_config.log_level,
            enqueue=True,
            colorize=True,
            diagnose=settings.debug,
            backtrace=settings.debug,
        )
    else:

        def structured_sink(message: Any) -> None:  # noqa: ANN401 - loguru Message
            sys.stdout.write(formatter(message.record))
            sys.stdout.flush()

        logger.add(
            structured_sink,
            level=log_config.log_level,
            enqueue=True,
            diagnose=False,
            backtrace=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(
        "Logging configured with {} formatter",
        formatter_type,
        log_level=log_config.log_level,
    )
    _state.configured = True

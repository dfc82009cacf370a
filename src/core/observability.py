"""OpenTelemetry tracing for requests, queries and mail provider calls.

Exporters (``OBSERVABILITY_CONFIG__EXPORTER_TYPE``):
- **console**: finished spans are logged through loguru at DEBUG
- **gcp**: Cloud Trace
- **aws** / **otlp**: OTLP over gRPC (an ADOT collector for X-Ray)
- **none**: spans are created but not exported

Outbound work that is slow or flaky (OAuth token exchange, Gmail, Graph and
IMAP fetches, OpenAI calls) is wrapped in ``trace_operation`` so a slow sync
can be read span by span.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Final

from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.cloud_trace import CloudTraceSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from src.core.context import RequestContext

if TYPE_CHECKING:
    from collections.abc import Generator, Sequence

    from fastapi import FastAPI

    from src.core.config import Settings

TRACER_NAME: Final[str] = "creatortent"
DEFAULT_OTLP_ENDPOINT: Final[str] = "http://localhost:4317"
EXCLUDED_URLS: Final[str] = "/health,/info,/docs,/redoc,/openapi.json"

# Driver-level spans that add nothing to a console trace
NOISY_SPANS: Final[frozenset[str]] = frozenset(
    {"connect", "http send", "http receive", "cursor.execute"}
)


class LoguruSpanExporter(SpanExporter):
    """Log finished spans instead of printing raw JSON to stdout."""

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        for span in spans:
            context = span.get_span_context()
            if context is None or span.name in NOISY_SPANS:
                continue

            duration_ms = None
            if span.end_time and span.start_time:
                duration_ms = (span.end_time - span.start_time) // 1_000_000

            logger.bind(
                trace_id=f"{context.trace_id:032x}",
                span_id=f"{context.span_id:016x}",
                span_name=span.name,
                duration_ms=duration_ms,
                status=span.status.status_code.name,
                attributes=dict(span.attributes or {}),
            ).debug("Span finished: {}", span.name)
        return SpanExportResult.SUCCESS


def get_span_exporter(settings: Settings) -> SpanExporter | None:
    config = settings.observability_config
    match config.exporter_type:
        case "console":
            return LoguruSpanExporter()
        case "gcp":
            project_id = config.gcp_project_id or os.getenv("GOOGLE_CLOUD_PROJECT")
            if not project_id:
                logger.warning("GCP project ID not configured, spans not exported")
                return None
            return CloudTraceSpanExporter(project_id=project_id)
        case "aws" | "otlp":
            return OTLPSpanExporter(
                endpoint=config.exporter_endpoint or DEFAULT_OTLP_ENDPOINT,
                insecure=settings.environment == "development",
            )
        case _:
            return None


def setup_tracing(settings: Settings) -> None:
    """Install the global tracer provider with the configured exporter."""
    config = settings.observability_config
    if not config.enable_tracing:
        logger.info("Tracing disabled by configuration")
        return

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.app_name,
                "service.version": settings.app_version,
                "deployment.environment": settings.environment,
            }
        ),
        sampler=TraceIdRatioBased(config.trace_sample_rate),
    )
    if exporter := get_span_exporter(settings):
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    logger.info(
        "Tracing configured",
        exporter_type=config.exporter_type,
        sample_rate=config.trace_sample_rate,
    )


def add_correlation_id_to_span(span: trace.Span, scope: dict[str, Any]) -> None:
    """Server request hook tagging request spans with the correlation ID."""
    if correlation_id := RequestContext.get_correlation_id():
        span.set_attribute("correlation_id", correlation_id)
    headers = dict(scope.get("headers", []))
    if request_id := headers.get(b"x-request-id", b"").decode("utf-8"):
        span.set_attribute("request_id", request_id)


def instrument_app(app: FastAPI, settings: Settings) -> None:
    if not settings.observability_config.enable_tracing:
        return

    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls=EXCLUDED_URLS,
        server_request_hook=add_correlation_id_to_span,
    )
    SQLAlchemyInstrumentor().instrument(enable_commenter=False)
    logger.info("Application instrumented for tracing")


@contextmanager
def trace_operation(
    name: str, **attributes: str | int | float | bool
) -> Generator[trace.Span]:
    """Run the block inside a child span named ``name``.

    Example:
        >>> with trace_operation("gmail.fetch_unread", connection_id=12):
        ...     messages = await client.list_unread()
    """
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(name) as span:
        for key, value in attributes.items():
            span.set_attribute(key, value)
        if correlation_id := RequestContext.get_correlation_id():
            span.set_attribute("correlation_id", correlation_id)
        if user_id := RequestContext.get_user_id():
            span.set_attribute("user_id", str(user_id))
        yield span

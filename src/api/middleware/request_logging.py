"""Request logging with timing and slow-request warnings.

Every request outside ``LOG_CONFIG__EXCLUDED_PATHS`` produces a "Request
started" and a "Request completed" (or "Request failed") entry, bound to the
correlation ID. Query strings are logged with secrets removed: the OAuth
callback receives a one-time ``code`` and the encrypted ``state``, and both
are redacted along with the configured sensitive fields.
"""

import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core.config import LogConfig, get_settings
from src.core.error_context import REDACTED, sanitize_dict

OAUTH_QUERY_PARAMS = frozenset({"code", "state"})
MAX_USER_AGENT_LENGTH = 200


def sanitize_query_params(request: Request) -> dict[str, str] | None:
    """Return the query parameters safe for logging, or None if there are none."""
    if not request.query_params:
        return None
    params = {
        key: REDACTED if key in OAUTH_QUERY_PARAMS else value
        for key, value in request.query_params.items()
    }
    return sanitize_dict(params)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with its duration and response size.

    Args:
        app: The ASGI application.
        log_config: Logging configuration.
    """

    def __init__(self, app: ASGIApp, *, log_config: LogConfig) -> None:
        super().__init__(app)
        self.log_config = log_config
        self.excluded_paths = set(log_config.excluded_paths)
        self.settings = get_settings()

    def _get_client_ip(self, request: Request) -> str:
        # Proxy headers are only trusted behind the production load balancer
        if self.settings.environment == "production":
            forwarded_for = request.headers.get("x-forwarded-for")
            if forwarded_for:
                return forwarded_for.split(",")[0].strip()
            real_ip = request.headers.get("x-real-ip")
            if real_ip:
                return real_ip.strip()

        if request.client:
            return request.client.host
        return "unknown"

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process the request and log details.

        Raises:
            Exception: Any exception raised by the application is re-raised
                after logging.
        """
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        user_agent = request.headers.get("user-agent", "")[:MAX_USER_AGENT_LENGTH]

        with logger.contextualize(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_host=self._get_client_ip(request),
            user_agent=user_agent or "unknown",
            request_size=int(request.headers.get("content-length", 0)),
        ):
            logger.info("Request started", query_params=sanitize_query_params(request))
            start_time = time.perf_counter()

            try:
                response = await call_next(request)
            except Exception as exc:
                logger.error(
                    "Request failed",
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
                raise

            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
                response_size=int(response.headers.get("content-length", 0)),
            )
            response.headers["X-Request-ID"] = request_id

            if duration_ms > self.log_config.slow_request_threshold_ms:
                logger.warning(
                    "Slow request detected",
                    duration_ms=duration_ms,
                    threshold_ms=self.log_config.slow_request_threshold_ms,
                )

            return response

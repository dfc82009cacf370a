"""Security headers added to every response.

API responses carry invoice amounts, inquiry bodies and mailbox addresses, so
anything under ``/api/`` is also marked ``Cache-Control: no-store``. The OAuth
callback redirects with provider names in the query string;
``Referrer-Policy`` keeps those out of third-party referrers.
"""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.api.constants import DEFAULT_HSTS_MAX_AGE

STATIC_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
NO_STORE_PREFIX = "/api/"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add the static security headers, HSTS and API cache control.

    Args:
        app: The ASGI application to wrap.
        hsts_enabled: Whether to include the HSTS header.
        hsts_max_age: Max age for HSTS in seconds (defaults to 1 year).
        hsts_include_subdomains: Whether to include subdomains in HSTS.
        hsts_preload: Whether to include the preload directive.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        hsts_enabled: bool = True,
        hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
        hsts_include_subdomains: bool = True,
        hsts_preload: bool = False,
    ) -> None:
        super().__init__(app)
        self.hsts_header: str | None = None
        if hsts_enabled:
            parts = [f"max-age={hsts_max_age}"]
            if hsts_include_subdomains:
                parts.append("includeSubDomains")
            if hsts_preload:
                parts.append("preload")
            self.hsts_header = "; ".join(parts)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)

        response.headers.update(STATIC_HEADERS)
        if self.hsts_header is not None:
            response.headers["Strict-Transport-Security"] = self.hsts_header
        if request.url.path.startswith(NO_STORE_PREFIX):
            response.headers.setdefault("Cache-Control", "no-store")

        return response

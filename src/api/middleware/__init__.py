"""Middleware and exception handlers applied to every request.

- **SecurityHeadersMiddleware**: HSTS, framing and referrer headers, no-store
  on API responses
- **RequestContextMiddleware**: correlation ID per request
- **RequestLoggingMiddleware**: request timing with OAuth secrets redacted
- **error_handler**: maps domain errors to HTTP statuses and ``ErrorResponse``

Middleware run in reverse order of registration; security headers wrap
everything, then the request context, then request logging.
"""

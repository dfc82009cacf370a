"""Request-scoped correlation and user identifiers."""

import uuid
from contextvars import ContextVar

# Context variables survive await points within one request
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)


class RequestContext:
    """Async-safe storage for the correlation ID and the authenticated user.

    The correlation ID is set by ``RequestContextMiddleware``; the user ID is
    set once the bearer token has been verified.
    """

    @staticmethod
    def set_correlation_id(correlation_id: str) -> None:
        _correlation_id_var.set(correlation_id)

    @staticmethod
    def get_correlation_id() -> str | None:
        return _correlation_id_var.get()

    @staticmethod
    def set_user_id(user_id: str) -> None:
        _user_id_var.set(user_id)

    @staticmethod
    def get_user_id() -> str | None:
        return _user_id_var.get()

    @staticmethod
    def clear() -> None:
        """Reset every context variable at the end of a request."""
        _correlation_id_var.set(None)
        _user_id_var.set(None)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracking.

    Returns:
        str: A string representation of a UUID4.

    Examples:
        >>> len(generate_correlation_id())
        36
    """
    return str(uuid.uuid4())


def generate_request_id() -> str:
    """Generate a unique request ID, formatted as ``req-<uuid4>``.

    Examples:
        >>> generate_request_id().startswith('req-')
        True
    """
    return f"req-{uuid.uuid4()}"

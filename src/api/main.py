"""FastAPI application factory for the CreatorTent API.

``create_app`` sets up logging and tracing, registers the exception handlers,
stacks the middleware, mounts every router from ``src.api.routes`` and
finally instruments the app for OpenTelemetry. The dashboard is served from
``APP_URL`` on another origin, so that origin is allowed through CORS.

Startup refuses to serve traffic when the database is unreachable.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from src.api.middleware.error_handler import register_exception_handlers
from src.api.middleware.request_context import (
    CORRELATION_ID_HEADER,
    RequestContextMiddleware,
)
from src.api.middleware.request_logging import RequestLoggingMiddleware
from src.api.middleware.security_headers import SecurityHeadersMiddleware
from src.api.routes import ROUTERS
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings, get_settings
from src.core.logging import setup_logging
from src.core.observability import instrument_app, setup_tracing
from src.infrastructure.database.session import (
    check_database_connection,
    close_database,
)


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Verify the database on startup and dispose of the engine on shutdown.

    Raises:
        RuntimeError: If the database cannot be reached at startup.
    """
    is_healthy, error_msg = await check_database_connection()
    if not is_healthy:
        logger.error("Database unreachable at startup: {}", error_msg)
        msg = f"Database connection failed: {error_msg}"
        raise RuntimeError(msg)

    logger.info("{} v{} started", app_instance.title, app_instance.version)
    yield
    await close_database()
    logger.info("{} stopped", app_instance.title)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    setup_logging(settings)
    setup_tracing(settings)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    register_exception_handlers(application)

    # Outermost last: CORS -> security headers -> context -> logging -> route
    application.add_middleware(RequestLoggingMiddleware, log_config=settings.log_config)
    application.add_middleware(RequestContextMiddleware)
    application.add_middleware(SecurityHeadersMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.app_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_ID_HEADER],
    )

    for router in ROUTERS:
        application.include_router(router)

    instrument_app(application, settings)
    return application


app = create_app()

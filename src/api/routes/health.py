"""Health and service information endpoints."""

from datetime import UTC, datetime
from typing import Annotated, Any, cast

from fastapi import APIRouter, Depends
from loguru import logger

from src.core.config import Settings, get_settings
from src.infrastructure.database.session import check_database_connection, get_engine

router = APIRouter(tags=["health"])

SERVICE_NAME = "creatortent"


@router.get("/health")
async def health() -> dict[str, object]:
    """Health check for load balancers and container probes.

    A failing database reports ``degraded`` instead of failing the request, so
    the service stays reachable while the database recovers.
    """
    is_healthy, error_msg = await check_database_connection()

    if is_healthy:
        pool = get_engine().pool
        logger.bind(
            metric_type="db.pool.health",
            checked_out=cast("Any", pool).checkedout(),
            size=cast("Any", pool).size(),
            overflow=cast("Any", pool).overflow(),
        ).info("Database pool health check")
    else:
        logger.warning("Database health check failed: {}", error_msg)

    return {
        "status": "healthy" if is_healthy else "degraded",
        "database": is_healthy,
        "service": SERVICE_NAME,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/info")
async def info(
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> dict[str, Any]:
    return {
        "app_name": app_settings.app_name,
        "version": app_settings.app_version,
        "environment": app_settings.environment,
        "debug": app_settings.debug,
    }

"""Run the CreatorTent API with uvicorn."""

import os

import uvicorn
from loguru import logger

from src.core.config import get_settings
from src.core.logging import setup_logging

INTERCEPT_HANDLER = "src.core.logging.InterceptHandler"
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def uvicorn_log_config(level: str) -> dict[str, object]:
    """Route uvicorn's own loggers through loguru."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {"loguru": {"class": INTERCEPT_HANDLER}},
        "loggers": {
            name: {"handlers": ["loguru"], "level": level, "propagate": False}
            for name in UVICORN_LOGGERS
        },
    }


def main() -> None:
    settings = get_settings()
    setup_logging(settings)

    # Container platforms (Cloud Run, Fly, Render) assign the port
    port = int(os.environ.get("PORT", settings.api_port))
    logger.info(
        "Starting CreatorTent on http://{}:{}",
        settings.api_host,
        port,
        environment=settings.environment,
        reload=settings.debug,
    )
    uvicorn.run(
        "src.api.main:app",
        host=settings.api_host,
        port=port,
        reload=settings.debug,
        log_config=uvicorn_log_config(settings.log_config.log_level),
    )


if __name__ == "__main__":
    main()

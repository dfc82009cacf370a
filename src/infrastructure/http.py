"""Outbound HTTP client for OAuth token endpoints and mailbox APIs."""

from collections.abc import AsyncGenerator
from typing import Annotated

import httpx
from fastapi import Depends

from src.core.config import get_settings


def create_http_client() -> httpx.AsyncClient:
    settings = get_settings()
    return httpx.AsyncClient(
        timeout=settings.oauth_config.http_timeout_seconds,
        headers={"User-Agent": f"{settings.app_name}/{settings.app_version}"},
    )


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient]:
    """Provide an ``httpx.AsyncClient`` scoped to one request.

    Tests override this dependency with a client on ``httpx.MockTransport``.
    """
    async with create_http_client() as client:
        yield client


HttpClient = Annotated[httpx.AsyncClient, Depends(get_http_client)]

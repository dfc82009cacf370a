"""Fixtures driving the ASGI app against in-memory SQLite.

Every test gets a fresh database, a JWT minted with the configured secret
for each user, a canned mailbox provider behind ``httpx.MockTransport`` and
an analyzer without an OpenAI client unless the test installs one.
"""

import time
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import src.domain.models  # noqa: F401
from src.api.main import app
from src.core.config import AIConfig, get_settings
from src.domain.email.analyzer import EmailAnalyzer, get_email_analyzer
from src.infrastructure.database.base import Base
from src.infrastructure.database.dependencies import get_db
from src.infrastructure.http import get_http_client

type HeadersFor = Callable[[uuid.UUID], dict[str, str]]
type TentFlow = Callable[..., Awaitable[dict[str, Any]]]


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def mail_responses() -> dict[str, list[tuple[int, Any]]]:
    """Canned provider replies keyed by ``"METHOD https://host/path"``.

    Each reply is a ``(status code, JSON body)`` pair. The last reply of a
    list is reused once the others are consumed.
    """
    return {}


@pytest.fixture
def mail_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    mail_responses: dict[str, list[tuple[int, Any]]],
    mail_requests: list[httpx.Request],
) -> AsyncGenerator[AsyncClient]:
    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def handler(request: httpx.Request) -> httpx.Response:
        mail_requests.append(request)
        key = f"{request.method} {request.url.scheme}://{request.url.host}"
        queued = mail_responses.get(f"{key}{request.url.path}")
        if not queued:
            return httpx.Response(404, json={"error": "not mocked"})
        status_code, payload = queued.pop(0) if len(queued) > 1 else queued[0]
        return httpx.Response(status_code, json=payload)

    async def override_get_http_client() -> AsyncGenerator[httpx.AsyncClient]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            yield http

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = override_get_http_client
    app.dependency_overrides[get_email_analyzer] = lambda: EmailAnalyzer(
        config=AIConfig()
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def headers_for() -> HeadersFor:
    """Mint a bearer token for a user id."""

    def mint(user_id: uuid.UUID) -> dict[str, str]:
        token = jwt.encode(
            {
                "sub": str(user_id),
                "aud": "authenticated",
                "email": f"{user_id.hex[:8]}@example.com",
                "exp": int(time.time()) + 3600,
            },
            get_settings().auth_config.jwt_secret,
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}

    return mint


@pytest.fixture
def creator_id() -> uuid.UUID:
    return uuid.UUID("11111111-1111-4111-8111-111111111111")


@pytest.fixture
def partner_id() -> uuid.UUID:
    return uuid.UUID("22222222-2222-4222-8222-222222222222")


@pytest.fixture
def outsider_id() -> uuid.UUID:
    return uuid.UUID("33333333-3333-4333-8333-333333333333")


@pytest.fixture
def create_tent(client: AsyncClient, headers_for: HeadersFor) -> TentFlow:
    """Create a profile and a tent for a user; returns the creation response."""

    async def create(
        user_id: uuid.UUID, name: str = "Summer Campaign", role: str = "manager"
    ) -> dict[str, Any]:
        headers = headers_for(user_id)
        profile = await client.put(
            "/api/profile", json={"fullName": "Mika Reyes"}, headers=headers
        )
        assert profile.status_code == 200
        response = await client.post(
            "/api/tents",
            json={"name": name, "description": "Q3", "creatorRole": role},
            headers=headers,
        )
        assert response.status_code == 200, response.text
        return response.json()

    return create


@pytest.fixture
def join_tent(client: AsyncClient, headers_for: HeadersFor) -> TentFlow:
    async def join(user_id: uuid.UUID, invite_code: str) -> dict[str, Any]:
        headers = headers_for(user_id)
        await client.put("/api/profile", json={"fullName": "Ana Cruz"}, headers=headers)
        response = await client.post(
            "/api/tents/join", json={"inviteCode": invite_code}, headers=headers
        )
        assert response.status_code == 200, response.text
        return response.json()

    return join

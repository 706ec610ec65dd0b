"""Shared fixtures for API tests."""
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from api.dependencies import get_store
from api.main import app
from core.auth import create_access_token
from core.config import Settings, get_settings
from stores.base import UserRecord
from stores.memory_store import MemoryBookmarkStore

API = "/api"


def auth_headers(user: UserRecord, settings: Settings) -> dict[str, str]:
    """Bearer header for a user, signed with the test settings."""
    token = create_access_token(user.id, user.email, settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def anon_client(
    store: MemoryBookmarkStore,
    settings: Settings,
) -> AsyncGenerator[AsyncClient]:
    """Unauthenticated client over the in-memory store."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: settings

    # Unhandled errors must come back as 500 responses, not propagate into the test
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
async def client(
    anon_client: AsyncClient,
    user: UserRecord,
    settings: Settings,
) -> AsyncClient:
    """Client authenticated as `user`."""
    anon_client.headers.update(auth_headers(user, settings))
    return anon_client


@pytest.fixture
async def other_client(
    anon_client: AsyncClient,
    settings: Settings,
    other_user: UserRecord,
) -> AsyncGenerator[AsyncClient]:
    """A second client, authenticated as `other_user`, sharing the app and store."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers=auth_headers(other_user, settings),
    ) as test_client:
        yield test_client

"""Tests for health check and application-level behaviour."""
from unittest.mock import AsyncMock, patch

from httpx import AsyncClient

from stores.memory_store import MemoryBookmarkStore
from tests.api.conftest import API


async def test__health__healthy(anon_client: AsyncClient) -> None:
    response = await anon_client.get(f"{API}/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["storage"] == "memory"
    assert data["database"] == "healthy"
    assert "timestamp" in data


async def test__health__degraded_when_store_unreachable(
    anon_client: AsyncClient, store: MemoryBookmarkStore,
) -> None:
    with patch.object(store, "ping", AsyncMock(side_effect=ConnectionError("down"))):
        response = await anon_client.get(f"{API}/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["database"] == "unhealthy"


async def test__security_headers(anon_client: AsyncClient) -> None:
    response = await anon_client.get(f"{API}/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "max-age=31536000" in response.headers["Strict-Transport-Security"]


async def test__unknown_endpoint(anon_client: AsyncClient) -> None:
    response = await anon_client.get(f"{API}/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "Endpoint not found"}

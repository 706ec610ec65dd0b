"""
Security test fixtures.

User A is `user` (driven by `client`); user B is `other_user` (driven by
`other_client`). Resources are created through the API so ownership is set the
same way it is in production.
"""
import pytest
from httpx import AsyncClient

from tests.api.conftest import API, anon_client, client, other_client  # noqa: F401  (fixtures)


@pytest.fixture
async def user_a_collection(client: AsyncClient) -> dict:
    """A collection owned by user A."""
    response = await client.post(f"{API}/collections", json={"name": "Private"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def user_a_bookmark(client: AsyncClient, user_a_collection: dict) -> dict:
    """A tagged bookmark owned by user A, filed in user A's collection."""
    response = await client.post(
        f"{API}/bookmarks",
        json={
            "url": "https://user-a-private.example.com",
            "title": "User A Private Bookmark",
            "tags": ["confidential"],
            "collection_id": user_a_collection["id"],
        },
    )
    assert response.status_code == 201
    return response.json()

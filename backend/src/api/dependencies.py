"""FastAPI dependencies for injection."""
from collections.abc import AsyncGenerator

from fastapi import Depends, Request

from core.auth import AuthenticatedUser, get_current_user
from core.config import Settings, get_settings
from db.session import transaction
from stores.base import BookmarkStore
from stores.memory_store import MemoryBookmarkStore
from stores.sql_store import SqlBookmarkStore


def get_memory_store(request: Request) -> MemoryBookmarkStore:
    """The process-wide in-memory store, created on first use."""
    store = getattr(request.app.state, "memory_store", None)
    if store is None:
        store = MemoryBookmarkStore()
        request.app.state.memory_store = store
    return store


async def get_store(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[BookmarkStore]:
    """
    Yield the configured store for one request.

    For PostgreSQL the whole request runs in one transaction: committed when the
    endpoint returns, rolled back if it raises.
    """
    if settings.storage_backend == "memory":
        yield get_memory_store(request)
        return

    async with transaction() as session:
        yield SqlBookmarkStore(session)


__all__ = [
    "AuthenticatedUser",
    "get_current_user",
    "get_memory_store",
    "get_settings",
    "get_store",
]

"""Service layer for collection operations."""
import logging
import re

from core.config import get_settings
from schemas.collection import CollectionCreate, CollectionUpdate
from stores.base import BookmarkStore, CollectionRecord

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^a-z0-9-]")

# Columns that cannot be NULL; an explicit null in an update leaves them unchanged.
_REQUIRED_FIELDS = ("name", "color")


def slugify(name: str) -> str:
    """
    Derive a URL-safe slug from a collection name.

    Lowercases, turns each whitespace run into one hyphen, then drops anything
    outside `[a-z0-9-]`. Slugs are not unique.
    """
    slug = _WHITESPACE.sub("-", name.lower())
    return _NON_SLUG.sub("", slug)


async def list_collections(store: BookmarkStore, user_id: int) -> list[CollectionRecord]:
    """All of the user's collections with bookmark counts, ordered by name."""
    return await store.list_collections(user_id)


async def create_collection(
    store: BookmarkStore,
    user_id: int,
    data: CollectionCreate,
) -> CollectionRecord:
    """Create a collection; color falls back to the configured default."""
    collection = await store.create_collection(
        user_id=user_id,
        name=data.name,
        slug=slugify(data.name),
        description=data.description or None,
        color=data.color or get_settings().default_collection_color,
    )
    logger.info("Created collection %s for user %s", collection.id, user_id)
    return collection


async def update_collection(
    store: BookmarkStore,
    user_id: int,
    collection_id: int,
    data: CollectionUpdate,
) -> CollectionRecord | None:
    """
    Partially update a collection.

    Only fields present in the request are written. The slug is regenerated when,
    and only when, the name changes.

    Returns:
        The updated collection, or None if not found.
    """
    changes = data.model_dump(exclude_unset=True)
    for key in _REQUIRED_FIELDS:
        if changes.get(key, ...) is None:
            del changes[key]

    if "name" in changes:
        current = await store.get_collection(user_id, collection_id)
        if current is None:
            return None
        if changes["name"] != current.name:
            changes["slug"] = slugify(changes["name"])

    return await store.update_collection(user_id, collection_id, changes)


async def delete_collection(store: BookmarkStore, user_id: int, collection_id: int) -> bool:
    """
    Delete a collection. Its bookmarks are kept with their collection cleared.

    Returns:
        True if deleted, False if not found.
    """
    async with store.transaction():
        deleted = await store.delete_collection(user_id, collection_id)
    if deleted:
        logger.info("Deleted collection %s for user %s", collection_id, user_id)
    return deleted

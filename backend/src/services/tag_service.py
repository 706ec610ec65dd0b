"""Service layer for tag operations."""
from schemas.validators import validate_and_normalize_tags
from stores.base import BookmarkStore, TagRecord, TagUsage


async def get_or_create_tags(
    store: BookmarkStore,
    user_id: int,
    tag_names: list[str],
) -> list[TagRecord]:
    """
    Get existing tags or create new ones.

    Names are normalized (lowercase, trimmed) and de-duplicated first, so
    `["Dev", "dev", " DEV "]` yields the single tag `dev`.

    Args:
        store: Data store.
        user_id: User ID to scope tags.
        tag_names: List of tag names to get or create.

    Returns:
        List of tags (existing or newly created), in first-occurrence order.
    """
    if not tag_names:
        return []

    normalized = validate_and_normalize_tags(tag_names)
    if not normalized:
        return []
    return await store.upsert_tags(user_id, normalized)


async def set_bookmark_tags(
    store: BookmarkStore,
    user_id: int,
    bookmark_id: int,
    tag_names: list[str],
) -> None:
    """Replace all of a bookmark's tags; an empty list removes them all."""
    tags = await get_or_create_tags(store, user_id, tag_names)
    await store.replace_bookmark_tags(user_id, bookmark_id, [tag.id for tag in tags])


async def get_user_tags_with_counts(store: BookmarkStore, user_id: int) -> list[TagUsage]:
    """
    Get the user's tags that are attached to at least one bookmark.

    Returns:
        Tags sorted by count desc, then name asc.
    """
    return await store.list_tags_in_use(user_id)

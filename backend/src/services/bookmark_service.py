"""Service layer for bookmark CRUD operations."""
import logging

from core.config import Settings, get_settings
from schemas.bookmark import BookmarkCreate, BookmarkUpdate
from services import tag_service
from services.exceptions import DuplicateUrlError, InvalidInputError
from services.query_builder import BookmarkQuery
from services.url_scraper import ScrapedMetadata, scrape_metadata
from stores.base import BookmarkPage, BookmarkRecord, BookmarkStore, VisitRecord

logger = logging.getLogger(__name__)


async def search_bookmarks(
    store: BookmarkStore,
    query: BookmarkQuery,
    settings: Settings | None = None,
) -> BookmarkPage:
    """
    Run a bookmark listing.

    `total` is the user's overall bookmark count, not the number of matches,
    unless COUNT_FILTERED_TOTAL is enabled.
    """
    settings = settings or get_settings()
    return await store.search_bookmarks(query, count_filtered=settings.count_filtered_total)


async def _ensure_collection_owned(
    store: BookmarkStore,
    user_id: int,
    collection_id: int | None,
) -> None:
    if collection_id is None:
        return
    if await store.get_collection(user_id, collection_id) is None:
        raise InvalidInputError("Invalid collection")


async def check_url_available(store: BookmarkStore, user_id: int, url: str) -> None:
    """
    Fast-path duplicate check before saving or previewing a URL.

    The (user_id, url) unique constraint remains the authoritative guard.

    Raises:
        DuplicateUrlError: If the user already saved this URL.
    """
    existing = await store.find_bookmark_by_url(user_id, url)
    if existing is not None:
        raise DuplicateUrlError(url, existing.id, existing.title, existing.created_at)


async def preview_metadata(
    store: BookmarkStore,
    user_id: int,
    url: str,
    settings: Settings | None = None,
) -> ScrapedMetadata:
    """
    Fetch metadata for a URL the user is about to save.

    Raises:
        DuplicateUrlError: If the user already saved this URL.
    """
    await check_url_available(store, user_id, url)
    await store.release()
    return await scrape_metadata(url, settings)


async def create_bookmark(
    store: BookmarkStore,
    user_id: int,
    data: BookmarkCreate,
    settings: Settings | None = None,
) -> BookmarkRecord:
    """
    Create a new bookmark for a user.

    When FETCH_METADATA_ON_CREATE is on and the request leaves title, description,
    or favicon empty, the page is fetched to fill them; a failed fetch is not an
    error. The title falls back to the URL.

    The insert, tag upserts, and tag links run in one transaction.

    Raises:
        InvalidInputError: If the collection is not the user's.
        DuplicateUrlError: If the user already saved this URL.
    """
    settings = settings or get_settings()
    await _ensure_collection_owned(store, user_id, data.collection_id)
    await check_url_available(store, user_id, data.url)

    title = data.title or None
    description = data.description or None
    favicon_url = data.favicon_url or None
    if settings.fetch_metadata_on_create and not (title and description and favicon_url):
        await store.release()
        scraped = await scrape_metadata(data.url, settings)
        if scraped.warning is None:
            title = title or scraped.title
            description = description or scraped.description or None
            favicon_url = favicon_url or scraped.favicon or None

    async with store.transaction():
        bookmark = await store.create_bookmark(
            user_id,
            data.url,
            {
                "title": title or data.url,
                "description": description,
                "notes": data.notes or None,
                "favicon_url": favicon_url,
                "collection_id": data.collection_id,
            },
        )
        if data.tags:
            await tag_service.set_bookmark_tags(store, user_id, bookmark.id, data.tags)

    logger.info("Created bookmark %s for user %s", bookmark.id, user_id)
    return await store.get_bookmark(user_id, bookmark.id)


async def get_bookmark(
    store: BookmarkStore,
    user_id: int,
    bookmark_id: int,
) -> BookmarkRecord | None:
    """Get a bookmark by ID, scoped to the user. None if missing or not theirs."""
    return await store.get_bookmark(user_id, bookmark_id)


async def update_bookmark(
    store: BookmarkStore,
    user_id: int,
    bookmark_id: int,
    data: BookmarkUpdate,
) -> BookmarkRecord | None:
    """
    Partially update a bookmark.

    Omitted fields keep their values. An explicit null clears an optional field,
    except `title`, which is left as is. If `tags` is given, the bookmark's tags
    are replaced by it (an empty list removes all of them); if omitted, tags are
    untouched.

    Returns:
        The updated bookmark, or None if not found.

    Raises:
        InvalidInputError: If the new collection is not the user's.
    """
    changes = data.model_dump(exclude_unset=True)
    tags = changes.pop("tags", None)
    if changes.get("title", ...) is None:
        del changes["title"]

    await _ensure_collection_owned(store, user_id, changes.get("collection_id"))

    async with store.transaction():
        bookmark = await store.update_bookmark(user_id, bookmark_id, changes)
        if bookmark is None:
            return None
        if tags is not None:
            await tag_service.set_bookmark_tags(store, user_id, bookmark_id, tags)

    return await store.get_bookmark(user_id, bookmark_id)


async def delete_bookmark(store: BookmarkStore, user_id: int, bookmark_id: int) -> bool:
    """
    Delete a bookmark along with its tag links.

    Returns:
        True if deleted, False if not found.
    """
    deleted = await store.delete_bookmark(user_id, bookmark_id)
    if deleted:
        logger.info("Deleted bookmark %s for user %s", bookmark_id, user_id)
    return deleted


async def track_visit(
    store: BookmarkStore,
    user_id: int,
    bookmark_id: int,
) -> VisitRecord | None:
    """
    Increment the visit counter and stamp the visit time.

    Returns:
        The new counter state, or None if not found.
    """
    return await store.record_visit(user_id, bookmark_id)

"""
Data-access interface shared by the PostgreSQL and in-memory stores.

Every method that touches bookmarks, collections, or tags takes the owning user's
id and filters by it; a row belonging to another user behaves exactly like a
missing row.
"""
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from services.query_builder import BookmarkQuery


@dataclass
class UserRecord:
    """An account holder."""

    id: int
    email: str
    password_hash: str
    name: str | None
    created_at: datetime
    updated_at: datetime


@dataclass
class CollectionRecord:
    """A collection and the number of bookmarks filed in it."""

    id: int
    user_id: int
    name: str
    slug: str
    description: str | None
    color: str
    created_at: datetime
    updated_at: datetime
    count: int = 0


@dataclass
class TagRecord:
    """A user's tag."""

    id: int
    name: str


@dataclass
class TagUsage:
    """A tag with the number of bookmarks carrying it."""

    id: int
    name: str
    count: int


@dataclass
class BookmarkRecord:
    """A bookmark joined with its collection name and tag names."""

    id: int
    user_id: int
    url: str
    title: str | None
    description: str | None
    notes: str | None
    favicon_url: str | None
    collection_id: int | None
    collection_name: str | None
    visit_count: int
    last_visited_at: datetime | None
    created_at: datetime
    updated_at: datetime
    tags: list[str] = field(default_factory=list)
    rank: float | None = None


@dataclass
class VisitRecord:
    """Visit counter state after a visit was recorded."""

    id: int
    visit_count: int
    last_visited_at: datetime


@dataclass
class BookmarkPage:
    """One page of a bookmark listing."""

    bookmarks: list[BookmarkRecord]
    total: int


# Columns a bookmark update may write.
BOOKMARK_UPDATABLE_FIELDS = frozenset(
    {"title", "description", "notes", "favicon_url", "collection_id"},
)
COLLECTION_UPDATABLE_FIELDS = frozenset({"name", "slug", "description", "color"})


class BookmarkStore(ABC):
    """
    Abstract store for users, collections, tags, and bookmarks.

    `transaction()` scopes a group of calls so that either all of their writes
    persist or none do. Implementations are not required to support nesting
    beyond what their backend offers natively.
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Run the enclosed calls atomically."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the backing store is reachable."""

    async def release(self) -> None:
        """
        End the current read transaction before a slow, store-free step.

        Only reads may precede this call. Stores that hold no connection between
        calls have nothing to do.
        """

    # --- Users ---

    @abstractmethod
    async def create_user(
        self, email: str, password_hash: str, name: str | None,
    ) -> UserRecord:
        """Insert a user. Emails are unique; the caller checks first."""

    @abstractmethod
    async def get_user(self, user_id: int) -> UserRecord | None:
        """Fetch a user by id."""

    @abstractmethod
    async def get_user_by_email(self, email: str) -> UserRecord | None:
        """Fetch a user by (already lowercased) email."""

    # --- Collections ---

    @abstractmethod
    async def list_collections(self, user_id: int) -> list[CollectionRecord]:
        """All of a user's collections with bookmark counts, ordered by name."""

    @abstractmethod
    async def get_collection(self, user_id: int, collection_id: int) -> CollectionRecord | None:
        """Fetch one collection with its bookmark count."""

    @abstractmethod
    async def create_collection(
        self,
        user_id: int,
        name: str,
        slug: str,
        description: str | None,
        color: str,
    ) -> CollectionRecord:
        """Insert a collection."""

    @abstractmethod
    async def update_collection(
        self, user_id: int, collection_id: int, values: dict[str, Any],
    ) -> CollectionRecord | None:
        """Write the given columns. Returns None if not found."""

    @abstractmethod
    async def delete_collection(self, user_id: int, collection_id: int) -> bool:
        """Delete a collection, detaching its bookmarks. Returns False if not found."""

    # --- Tags ---

    @abstractmethod
    async def upsert_tags(self, user_id: int, names: list[str]) -> list[TagRecord]:
        """Create missing tags and return all of them in input order."""

    @abstractmethod
    async def list_tags_in_use(self, user_id: int) -> list[TagUsage]:
        """Tags on at least one bookmark, by count desc then name asc."""

    # --- Bookmarks ---

    @abstractmethod
    async def search_bookmarks(
        self, query: BookmarkQuery, count_filtered: bool = False,
    ) -> BookmarkPage:
        """
        Execute a bookmark listing.

        `total` is the user's overall bookmark count unless `count_filtered` is set,
        in which case it is the number of bookmarks matching the query's clauses.
        """

    @abstractmethod
    async def get_bookmark(self, user_id: int, bookmark_id: int) -> BookmarkRecord | None:
        """Fetch one bookmark."""

    @abstractmethod
    async def find_bookmark_by_url(self, user_id: int, url: str) -> BookmarkRecord | None:
        """Fetch the user's bookmark with exactly this URL."""

    @abstractmethod
    async def create_bookmark(
        self, user_id: int, url: str, values: dict[str, Any],
    ) -> BookmarkRecord:
        """
        Insert a bookmark.

        Raises:
            DuplicateUrlError: If the user already has this URL.
        """

    @abstractmethod
    async def update_bookmark(
        self, user_id: int, bookmark_id: int, values: dict[str, Any],
    ) -> BookmarkRecord | None:
        """Write the given columns and bump updated_at. Returns None if not found."""

    @abstractmethod
    async def replace_bookmark_tags(
        self, user_id: int, bookmark_id: int, tag_ids: list[int],
    ) -> None:
        """Remove every tag link of the bookmark, then link these tags."""

    @abstractmethod
    async def delete_bookmark(self, user_id: int, bookmark_id: int) -> bool:
        """Delete a bookmark and its tag links. Returns False if not found."""

    @abstractmethod
    async def record_visit(self, user_id: int, bookmark_id: int) -> VisitRecord | None:
        """Atomically increment visit_count and stamp last_visited_at."""

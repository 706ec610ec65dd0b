"""
In-memory implementation of BookmarkStore.

Tables are plain dicts keyed by id. Used when STORAGE_BACKEND=memory (local
development without PostgreSQL) and by the service and API tests.

Full-text search is approximated: a term matches any word in the title,
description, or notes that starts with it (no stemming), and rank is the number
of matching words.
"""
import asyncio
import copy
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from services.date_parser import DatePart
from services.exceptions import DuplicateUrlError, EmailAlreadyRegisteredError
from services.query_builder import (
    BookmarkQuery,
    CollectionFilterClause,
    CollectionNameChannel,
    DateChannel,
    FullTextChannel,
    SearchChannel,
    SearchClause,
    SortOrder,
    TagFilterClause,
    TagNameChannel,
)
from stores.base import (
    BOOKMARK_UPDATABLE_FIELDS,
    COLLECTION_UPDATABLE_FIELDS,
    BookmarkPage,
    BookmarkRecord,
    BookmarkStore,
    CollectionRecord,
    TagRecord,
    TagUsage,
    UserRecord,
    VisitRecord,
)

_WORD = re.compile(r"\w+")


@dataclass
class _Bookmark:
    id: int
    user_id: int
    url: str
    title: str | None = None
    description: str | None = None
    notes: str | None = None
    favicon_url: str | None = None
    collection_id: int | None = None
    visit_count: int = 0
    last_visited_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class _Tables:
    users: dict[int, UserRecord] = field(default_factory=dict)
    collections: dict[int, CollectionRecord] = field(default_factory=dict)
    tags: dict[int, TagRecord] = field(default_factory=dict)
    tag_owner: dict[int, int] = field(default_factory=dict)
    bookmarks: dict[int, _Bookmark] = field(default_factory=dict)
    bookmark_tags: set[tuple[int, int]] = field(default_factory=set)
    next_ids: dict[str, int] = field(
        default_factory=lambda: {"users": 1, "collections": 1, "tags": 1, "bookmarks": 1},
    )


def _now() -> datetime:
    return datetime.now(UTC)


class MemoryBookmarkStore(BookmarkStore):
    """
    Store backed by process memory.

    `transaction()` serialises callers with an asyncio.Lock, snapshots every table
    on entry, and restores the snapshot if the block raises. It is not reentrant.
    """

    def __init__(self) -> None:
        self._tables = _Tables()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            snapshot = copy.deepcopy(self._tables)
            try:
                yield
            except Exception:
                self._tables = snapshot
                raise

    async def ping(self) -> bool:
        return True

    def _next_id(self, table: str) -> int:
        next_id = self._tables.next_ids[table]
        self._tables.next_ids[table] = next_id + 1
        return next_id

    # --- Users ---

    async def create_user(
        self, email: str, password_hash: str, name: str | None,
    ) -> UserRecord:
        # Check and insert run without yielding to the event loop
        if any(u.email == email for u in self._tables.users.values()):
            raise EmailAlreadyRegisteredError()
        now = _now()
        user = UserRecord(
            id=self._next_id("users"),
            email=email,
            password_hash=password_hash,
            name=name,
            created_at=now,
            updated_at=now,
        )
        self._tables.users[user.id] = user
        return replace(user)

    async def get_user(self, user_id: int) -> UserRecord | None:
        user = self._tables.users.get(user_id)
        return replace(user) if user else None

    async def get_user_by_email(self, email: str) -> UserRecord | None:
        for user in self._tables.users.values():
            if user.email == email:
                return replace(user)
        return None

    # --- Collections ---

    def _collection_count(self, collection_id: int) -> int:
        return sum(
            1 for b in self._tables.bookmarks.values() if b.collection_id == collection_id
        )

    def _owned_collection(self, user_id: int, collection_id: int) -> CollectionRecord | None:
        collection = self._tables.collections.get(collection_id)
        if collection is None or collection.user_id != user_id:
            return None
        return collection

    async def list_collections(self, user_id: int) -> list[CollectionRecord]:
        collections = [c for c in self._tables.collections.values() if c.user_id == user_id]
        collections.sort(key=lambda c: (c.name, c.id))
        return [replace(c, count=self._collection_count(c.id)) for c in collections]

    async def get_collection(self, user_id: int, collection_id: int) -> CollectionRecord | None:
        collection = self._owned_collection(user_id, collection_id)
        if collection is None:
            return None
        return replace(collection, count=self._collection_count(collection_id))

    async def create_collection(
        self,
        user_id: int,
        name: str,
        slug: str,
        description: str | None,
        color: str,
    ) -> CollectionRecord:
        now = _now()
        collection = CollectionRecord(
            id=self._next_id("collections"),
            user_id=user_id,
            name=name,
            slug=slug,
            description=description,
            color=color,
            created_at=now,
            updated_at=now,
        )
        self._tables.collections[collection.id] = collection
        return replace(collection)

    async def update_collection(
        self, user_id: int, collection_id: int, values: dict[str, Any],
    ) -> CollectionRecord | None:
        collection = self._owned_collection(user_id, collection_id)
        if collection is None:
            return None
        for key, value in values.items():
            if key in COLLECTION_UPDATABLE_FIELDS:
                setattr(collection, key, value)
        collection.updated_at = _now()
        return replace(collection, count=self._collection_count(collection_id))

    async def delete_collection(self, user_id: int, collection_id: int) -> bool:
        if self._owned_collection(user_id, collection_id) is None:
            return False
        for bookmark in self._tables.bookmarks.values():
            if bookmark.collection_id == collection_id:
                bookmark.collection_id = None
        del self._tables.collections[collection_id]
        return True

    # --- Tags ---

    async def upsert_tags(self, user_id: int, names: list[str]) -> list[TagRecord]:
        existing = {
            tag.name: tag
            for tag_id, tag in self._tables.tags.items()
            if self._tables.tag_owner[tag_id] == user_id
        }
        result = []
        for name in names:
            tag = existing.get(name)
            if tag is None:
                tag = TagRecord(id=self._next_id("tags"), name=name)
                self._tables.tags[tag.id] = tag
                self._tables.tag_owner[tag.id] = user_id
                existing[name] = tag
            result.append(replace(tag))
        return result

    async def list_tags_in_use(self, user_id: int) -> list[TagUsage]:
        counts: dict[int, int] = {}
        for _, tag_id in self._tables.bookmark_tags:
            if self._tables.tag_owner[tag_id] == user_id:
                counts[tag_id] = counts.get(tag_id, 0) + 1
        usages = [
            TagUsage(id=tag_id, name=self._tables.tags[tag_id].name, count=count)
            for tag_id, count in counts.items()
        ]
        usages.sort(key=lambda t: (-t.count, t.name))
        return usages

    # --- Bookmarks ---

    def _tag_names(self, bookmark_id: int) -> list[str]:
        return sorted(
            self._tables.tags[tag_id].name
            for b_id, tag_id in self._tables.bookmark_tags
            if b_id == bookmark_id
        )

    def _record(self, bookmark: _Bookmark, rank: float | None = None) -> BookmarkRecord:
        collection = self._tables.collections.get(bookmark.collection_id) \
            if bookmark.collection_id is not None else None
        return BookmarkRecord(
            id=bookmark.id,
            user_id=bookmark.user_id,
            url=bookmark.url,
            title=bookmark.title,
            description=bookmark.description,
            notes=bookmark.notes,
            favicon_url=bookmark.favicon_url,
            collection_id=bookmark.collection_id,
            collection_name=collection.name if collection else None,
            visit_count=bookmark.visit_count,
            last_visited_at=bookmark.last_visited_at,
            created_at=bookmark.created_at,
            updated_at=bookmark.updated_at,
            tags=self._tag_names(bookmark.id),
            rank=rank,
        )

    def _owned_bookmark(self, user_id: int, bookmark_id: int) -> _Bookmark | None:
        bookmark = self._tables.bookmarks.get(bookmark_id)
        if bookmark is None or bookmark.user_id != user_id:
            return None
        return bookmark

    def _full_text_rank(self, bookmark: _Bookmark, channel: FullTextChannel) -> int:
        """Number of words matched by some term; 0 unless every term matches."""
        text = " ".join(filter(None, (bookmark.title, bookmark.description, bookmark.notes)))
        words = _WORD.findall(text.lower())
        matched = 0
        for term in channel.terms:
            hits = sum(1 for word in words if word.startswith(term))
            if hits == 0:
                return 0
            matched += hits
        return matched

    def _channel_matches(self, bookmark: _Bookmark, channel: SearchChannel) -> bool:
        if isinstance(channel, FullTextChannel):
            return self._full_text_rank(bookmark, channel) > 0
        if isinstance(channel, CollectionNameChannel):
            collection = self._tables.collections.get(bookmark.collection_id) \
                if bookmark.collection_id is not None else None
            return collection is not None and channel.needle in collection.name.lower()
        if isinstance(channel, TagNameChannel):
            return any(channel.needle in name for name in self._tag_names(bookmark.id))
        if isinstance(channel, DateChannel):
            created = bookmark.created_at.astimezone(UTC)
            parts = {
                DatePart.YEAR: created.year,
                DatePart.MONTH: created.month,
                DatePart.DAY: created.day,
            }
            return all(parts[p.part] == p.value for p in channel.predicates)
        raise TypeError(f"Unsupported search channel: {channel!r}")

    def _matches(self, bookmark: _Bookmark, query: BookmarkQuery) -> bool:
        if bookmark.user_id != query.user_id:
            return False
        for clause in query.clauses:
            if isinstance(clause, SearchClause):
                if not any(self._channel_matches(bookmark, c) for c in clause.channels):
                    return False
            elif isinstance(clause, TagFilterClause):
                if not set(clause.names) & set(self._tag_names(bookmark.id)):
                    return False
            elif isinstance(clause, CollectionFilterClause):
                if bookmark.collection_id != clause.collection_id:
                    return False
            else:
                raise TypeError(f"Unsupported clause: {clause!r}")
        return True

    @staticmethod
    def _sort(records: list[BookmarkRecord], query: BookmarkQuery) -> list[BookmarkRecord]:
        # Stable sorts applied from the least to the most significant key
        records.sort(key=lambda r: r.id, reverse=query.sort != SortOrder.DATE_ASC)
        if query.sort == SortOrder.DATE_ASC:
            records.sort(key=lambda r: r.created_at)
            return records
        records.sort(key=lambda r: r.created_at, reverse=True)
        if query.sort in (SortOrder.ALPHA_ASC, SortOrder.ALPHA_DESC):
            records.sort(
                key=lambda r: (r.title or r.url).lower(),
                reverse=query.sort == SortOrder.ALPHA_DESC,
            )
        elif query.sort == SortOrder.VISITED:
            records.sort(key=lambda r: r.visit_count, reverse=True)
        elif query.ranked:
            records.sort(key=lambda r: r.rank or 0, reverse=True)
        return records

    async def search_bookmarks(
        self, query: BookmarkQuery, count_filtered: bool = False,
    ) -> BookmarkPage:
        full_text = query.rank_terms
        matched = []
        for bookmark in self._tables.bookmarks.values():
            if not self._matches(bookmark, query):
                continue
            rank = float(self._full_text_rank(bookmark, full_text)) if full_text else None
            matched.append(self._record(bookmark, rank))

        ordered = self._sort(matched, query)
        page = ordered[query.offset:query.offset + query.limit]

        if count_filtered:
            total = len(matched)
        else:
            total = sum(1 for b in self._tables.bookmarks.values() if b.user_id == query.user_id)
        return BookmarkPage(bookmarks=page, total=total)

    async def get_bookmark(self, user_id: int, bookmark_id: int) -> BookmarkRecord | None:
        bookmark = self._owned_bookmark(user_id, bookmark_id)
        return self._record(bookmark) if bookmark else None

    async def find_bookmark_by_url(self, user_id: int, url: str) -> BookmarkRecord | None:
        for bookmark in self._tables.bookmarks.values():
            if bookmark.user_id == user_id and bookmark.url == url:
                return self._record(bookmark)
        return None

    async def create_bookmark(
        self, user_id: int, url: str, values: dict[str, Any],
    ) -> BookmarkRecord:
        existing = await self.find_bookmark_by_url(user_id, url)
        if existing is not None:
            raise DuplicateUrlError(url, existing.id, existing.title, existing.created_at)
        columns = {k: v for k, v in values.items() if k in BOOKMARK_UPDATABLE_FIELDS}
        now = _now()
        bookmark = _Bookmark(
            id=self._next_id("bookmarks"),
            user_id=user_id,
            url=url,
            created_at=now,
            updated_at=now,
            **columns,
        )
        self._tables.bookmarks[bookmark.id] = bookmark
        return self._record(bookmark)

    async def update_bookmark(
        self, user_id: int, bookmark_id: int, values: dict[str, Any],
    ) -> BookmarkRecord | None:
        bookmark = self._owned_bookmark(user_id, bookmark_id)
        if bookmark is None:
            return None
        for key, value in values.items():
            if key in BOOKMARK_UPDATABLE_FIELDS:
                setattr(bookmark, key, value)
        bookmark.updated_at = _now()
        return self._record(bookmark)

    async def replace_bookmark_tags(
        self, user_id: int, bookmark_id: int, tag_ids: list[int],
    ) -> None:
        if self._owned_bookmark(user_id, bookmark_id) is None:
            return
        self._tables.bookmark_tags = {
            link for link in self._tables.bookmark_tags if link[0] != bookmark_id
        }
        for tag_id in tag_ids:
            self._tables.bookmark_tags.add((bookmark_id, tag_id))

    async def delete_bookmark(self, user_id: int, bookmark_id: int) -> bool:
        if self._owned_bookmark(user_id, bookmark_id) is None:
            return False
        del self._tables.bookmarks[bookmark_id]
        self._tables.bookmark_tags = {
            link for link in self._tables.bookmark_tags if link[0] != bookmark_id
        }
        return True

    async def record_visit(self, user_id: int, bookmark_id: int) -> VisitRecord | None:
        bookmark = self._owned_bookmark(user_id, bookmark_id)
        if bookmark is None:
            return None
        bookmark.visit_count += 1
        bookmark.last_visited_at = _now()
        return VisitRecord(
            id=bookmark.id,
            visit_count=bookmark.visit_count,
            last_visited_at=bookmark.last_visited_at,
        )

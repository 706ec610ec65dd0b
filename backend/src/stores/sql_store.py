"""PostgreSQL implementation of BookmarkStore over an AsyncSession."""
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import Select, delete, func, insert, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.collection import Collection
from models.tag import Tag, bookmark_tags
from models.user import User
from services.exceptions import DuplicateUrlError, EmailAlreadyRegisteredError
from services.query_builder import BookmarkQuery
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
from stores.sql_compiler import compile_count, compile_search, select_bookmark_rows

logger = logging.getLogger(__name__)

BOOKMARK_URL_CONSTRAINT = "uq_bookmarks_user_id_url"
USER_EMAIL_INDEX = "ix_users_email"


def _user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        email=user.email,
        password_hash=user.password_hash,
        name=user.name,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _collection_record(collection: Collection, count: int) -> CollectionRecord:
    return CollectionRecord(
        id=collection.id,
        user_id=collection.user_id,
        name=collection.name,
        slug=collection.slug,
        description=collection.description,
        color=collection.color,
        created_at=collection.created_at,
        updated_at=collection.updated_at,
        count=count,
    )


def _bookmark_record(row: Any) -> BookmarkRecord:
    bookmark: Bookmark = row.Bookmark
    rank = getattr(row, "rank", None)
    return BookmarkRecord(
        id=bookmark.id,
        user_id=bookmark.user_id,
        url=bookmark.url,
        title=bookmark.title,
        description=bookmark.description,
        notes=bookmark.notes,
        favicon_url=bookmark.favicon_url,
        collection_id=bookmark.collection_id,
        collection_name=row.collection_name,
        visit_count=bookmark.visit_count,
        last_visited_at=bookmark.last_visited_at,
        created_at=bookmark.created_at,
        updated_at=bookmark.updated_at,
        tags=list(row.tags or []),
        rank=float(rank) if rank is not None else None,
    )


class SqlBookmarkStore(BookmarkStore):
    """
    Store backed by PostgreSQL.

    Does not commit. The request-scoped session (see db.session.transaction) commits
    at request end; `transaction()` here is a SAVEPOINT inside that transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self.session.begin_nested():
            yield

    async def ping(self) -> bool:
        await self.session.execute(text("SELECT 1"))
        return True

    async def release(self) -> None:
        # Commit returns the connection to the pool; the next statement autobegins
        await self.session.commit()

    # --- Users ---

    async def create_user(
        self, email: str, password_hash: str, name: str | None,
    ) -> UserRecord:
        user = User(email=email, password_hash=password_hash, name=name)
        try:
            async with self.session.begin_nested():
                self.session.add(user)
                await self.session.flush()
        except IntegrityError as e:
            # Concurrent signup with the same email
            if USER_EMAIL_INDEX in str(e):
                raise EmailAlreadyRegisteredError() from e
            raise
        await self.session.refresh(user)
        return _user_record(user)

    async def get_user(self, user_id: int) -> UserRecord | None:
        user = await self.session.get(User, user_id)
        return _user_record(user) if user else None

    async def get_user_by_email(self, email: str) -> UserRecord | None:
        result = await self.session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        return _user_record(user) if user else None

    # --- Collections ---

    def _select_collections(self, user_id: int) -> Select:
        return (
            select(Collection, func.count(Bookmark.id).label("count"))
            .outerjoin(Bookmark, Bookmark.collection_id == Collection.id)
            .where(Collection.user_id == user_id)
            .group_by(Collection.id)
            .execution_options(populate_existing=True)
        )

    async def list_collections(self, user_id: int) -> list[CollectionRecord]:
        result = await self.session.execute(
            self._select_collections(user_id).order_by(Collection.name.asc(), Collection.id.asc()),
        )
        return [_collection_record(row.Collection, row.count) for row in result]

    async def get_collection(self, user_id: int, collection_id: int) -> CollectionRecord | None:
        result = await self.session.execute(
            self._select_collections(user_id).where(Collection.id == collection_id),
        )
        row = result.one_or_none()
        return _collection_record(row.Collection, row.count) if row else None

    async def create_collection(
        self,
        user_id: int,
        name: str,
        slug: str,
        description: str | None,
        color: str,
    ) -> CollectionRecord:
        collection = Collection(
            user_id=user_id, name=name, slug=slug, description=description, color=color,
        )
        self.session.add(collection)
        await self.session.flush()
        await self.session.refresh(collection)
        return _collection_record(collection, 0)

    async def update_collection(
        self, user_id: int, collection_id: int, values: dict[str, Any],
    ) -> CollectionRecord | None:
        changes = {k: v for k, v in values.items() if k in COLLECTION_UPDATABLE_FIELDS}
        result = await self.session.execute(
            update(Collection)
            .where(Collection.id == collection_id, Collection.user_id == user_id)
            .values(**changes, updated_at=func.clock_timestamp())
            .returning(Collection.id)
            .execution_options(synchronize_session=False),
        )
        if result.scalar_one_or_none() is None:
            return None
        return await self.get_collection(user_id, collection_id)

    async def delete_collection(self, user_id: int, collection_id: int) -> bool:
        # Detach bookmarks explicitly; the FK's ON DELETE SET NULL covers the same case.
        await self.session.execute(
            update(Bookmark)
            .where(Bookmark.collection_id == collection_id, Bookmark.user_id == user_id)
            .values(collection_id=None)
            .execution_options(synchronize_session=False),
        )
        result = await self.session.execute(
            delete(Collection)
            .where(Collection.id == collection_id, Collection.user_id == user_id)
            .returning(Collection.id),
        )
        return result.scalar_one_or_none() is not None

    # --- Tags ---

    async def upsert_tags(self, user_id: int, names: list[str]) -> list[TagRecord]:
        if not names:
            return []
        stmt = pg_insert(Tag).values([{"user_id": user_id, "name": name} for name in names])
        # DO UPDATE (not DO NOTHING) so RETURNING yields rows for existing tags too
        stmt = stmt.on_conflict_do_update(
            index_elements=[Tag.user_id, Tag.name],
            set_={"name": stmt.excluded.name},
        ).returning(Tag.id, Tag.name)
        result = await self.session.execute(stmt)
        by_name = {row.name: row.id for row in result}
        return [TagRecord(id=by_name[name], name=name) for name in names]

    async def list_tags_in_use(self, user_id: int) -> list[TagUsage]:
        count = func.count(bookmark_tags.c.bookmark_id)
        result = await self.session.execute(
            select(Tag.id, Tag.name, count.label("count"))
            .join(bookmark_tags, bookmark_tags.c.tag_id == Tag.id)
            .where(Tag.user_id == user_id)
            .group_by(Tag.id, Tag.name)
            .order_by(count.desc(), Tag.name.asc()),
        )
        return [TagUsage(id=row.id, name=row.name, count=row.count) for row in result]

    # --- Bookmarks ---

    async def search_bookmarks(
        self, query: BookmarkQuery, count_filtered: bool = False,
    ) -> BookmarkPage:
        result = await self.session.execute(
            compile_search(query).execution_options(populate_existing=True),
        )
        bookmarks = [_bookmark_record(row) for row in result]
        total = await self.session.scalar(compile_count(query, count_filtered))
        return BookmarkPage(bookmarks=bookmarks, total=total or 0)

    async def _fetch_one(self, *conditions: Any) -> BookmarkRecord | None:
        result = await self.session.execute(
            select_bookmark_rows()
            .where(*conditions)
            .execution_options(populate_existing=True),
        )
        row = result.one_or_none()
        return _bookmark_record(row) if row else None

    async def get_bookmark(self, user_id: int, bookmark_id: int) -> BookmarkRecord | None:
        return await self._fetch_one(Bookmark.user_id == user_id, Bookmark.id == bookmark_id)

    async def find_bookmark_by_url(self, user_id: int, url: str) -> BookmarkRecord | None:
        return await self._fetch_one(Bookmark.user_id == user_id, Bookmark.url == url)

    async def create_bookmark(
        self, user_id: int, url: str, values: dict[str, Any],
    ) -> BookmarkRecord:
        columns = {k: v for k, v in values.items() if k in BOOKMARK_UPDATABLE_FIELDS}
        try:
            async with self.session.begin_nested():
                result = await self.session.execute(
                    insert(Bookmark)
                    .values(user_id=user_id, url=url, **columns)
                    .returning(Bookmark.id),
                )
                bookmark_id = result.scalar_one()
        except IntegrityError as e:
            # Concurrent save of the same URL slipped past the service's fast-path check
            if BOOKMARK_URL_CONSTRAINT in str(e):
                existing = await self.find_bookmark_by_url(user_id, url)
                if existing is not None:
                    logger.info("Concurrent save of bookmark %s by user %s", existing.id, user_id)
                    raise DuplicateUrlError(
                        url, existing.id, existing.title, existing.created_at,
                    ) from e
            raise
        return await self.get_bookmark(user_id, bookmark_id)

    async def update_bookmark(
        self, user_id: int, bookmark_id: int, values: dict[str, Any],
    ) -> BookmarkRecord | None:
        changes = {k: v for k, v in values.items() if k in BOOKMARK_UPDATABLE_FIELDS}
        result = await self.session.execute(
            update(Bookmark)
            .where(Bookmark.id == bookmark_id, Bookmark.user_id == user_id)
            .values(**changes, updated_at=func.clock_timestamp())
            .returning(Bookmark.id)
            .execution_options(synchronize_session=False),
        )
        if result.scalar_one_or_none() is None:
            return None
        return await self.get_bookmark(user_id, bookmark_id)

    async def replace_bookmark_tags(
        self, user_id: int, bookmark_id: int, tag_ids: list[int],
    ) -> None:
        owned = select(Bookmark.id).where(
            Bookmark.id == bookmark_id, Bookmark.user_id == user_id,
        )
        await self.session.execute(
            delete(bookmark_tags).where(bookmark_tags.c.bookmark_id.in_(owned)),
        )
        if tag_ids:
            await self.session.execute(
                insert(bookmark_tags).values(
                    [{"bookmark_id": bookmark_id, "tag_id": tag_id} for tag_id in tag_ids],
                ),
            )

    async def delete_bookmark(self, user_id: int, bookmark_id: int) -> bool:
        # bookmark_tags rows go with it via ON DELETE CASCADE
        result = await self.session.execute(
            delete(Bookmark)
            .where(Bookmark.id == bookmark_id, Bookmark.user_id == user_id)
            .returning(Bookmark.id),
        )
        return result.scalar_one_or_none() is not None

    async def record_visit(self, user_id: int, bookmark_id: int) -> VisitRecord | None:
        result = await self.session.execute(
            update(Bookmark)
            .where(Bookmark.id == bookmark_id, Bookmark.user_id == user_id)
            .values(
                visit_count=Bookmark.visit_count + 1,
                last_visited_at=func.clock_timestamp(),
            )
            .returning(Bookmark.id, Bookmark.visit_count, Bookmark.last_visited_at)
            .execution_options(synchronize_session=False),
        )
        row = result.one_or_none()
        if row is None:
            return None
        return VisitRecord(
            id=row.id, visit_count=row.visit_count, last_visited_at=row.last_visited_at,
        )

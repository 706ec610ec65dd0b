"""
Tests for the PostgreSQL store.

Run against a real PostgreSQL 16 container; skipped when Docker is unavailable.
Each test runs inside a transaction that is rolled back afterwards.
"""
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from services.exceptions import DuplicateUrlError, EmailAlreadyRegisteredError
from services.query_builder import SortOrder, build_bookmark_query
from stores.base import UserRecord
from stores.sql_store import SqlBookmarkStore


@pytest.fixture
async def sql_user(sql_store: SqlBookmarkStore) -> UserRecord:
    """An account in the database."""
    return await sql_store.create_user("alice@example.com", "hash", "Alice")


@pytest.fixture
async def sql_other_user(sql_store: SqlBookmarkStore) -> UserRecord:
    """A second account in the database."""
    return await sql_store.create_user("bob@example.com", "hash", None)


async def _bookmark(
    store: SqlBookmarkStore, user: UserRecord, url: str, tags: list[str] | None = None, **values,
):
    bookmark = await store.create_bookmark(user.id, url, values)
    if tags:
        tag_records = await store.upsert_tags(user.id, tags)
        await store.replace_bookmark_tags(user.id, bookmark.id, [t.id for t in tag_records])
    return await store.get_bookmark(user.id, bookmark.id)


async def test__ping(sql_store: SqlBookmarkStore) -> None:
    assert await sql_store.ping() is True


async def test__release__commits_session() -> None:
    session = AsyncMock(spec=AsyncSession)

    await SqlBookmarkStore(session).release()

    session.commit.assert_awaited_once()


async def test__release__session_usable_afterwards(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    first = await _bookmark(sql_store, sql_user, "https://one.example")

    await sql_store.release()

    async with sql_store.transaction():
        second = await sql_store.create_bookmark(sql_user.id, "https://two.example", {})
    assert await sql_store.get_bookmark(sql_user.id, first.id) is not None
    assert await sql_store.get_bookmark(sql_user.id, second.id) is not None


async def test__create_user_and_lookup(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    found = await sql_store.get_user_by_email("alice@example.com")

    assert found.id == sql_user.id
    assert found.created_at is not None
    assert await sql_store.get_user(sql_user.id) == found


async def test__create_user__duplicate_email(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    with pytest.raises(EmailAlreadyRegisteredError):
        await sql_store.create_user("alice@example.com", "other-hash", None)

    # The failed insert must not poison the session
    assert (await sql_store.get_user_by_email("alice@example.com")).id == sql_user.id


async def test__create_bookmark__defaults(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    bookmark = await _bookmark(sql_store, sql_user, "https://example.com", title="Example")

    assert bookmark.title == "Example"
    assert bookmark.visit_count == 0
    assert bookmark.last_visited_at is None
    assert bookmark.tags == []
    assert bookmark.collection_name is None


async def test__create_bookmark__duplicate_url_raises_with_existing(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    first = await _bookmark(sql_store, sql_user, "https://example.com", title="First")

    with pytest.raises(DuplicateUrlError) as exc_info:
        await sql_store.create_bookmark(sql_user.id, "https://example.com", {"title": "Again"})

    assert exc_info.value.existing_id == first.id
    # The failed insert must not poison the session
    assert await sql_store.get_bookmark(sql_user.id, first.id) is not None


async def test__tags__upsert_reuses_and_sorts(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    first = await sql_store.upsert_tags(sql_user.id, ["web", "api"])
    second = await sql_store.upsert_tags(sql_user.id, ["api", "new"])

    assert [t.name for t in second] == ["api", "new"]
    assert second[0].id == first[1].id

    bookmark = await _bookmark(sql_store, sql_user, "https://example.com", tags=["web", "api"])
    assert bookmark.tags == ["api", "web"]


async def test__list_tags_in_use__counts_and_order(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    await _bookmark(sql_store, sql_user, "https://1.example", tags=["common", "rare"])
    await _bookmark(sql_store, sql_user, "https://2.example", tags=["common"])
    await sql_store.upsert_tags(sql_user.id, ["unused"])

    tags = await sql_store.list_tags_in_use(sql_user.id)

    assert [(t.name, t.count) for t in tags] == [("common", 2), ("rare", 1)]


async def test__search__full_text_ranks_title_matches_first(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    body = await _bookmark(
        sql_store, sql_user, "https://1.example", title="Frontend", notes="uses react",
    )
    title = await _bookmark(sql_store, sql_user, "https://2.example", title="React Hooks")
    await _bookmark(sql_store, sql_user, "https://3.example", title="Vue Basics")

    page = await sql_store.search_bookmarks(
        build_bookmark_query(user_id=sql_user.id, search="react"),
    )

    assert [b.id for b in page.bookmarks] == [title.id, body.id]
    assert page.bookmarks[0].rank > page.bookmarks[1].rank
    assert page.total == 3


async def test__search__prefix_matching(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    bookmark = await _bookmark(sql_store, sql_user, "https://1.example", title="Python Programming")

    page = await sql_store.search_bookmarks(
        build_bookmark_query(user_id=sql_user.id, search="prog"),
    )

    assert [b.id for b in page.bookmarks] == [bookmark.id]


async def test__search__tag_and_collection_channels(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    collection = await sql_store.create_collection(
        sql_user.id, "Machine Learning", "machine-learning", None, "#3B82F6",
    )
    filed = await _bookmark(
        sql_store, sql_user, "https://1.example", title="One", collection_id=collection.id,
    )
    tagged = await _bookmark(
        sql_store, sql_user, "https://2.example", title="Two", tags=["learning"],
    )
    await _bookmark(sql_store, sql_user, "https://3.example", title="Three")

    page = await sql_store.search_bookmarks(
        build_bookmark_query(user_id=sql_user.id, search="learn"),
    )

    assert {b.id for b in page.bookmarks} == {filed.id, tagged.id}
    assert next(b for b in page.bookmarks if b.id == filed.id).collection_name == "Machine Learning"


async def test__search__date_parts(
    sql_store: SqlBookmarkStore, sql_user: UserRecord, db_session: AsyncSession,
) -> None:
    march = await _bookmark(sql_store, sql_user, "https://1.example", title="One")
    other = await _bookmark(sql_store, sql_user, "https://2.example", title="Two")
    await db_session.execute(
        update(Bookmark)
        .where(Bookmark.id == march.id)
        .values(created_at=datetime(2024, 3, 15, 12, tzinfo=UTC)),
    )
    await db_session.execute(
        update(Bookmark)
        .where(Bookmark.id == other.id)
        .values(created_at=datetime(2023, 3, 15, 12, tzinfo=UTC)),
    )

    page = await sql_store.search_bookmarks(
        build_bookmark_query(user_id=sql_user.id, search="march 2024"),
    )

    assert [b.id for b in page.bookmarks] == [march.id]


async def test__search__tag_filter_any_and_sorting(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    b = await _bookmark(sql_store, sql_user, "https://1.example", title="banana", tags=["fruit"])
    a = await _bookmark(sql_store, sql_user, "https://2.example", title="Apple", tags=["tech"])
    await _bookmark(sql_store, sql_user, "https://3.example", title="cherry", tags=["misc"])

    query = build_bookmark_query(
        user_id=sql_user.id, tags=["fruit", "TECH"], sort=SortOrder.ALPHA_ASC,
    )
    page = await sql_store.search_bookmarks(query, count_filtered=True)

    assert [bm.id for bm in page.bookmarks] == [a.id, b.id]
    assert page.total == 2


async def test__search__scoped_to_owner(
    sql_store: SqlBookmarkStore, sql_user: UserRecord, sql_other_user: UserRecord,
) -> None:
    await _bookmark(sql_store, sql_user, "https://1.example", title="Mine", tags=["mine"])

    page = await sql_store.search_bookmarks(
        build_bookmark_query(user_id=sql_other_user.id, search="mine"),
    )

    assert page.bookmarks == []
    assert page.total == 0


async def test__update_bookmark__bumps_updated_at_and_scopes(
    sql_store: SqlBookmarkStore, sql_user: UserRecord, sql_other_user: UserRecord,
) -> None:
    bookmark = await _bookmark(sql_store, sql_user, "https://1.example", title="Before")

    assert await sql_store.update_bookmark(sql_other_user.id, bookmark.id, {"title": "X"}) is None
    updated = await sql_store.update_bookmark(sql_user.id, bookmark.id, {"title": "After"})

    assert updated.title == "After"
    assert updated.updated_at > bookmark.updated_at


async def test__record_visit(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    bookmark = await _bookmark(sql_store, sql_user, "https://1.example", title="Visit me")

    await sql_store.record_visit(sql_user.id, bookmark.id)
    visit = await sql_store.record_visit(sql_user.id, bookmark.id)

    assert visit.visit_count == 2
    assert visit.last_visited_at is not None
    reloaded = await sql_store.get_bookmark(sql_user.id, bookmark.id)
    assert reloaded.updated_at == bookmark.updated_at


async def test__delete_collection__keeps_bookmarks(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    collection = await sql_store.create_collection(sql_user.id, "Temp", "temp", None, "#000000")
    ids = [
        (await _bookmark(
            sql_store, sql_user, f"https://{i}.example", collection_id=collection.id,
        )).id
        for i in range(3)
    ]
    assert (await sql_store.get_collection(sql_user.id, collection.id)).count == 3

    assert await sql_store.delete_collection(sql_user.id, collection.id) is True

    for bookmark_id in ids:
        bookmark = await sql_store.get_bookmark(sql_user.id, bookmark_id)
        assert bookmark.collection_id is None
    assert await sql_store.get_collection(sql_user.id, collection.id) is None


async def test__delete_bookmark__removes_tag_links(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    bookmark = await _bookmark(sql_store, sql_user, "https://1.example", tags=["gone"])

    assert await sql_store.delete_bookmark(sql_user.id, bookmark.id) is True
    assert await sql_store.delete_bookmark(sql_user.id, bookmark.id) is False
    assert await sql_store.list_tags_in_use(sql_user.id) == []


async def test__transaction__savepoint_rolls_back(
    sql_store: SqlBookmarkStore, sql_user: UserRecord,
) -> None:
    with pytest.raises(RuntimeError):
        async with sql_store.transaction():
            await sql_store.create_bookmark(sql_user.id, "https://doomed.example", {})
            raise RuntimeError("abort")

    assert await sql_store.find_bookmark_by_url(sql_user.id, "https://doomed.example") is None

"""Tests for tag service layer functionality."""
from core.config import Settings
from schemas.bookmark import BookmarkCreate
from services import bookmark_service
from services.tag_service import get_or_create_tags, get_user_tags_with_counts
from stores.base import UserRecord
from stores.memory_store import MemoryBookmarkStore


async def test__get_or_create_tags__normalizes_and_reuses(
    store: MemoryBookmarkStore, user: UserRecord,
) -> None:
    first = await get_or_create_tags(store, user.id, ["Python", " web ", "python"])
    second = await get_or_create_tags(store, user.id, ["WEB", "new"])

    assert [t.name for t in first] == ["python", "web"]
    assert [t.name for t in second] == ["web", "new"]
    assert second[0].id == first[1].id


async def test__get_or_create_tags__empty_input(
    store: MemoryBookmarkStore, user: UserRecord,
) -> None:
    assert await get_or_create_tags(store, user.id, []) == []
    assert await get_or_create_tags(store, user.id, ["  ", ""]) == []


async def test__get_or_create_tags__scoped_to_user(
    store: MemoryBookmarkStore, user: UserRecord, other_user: UserRecord,
) -> None:
    mine = await get_or_create_tags(store, user.id, ["shared"])
    theirs = await get_or_create_tags(store, other_user.id, ["shared"])

    assert mine[0].id != theirs[0].id


async def test__get_user_tags_with_counts__sorted_and_only_in_use(
    store: MemoryBookmarkStore, user: UserRecord, other_user: UserRecord, settings: Settings,
) -> None:
    for url, tags in [
        ("https://1.example", ["rare"]),
        ("https://2.example", ["common", "medium"]),
        ("https://3.example", ["common", "medium"]),
        ("https://4.example", ["common", "apple"]),
    ]:
        await bookmark_service.create_bookmark(
            store, user.id, BookmarkCreate(url=url, tags=tags), settings,
        )
    await get_or_create_tags(store, user.id, ["unused"])
    await bookmark_service.create_bookmark(
        store, other_user.id, BookmarkCreate(url="https://5.example", tags=["common"]), settings,
    )

    tags = await get_user_tags_with_counts(store, user.id)

    assert [(t.name, t.count) for t in tags] == [
        ("common", 3),
        ("medium", 2),
        ("apple", 1),
        ("rare", 1),
    ]

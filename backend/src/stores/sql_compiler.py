"""
Compile a BookmarkQuery into SQLAlchemy statements.

Every user-supplied value ends up as a bound parameter. Column names, operators,
and orderings come only from the clause types and the SortOrder enum.
"""
from sqlalchemy import (
    ColumnElement,
    Select,
    Text,
    and_,
    cast,
    exists,
    extract,
    func,
    null,
    or_,
    select,
)
from sqlalchemy.dialects.postgresql import ARRAY, aggregate_order_by, array

from models.bookmark import Bookmark
from models.collection import Collection
from models.tag import Tag, bookmark_tags
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

TS_CONFIG = "english"


def to_tsquery(channel: FullTextChannel) -> ColumnElement:
    """`to_tsquery('english', :terms)` for a full-text channel."""
    return func.to_tsquery(TS_CONFIG, channel.tsquery)


def tag_names_column() -> ColumnElement:
    """Sorted tag names of the outer bookmark row; an empty array when it has none."""
    names = (
        select(func.array_agg(aggregate_order_by(Tag.name, Tag.name.asc())))
        .select_from(bookmark_tags.join(Tag, Tag.id == bookmark_tags.c.tag_id))
        .where(bookmark_tags.c.bookmark_id == Bookmark.id)
        .correlate(Bookmark)
        .scalar_subquery()
    )
    return func.coalesce(names, cast(array([], type_=Text), ARRAY(Text)))


def escape_like(value: str) -> str:
    """Escape `%`, `_` and backslash so they match literally in a LIKE pattern."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(column: ColumnElement, needle: str) -> ColumnElement:
    return column.ilike(f"%{escape_like(needle)}%")


def _channel_condition(channel: SearchChannel, user_id: int) -> ColumnElement:
    if isinstance(channel, FullTextChannel):
        return Bookmark.search_vector.bool_op("@@")(to_tsquery(channel))
    if isinstance(channel, CollectionNameChannel):
        return _contains(Collection.name, channel.needle)
    if isinstance(channel, TagNameChannel):
        return exists(
            select(bookmark_tags.c.bookmark_id)
            .join(Tag, Tag.id == bookmark_tags.c.tag_id)
            .where(
                bookmark_tags.c.bookmark_id == Bookmark.id,
                Tag.user_id == user_id,
                _contains(Tag.name, channel.needle),
            ),
        )
    if isinstance(channel, DateChannel):
        created_utc = func.timezone("UTC", Bookmark.created_at)
        return and_(*[
            extract(predicate.part.value, created_utc) == predicate.value
            for predicate in channel.predicates
        ])
    raise TypeError(f"Unsupported search channel: {channel!r}")


def build_where(query: BookmarkQuery) -> list[ColumnElement]:
    """Owner filter plus one condition per clause; the caller ANDs them."""
    conditions: list[ColumnElement] = [Bookmark.user_id == query.user_id]
    for clause in query.clauses:
        if isinstance(clause, SearchClause):
            channel_conditions = [
                _channel_condition(channel, query.user_id) for channel in clause.channels
            ]
            conditions.append(or_(*channel_conditions))
        elif isinstance(clause, TagFilterClause):
            conditions.append(
                exists(
                    select(bookmark_tags.c.bookmark_id)
                    .join(Tag, Tag.id == bookmark_tags.c.tag_id)
                    .where(
                        bookmark_tags.c.bookmark_id == Bookmark.id,
                        Tag.user_id == query.user_id,
                        Tag.name.in_(clause.names),
                    ),
                ),
            )
        elif isinstance(clause, CollectionFilterClause):
            conditions.append(Bookmark.collection_id == clause.collection_id)
        else:
            raise TypeError(f"Unsupported clause: {clause!r}")
    return conditions


def build_order_by(query: BookmarkQuery, rank: ColumnElement | None) -> list[ColumnElement]:
    """Ordering for the query's sort, ending in a unique tiebreaker."""
    if query.sort == SortOrder.DATE_ASC:
        return [Bookmark.created_at.asc(), Bookmark.id.asc()]
    if query.sort in (SortOrder.ALPHA_ASC, SortOrder.ALPHA_DESC):
        title = func.lower(func.coalesce(Bookmark.title, Bookmark.url))
        direction = title.asc() if query.sort == SortOrder.ALPHA_ASC else title.desc()
        return [direction, Bookmark.created_at.desc(), Bookmark.id.desc()]
    if query.sort == SortOrder.VISITED:
        return [
            Bookmark.visit_count.desc(),
            Bookmark.created_at.desc(),
            Bookmark.id.desc(),
        ]
    if rank is not None:
        return [rank.desc(), Bookmark.created_at.desc(), Bookmark.id.desc()]
    return [Bookmark.created_at.desc(), Bookmark.id.desc()]


def _base_select(*columns: ColumnElement) -> Select:
    return select(*columns).select_from(Bookmark).outerjoin(
        Collection, Collection.id == Bookmark.collection_id,
    )


def select_bookmark_rows() -> Select:
    """Bookmarks with `collection_name` and `tags`, unfiltered."""
    return _base_select(
        Bookmark,
        Collection.name.label("collection_name"),
        tag_names_column().label("tags"),
    )


def compile_search(query: BookmarkQuery) -> Select:
    """
    SELECT for one page of bookmarks.

    Rows carry the bookmark entity, `collection_name`, `tags`, and `rank`
    (NULL unless the search produced full-text terms).
    """
    rank = None
    full_text = query.rank_terms
    if full_text is not None:
        rank = func.ts_rank(Bookmark.search_vector, to_tsquery(full_text))

    rank_column = (rank if rank is not None else null()).label("rank")
    stmt = (
        select_bookmark_rows()
        .add_columns(rank_column)
        .where(*build_where(query))
        .order_by(*build_order_by(query, rank if query.ranked else None))
        .limit(query.limit)
        .offset(query.offset)
    )
    return stmt


def compile_count(query: BookmarkQuery, count_filtered: bool) -> Select:
    """
    COUNT for the listing's `total`.

    Counts every bookmark the user owns unless `count_filtered` is set.
    """
    if not count_filtered:
        return select(func.count(Bookmark.id)).where(Bookmark.user_id == query.user_id)
    return _base_select(func.count(Bookmark.id)).where(*build_where(query))

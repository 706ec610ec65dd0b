"""
Structured descriptor for bookmark search and listing.

Request parameters are turned into a small list of typed clauses plus a sort order.
The descriptor holds user values only as data; each store compiles it on its own
(the SQL store into a parameterized SELECT, the in-memory store into predicates),
so raw user text never becomes query text.

Clause semantics:
- SearchClause: OR across its channels (full-text, collection name, tag name, date).
- TagFilterClause: bookmark has at least one of the named tags.
- CollectionFilterClause: bookmark belongs to the collection.
All top-level clauses are ANDed together and with the owner filter.
"""
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from services.date_parser import DatePredicate, parse_date_predicates

DEFAULT_LIMIT = 50
DEFAULT_OFFSET = 0

# Tokens this short carry too little signal for prefix matching.
MIN_TERM_LENGTH = 3

# Punctuation is either tsquery syntax or a word separator; terms keep word characters only.
_NON_WORD = re.compile(r"\W")


class SortOrder(StrEnum):
    """Supported orderings for bookmark listings."""

    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    ALPHA_ASC = "alpha-asc"
    ALPHA_DESC = "alpha-desc"
    VISITED = "visited"


@dataclass(frozen=True)
class FullTextChannel:
    """Prefix match of every term against the bookmark's search vector."""

    terms: tuple[str, ...]

    @property
    def tsquery(self) -> str:
        """PostgreSQL to_tsquery text: `term1:* & term2:*`."""
        return " & ".join(f"{term}:*" for term in self.terms)


@dataclass(frozen=True)
class CollectionNameChannel:
    """Case-insensitive substring match on the bookmark's collection name."""

    needle: str


@dataclass(frozen=True)
class TagNameChannel:
    """Case-insensitive substring match on any attached tag name."""

    needle: str


@dataclass(frozen=True)
class DateChannel:
    """All predicates hold on the bookmark's creation timestamp."""

    predicates: tuple[DatePredicate, ...]


SearchChannel = FullTextChannel | CollectionNameChannel | TagNameChannel | DateChannel


@dataclass(frozen=True)
class SearchClause:
    """Free-text search: matches when any channel matches."""

    channels: tuple[SearchChannel, ...]

    @property
    def full_text(self) -> FullTextChannel | None:
        """The full-text channel, if the search produced usable terms."""
        for channel in self.channels:
            if isinstance(channel, FullTextChannel):
                return channel
        return None


@dataclass(frozen=True)
class TagFilterClause:
    """Bookmark carries at least one of these tag names."""

    names: tuple[str, ...]


@dataclass(frozen=True)
class CollectionFilterClause:
    """Bookmark is filed in this collection."""

    collection_id: int


Clause = SearchClause | TagFilterClause | CollectionFilterClause


@dataclass(frozen=True)
class BookmarkQuery:
    """A compiled-ready description of one bookmark listing request."""

    user_id: int
    clauses: tuple[Clause, ...] = ()
    sort: SortOrder = SortOrder.DATE_DESC
    limit: int = DEFAULT_LIMIT
    offset: int = DEFAULT_OFFSET

    @property
    def search(self) -> SearchClause | None:
        """The search clause, if any."""
        for clause in self.clauses:
            if isinstance(clause, SearchClause):
                return clause
        return None

    @property
    def rank_terms(self) -> FullTextChannel | None:
        """Full-text terms to rank by, present only when the search produced some."""
        search = self.search
        return search.full_text if search else None

    @property
    def ranked(self) -> bool:
        """True when results are ordered by relevance before creation date."""
        return self.sort == SortOrder.DATE_DESC and self.rank_terms is not None


def extract_search_terms(search: str) -> tuple[str, ...]:
    """
    Split search text into full-text prefix terms.

    Splits on whitespace, lowercases, strips non-word characters, and drops
    tokens shorter than MIN_TERM_LENGTH.
    """
    terms = []
    for token in search.split():
        cleaned = _NON_WORD.sub("", token.lower())
        if len(cleaned) >= MIN_TERM_LENGTH:
            terms.append(cleaned)
    return tuple(terms)


def build_search_clause(search: str) -> SearchClause | None:
    """
    Build the multi-channel search clause for a free-text string.

    Returns None for blank input. The full-text channel is omitted when no term
    survives filtering, and the date channel when no date part is recognized;
    neither omission acts as a wildcard.
    """
    needle = search.strip().lower()
    if not needle:
        return None

    channels: list[SearchChannel] = []
    terms = extract_search_terms(needle)
    if terms:
        channels.append(FullTextChannel(terms))
    channels.append(CollectionNameChannel(needle))
    channels.append(TagNameChannel(needle))
    predicates = parse_date_predicates(needle)
    if predicates:
        channels.append(DateChannel(tuple(predicates)))
    return SearchClause(tuple(channels))


def coerce_non_negative_int(value: Any, default: int) -> int:
    """
    Coerce a pagination value to a non-negative integer.

    Unparseable values fall back to the default; negatives clamp to zero.
    """
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        try:
            number = int(float(value))
        except (TypeError, ValueError, OverflowError):
            return default
    return max(number, 0)


def parse_sort(value: str | None) -> SortOrder:
    """
    Parse a sort parameter.

    Raises:
        ValueError: If the value is not one of the supported orderings.
    """
    if value is None or value == "":
        return SortOrder.DATE_DESC
    try:
        return SortOrder(value)
    except ValueError:
        allowed = ", ".join(s.value for s in SortOrder)
        raise ValueError(f"Invalid sort option '{value}'. Use one of: {allowed}") from None


def build_bookmark_query(
    user_id: int,
    search: str | None = None,
    tags: list[str] | None = None,
    collection_id: int | None = None,
    sort: SortOrder = SortOrder.DATE_DESC,
    limit: Any = DEFAULT_LIMIT,
    offset: Any = DEFAULT_OFFSET,
    max_limit: int | None = None,
) -> BookmarkQuery:
    """
    Translate listing parameters into a BookmarkQuery.

    Args:
        user_id: Owner whose bookmarks are listed. Always applied.
        search: Free-text search string.
        tags: Tag names; a bookmark matches when it has any of them.
        collection_id: Restrict to one collection.
        sort: Requested ordering.
        limit: Page size, coerced to a non-negative int (default 50).
        offset: Page offset, coerced to a non-negative int (default 0).
        max_limit: Optional upper bound for the page size.

    Returns:
        The descriptor for a store to execute.
    """
    clauses: list[Clause] = []

    if search:
        search_clause = build_search_clause(search)
        if search_clause is not None:
            clauses.append(search_clause)

    if tags:
        names = tuple(dict.fromkeys(t.strip().lower() for t in tags if t and t.strip()))
        if names:
            clauses.append(TagFilterClause(names))

    if collection_id is not None:
        clauses.append(CollectionFilterClause(collection_id))

    page_size = coerce_non_negative_int(limit, DEFAULT_LIMIT)
    if max_limit is not None:
        page_size = min(page_size, max_limit)

    return BookmarkQuery(
        user_id=user_id,
        clauses=tuple(clauses),
        sort=sort,
        limit=page_size,
        offset=coerce_non_negative_int(offset, DEFAULT_OFFSET),
    )

"""Bookmark CRUD endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder

from api.dependencies import AuthenticatedUser, get_current_user, get_settings, get_store
from core.config import Settings
from schemas.bookmark import (
    BookmarkCreate,
    BookmarkListResponse,
    BookmarkResponse,
    BookmarkUpdate,
    DeleteResponse,
    DuplicateUrlResponse,
    MetadataPreviewResponse,
    ScrapeRequest,
    VisitResponse,
)
from schemas.errors import ErrorResponse
from services import bookmark_service
from services.exceptions import DuplicateUrlError, InvalidInputError
from services.query_builder import build_bookmark_query, parse_sort
from stores.base import BookmarkStore

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])

NOT_FOUND = "Bookmark not found"


def _duplicate_conflict(e: DuplicateUrlError) -> HTTPException:
    body = DuplicateUrlResponse.model_validate({"existing": e.existing()})
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=jsonable_encoder(body))


@router.get("", response_model=BookmarkListResponse)
async def list_bookmarks(
    search: str | None = Query(default=None, description="Full-text, collection, tag, and date search"),  # noqa: E501
    tags: list[str] = Query(default=[], description="Match bookmarks having ANY of these tags"),
    collection: int | None = Query(default=None, description="Collection ID"),
    sort: str | None = Query(default=None, description="date-desc, date-asc, alpha-asc, alpha-desc, visited"),  # noqa: E501
    limit: str | None = Query(default=None, description="Page size (default 50)"),
    offset: str | None = Query(default=None, description="Pagination offset (default 0)"),
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> BookmarkListResponse:
    """
    List the current user's bookmarks.

    - **search**: matches the full-text index, collection names, tag names, or
      creation-date parts (e.g. "march 2024"); with the default sort, results are
      ranked by relevance
    - **total**: the user's overall bookmark count, not the number of matches
      (unless COUNT_FILTERED_TOTAL is enabled)
    """
    try:
        sort_order = parse_sort(sort)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    query = build_bookmark_query(
        user_id=current_user.id,
        search=search,
        tags=tags,
        collection_id=collection,
        sort=sort_order,
        limit=limit,
        offset=offset,
        max_limit=settings.max_page_size,
    )
    page = await bookmark_service.search_bookmarks(store, query, settings)
    return BookmarkListResponse(
        bookmarks=[BookmarkResponse.model_validate(b) for b in page.bookmarks],
        total=page.total,
        limit=query.limit,
        offset=query.offset,
    )


@router.post(
    "",
    response_model=BookmarkResponse,
    status_code=201,
    responses={409: {"model": DuplicateUrlResponse}, 400: {"model": ErrorResponse}},
)
async def create_bookmark(
    data: BookmarkCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> BookmarkResponse:
    """Save a URL. Missing title/description/favicon are fetched from the page."""
    try:
        bookmark = await bookmark_service.create_bookmark(store, current_user.id, data, settings)
    except DuplicateUrlError as e:
        raise _duplicate_conflict(e)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BookmarkResponse.model_validate(bookmark)


@router.post(
    "/scrape",
    response_model=MetadataPreviewResponse,
    response_model_exclude_none=True,
    responses={409: {"model": DuplicateUrlResponse}},
)
async def scrape_url(
    data: ScrapeRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> MetadataPreviewResponse:
    """
    Preview metadata for a URL before saving it.

    Always succeeds for a new URL: when the page cannot be fetched, the title is
    the hostname and `warning` is set.
    """
    try:
        metadata = await bookmark_service.preview_metadata(
            store, current_user.id, data.url, settings,
        )
    except DuplicateUrlError as e:
        raise _duplicate_conflict(e)
    return MetadataPreviewResponse(
        url=metadata.url,
        title=metadata.title,
        description=metadata.description,
        favicon=metadata.favicon,
        warning=metadata.warning,
    )


@router.get("/{bookmark_id}", response_model=BookmarkResponse)
async def get_bookmark(
    bookmark_id: int,
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
) -> BookmarkResponse:
    """Get a single bookmark by ID."""
    bookmark = await bookmark_service.get_bookmark(store, current_user.id, bookmark_id)
    if bookmark is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return BookmarkResponse.model_validate(bookmark)


@router.put("/{bookmark_id}", response_model=BookmarkResponse)
async def update_bookmark(
    bookmark_id: int,
    data: BookmarkUpdate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
) -> BookmarkResponse:
    """
    Update a bookmark. Omitted fields keep their values.

    `tags` replaces the bookmark's tags when present; `[]` removes them all.
    """
    try:
        bookmark = await bookmark_service.update_bookmark(
            store, current_user.id, bookmark_id, data,
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if bookmark is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return BookmarkResponse.model_validate(bookmark)


@router.delete("/{bookmark_id}", response_model=DeleteResponse)
async def delete_bookmark(
    bookmark_id: int,
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
) -> DeleteResponse:
    """Delete a bookmark and its tag links."""
    deleted = await bookmark_service.delete_bookmark(store, current_user.id, bookmark_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return DeleteResponse(message="Bookmark deleted", id=bookmark_id)


@router.post("/{bookmark_id}/visit", response_model=VisitResponse)
async def track_visit(
    bookmark_id: int,
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
) -> VisitResponse:
    """Record that the user opened the bookmark."""
    visit = await bookmark_service.track_visit(store, current_user.id, bookmark_id)
    if visit is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return VisitResponse.model_validate(visit, from_attributes=True)

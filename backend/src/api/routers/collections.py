"""Collection CRUD endpoints."""
from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import AuthenticatedUser, get_current_user, get_store
from schemas.bookmark import DeleteResponse
from schemas.collection import CollectionCreate, CollectionResponse, CollectionUpdate
from services import collection_service
from stores.base import BookmarkStore

router = APIRouter(prefix="/collections", tags=["collections"])

NOT_FOUND = "Collection not found"


@router.get("", response_model=list[CollectionResponse])
async def list_collections(
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
) -> list[CollectionResponse]:
    """List the user's collections by name, each with its bookmark count."""
    collections = await collection_service.list_collections(store, current_user.id)
    return [CollectionResponse.model_validate(c) for c in collections]


@router.post("", response_model=CollectionResponse, status_code=201)
async def create_collection(
    data: CollectionCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
) -> CollectionResponse:
    """Create a collection. The slug is derived from the name."""
    collection = await collection_service.create_collection(store, current_user.id, data)
    return CollectionResponse.model_validate(collection)


@router.put("/{collection_id}", response_model=CollectionResponse)
async def update_collection(
    collection_id: int,
    data: CollectionUpdate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
) -> CollectionResponse:
    """Update a collection. Renaming regenerates the slug."""
    collection = await collection_service.update_collection(
        store, current_user.id, collection_id, data,
    )
    if collection is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return CollectionResponse.model_validate(collection)


@router.delete("/{collection_id}", response_model=DeleteResponse)
async def delete_collection(
    collection_id: int,
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
) -> DeleteResponse:
    """Delete a collection. Its bookmarks stay, with no collection."""
    deleted = await collection_service.delete_collection(store, current_user.id, collection_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return DeleteResponse(message="Collection deleted", id=collection_id)

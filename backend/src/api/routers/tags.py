"""Tag listing endpoint."""
from fastapi import APIRouter, Depends

from api.dependencies import AuthenticatedUser, get_current_user, get_store
from schemas.tag import TagCount
from services.tag_service import get_user_tags_with_counts
from stores.base import BookmarkStore

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("", response_model=list[TagCount])
async def list_tags(
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
) -> list[TagCount]:
    """
    Get the current user's tags with their usage counts.

    Tags not attached to any bookmark are left out. Results are sorted by count
    DESC, then name ASC.
    """
    tags = await get_user_tags_with_counts(store, current_user.id)
    return [TagCount.model_validate(t) for t in tags]

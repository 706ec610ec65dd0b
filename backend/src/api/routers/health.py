"""Health check endpoints."""
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_settings, get_store
from core.config import Settings
from stores.base import BookmarkStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    storage: str
    database: str
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: BookmarkStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    """Check application and store health."""
    db_status = "healthy"
    try:
        await store.ping()
    except Exception:
        logger.exception("Store health check failed")
        db_status = "unhealthy"

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        storage=settings.storage_backend,
        database=db_status,
        timestamp=datetime.now(UTC),
    )

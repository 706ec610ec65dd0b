"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.errors import register_exception_handlers
from api.routers import auth, bookmarks, collections, health, tags
from core.config import get_settings
from db.session import get_engine
from stores.memory_store import MemoryBookmarkStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()
    logging.basicConfig(
        level=app_settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Startup: pick the store
    if app_settings.storage_backend == "memory":
        app.state.memory_store = MemoryBookmarkStore()
        logger.warning("Using the in-memory store; data is lost on restart")
    logger.info("Storage backend: %s", app_settings.storage_backend)

    yield

    # Shutdown: return pooled connections
    if app_settings.storage_backend == "postgres":
        await get_engine().dispose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # HSTS: enforce HTTPS for 1 year, including subdomains
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking - API shouldn't be framed
        response.headers["X-Frame-Options"] = "DENY"
        return response


app_settings = get_settings()

app = FastAPI(
    title="LinkShelf API",
    description="A personal bookmark manager with collections, tags, and search.",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# Security headers middleware (runs after CORS, adds headers to responses)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=app_settings.api_prefix)
app.include_router(auth.router, prefix=app_settings.api_prefix)
app.include_router(bookmarks.router, prefix=app_settings.api_prefix)
app.include_router(collections.router, prefix=app_settings.api_prefix)
app.include_router(tags.router, prefix=app_settings.api_prefix)

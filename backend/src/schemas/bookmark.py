"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.validators import (
    strip_optional,
    validate_and_normalize_tags,
    validate_description_length,
    validate_notes_length,
    validate_title_length,
    validate_url,
)


def _empty_to_none(value: Any) -> Any:
    """Treat an empty collection id ("" from HTML forms) as no collection."""
    if value == "":
        return None
    return value


class BookmarkCreate(BaseModel):
    """Schema for creating a new bookmark. Accepts camelCase keys from the frontend."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    title: str | None = None
    description: str | None = None
    notes: str | None = None
    collection_id: int | None = Field(default=None, alias="collectionId")
    tags: list[str] = []
    favicon_url: str | None = Field(default=None, alias="faviconUrl")

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        """Validate URL well-formedness."""
        return validate_url(v)

    @field_validator("title", "description", "notes", "favicon_url", mode="before")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        """Trim text fields."""
        return strip_optional(v)

    @field_validator("collection_id", mode="before")
    @classmethod
    def empty_collection(cls, v: Any) -> Any:
        """Allow an empty string for "no collection"."""
        return _empty_to_none(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str]:
        """Normalize, validate, and de-duplicate tags."""
        if v is None:
            return []
        return validate_and_normalize_tags(v)

    @field_validator("title")
    @classmethod
    def check_title_length(cls, v: str | None) -> str | None:
        """Validate title length."""
        return validate_title_length(v)

    @field_validator("description")
    @classmethod
    def check_description_length(cls, v: str | None) -> str | None:
        """Validate description length."""
        return validate_description_length(v)

    @field_validator("notes")
    @classmethod
    def check_notes_length(cls, v: str | None) -> str | None:
        """Validate notes length."""
        return validate_notes_length(v)


class BookmarkUpdate(BaseModel):
    """
    Schema for partially updating a bookmark.

    Fields that are omitted keep their value. `tags` distinguishes omitted (leave
    tags alone) from an empty list (remove every tag).
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    description: str | None = None
    notes: str | None = None
    collection_id: int | None = Field(default=None, alias="collectionId")
    tags: list[str] | None = None
    favicon_url: str | None = Field(default=None, alias="faviconUrl")

    @field_validator("title", "description", "notes", "favicon_url", mode="before")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        """Trim text fields."""
        return strip_optional(v)

    @field_validator("collection_id", mode="before")
    @classmethod
    def empty_collection(cls, v: Any) -> Any:
        """Allow an empty string for "no collection"."""
        return _empty_to_none(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str] | None:
        """Normalize and validate tags if provided."""
        if v is None:
            return None
        return validate_and_normalize_tags(v)

    @field_validator("title")
    @classmethod
    def check_title_length(cls, v: str | None) -> str | None:
        """Validate title length."""
        return validate_title_length(v)

    @field_validator("description")
    @classmethod
    def check_description_length(cls, v: str | None) -> str | None:
        """Validate description length."""
        return validate_description_length(v)

    @field_validator("notes")
    @classmethod
    def check_notes_length(cls, v: str | None) -> str | None:
        """Validate notes length."""
        return validate_notes_length(v)


class BookmarkResponse(BaseModel):
    """A bookmark with its collection name and tag names."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    title: str | None
    description: str | None
    notes: str | None
    favicon_url: str | None
    collection_id: int | None
    collection_name: str | None = None
    visit_count: int
    last_visited_at: datetime | None
    created_at: datetime
    updated_at: datetime
    tags: list[str] = []


class BookmarkListResponse(BaseModel):
    """Schema for paginated bookmark list responses."""

    bookmarks: list[BookmarkResponse]
    total: int  # User's overall bookmark count unless COUNT_FILTERED_TOTAL is set
    limit: int
    offset: int


class ExistingBookmark(BaseModel):
    """The already-saved bookmark reported back on a duplicate URL."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str | None
    created_at: datetime


class DuplicateUrlResponse(BaseModel):
    """409 body for a URL the user already saved."""

    error: str = "Duplicate URL"
    existing: ExistingBookmark


class ScrapeRequest(BaseModel):
    """Schema for requesting a metadata preview."""

    url: str

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        """Validate URL well-formedness."""
        return validate_url(v)


class MetadataPreviewResponse(BaseModel):
    """Schema for URL metadata preview (before saving bookmark)."""

    url: str
    title: str
    description: str
    favicon: str
    warning: str | None = None  # Set when the page could not be fetched


class VisitResponse(BaseModel):
    """Visit counter state after tracking a visit."""

    id: int
    visit_count: int
    last_visited_at: datetime


class DeleteResponse(BaseModel):
    """Confirmation body for delete endpoints."""

    message: str
    id: int

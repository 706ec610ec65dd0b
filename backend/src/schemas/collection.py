"""Pydantic schemas for collection endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.validators import strip_optional, validate_color


class CollectionCreate(BaseModel):
    """Schema for creating a collection."""

    name: str = Field(max_length=100)
    description: str | None = None
    color: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v: str) -> str:
        """Trim the name and reject blanks."""
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, v: str | None) -> str | None:
        """Trim the description."""
        return strip_optional(v)

    @field_validator("color")
    @classmethod
    def check_color(cls, v: str | None) -> str | None:
        """Validate the hex color."""
        return validate_color(v)


class CollectionUpdate(BaseModel):
    """Schema for partially updating a collection."""

    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    color: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v: str | None) -> str | None:
        """A supplied name must not be blank."""
        if v is None:
            return None
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, v: str | None) -> str | None:
        """Trim the description."""
        return strip_optional(v)

    @field_validator("color")
    @classmethod
    def check_color(cls, v: str | None) -> str | None:
        """Validate the hex color."""
        return validate_color(v)


class CollectionResponse(BaseModel):
    """A collection with the number of bookmarks filed in it."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: str | None
    color: str
    created_at: datetime
    updated_at: datetime
    count: int = 0

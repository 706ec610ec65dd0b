"""Pydantic schemas for tag endpoints."""
from pydantic import BaseModel, ConfigDict


class TagCount(BaseModel):
    """Schema for a tag with its usage count."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    count: int

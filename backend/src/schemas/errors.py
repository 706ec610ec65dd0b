"""Error response schemas for OpenAPI documentation."""
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str

"""
Shared validation functions for Pydantic schemas.

Used across bookmark, collection, and auth schemas. Limits come from settings so
the frontend and backend agree on them.
"""
import re

from pydantic import HttpUrl, TypeAdapter, ValidationError

from core.config import get_settings

TAG_MAX_LENGTH = 100

# Collections accept only a 6-digit hex color, e.g. "#3B82F6".
COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")

_http_url_adapter = TypeAdapter(HttpUrl)


def normalize_tag(tag: str) -> str:
    """Lowercase and trim a tag name."""
    return tag.strip().lower()


def validate_and_normalize_tags(tags: list[str]) -> list[str]:
    """
    Normalize and validate a list of tags.

    Args:
        tags: List of tag strings to validate.

    Returns:
        List of normalized tags (lowercase, trimmed), with empty strings filtered out
        and duplicates removed (preserving first occurrence order).

    Raises:
        ValueError: If tags is not a list, or any tag is too long or not a string.
    """
    if not isinstance(tags, list):
        raise ValueError("Tags must be an array")
    normalized = []
    seen: set[str] = set()
    for tag in tags:
        if not isinstance(tag, str):
            raise ValueError("Tags must be strings")
        trimmed = normalize_tag(tag)
        if not trimmed:
            continue  # Skip empty tags silently
        if len(trimmed) > TAG_MAX_LENGTH:
            raise ValueError(
                f"Tag '{trimmed[:20]}...' exceeds maximum length of {TAG_MAX_LENGTH} characters",
            )
        if trimmed not in seen:
            seen.add(trimmed)
            normalized.append(trimmed)
    return normalized


def validate_url(url: str) -> str:
    """
    Check that a URL is a well-formed http(s) URL.

    Returns the trimmed input unchanged (not the normalized form) so that the stored
    URL is exactly what the user saved.
    """
    trimmed = url.strip()
    try:
        _http_url_adapter.validate_python(trimmed)
    except ValidationError as e:
        raise ValueError("Valid URL is required") from e
    return trimmed


def validate_color(color: str | None) -> str | None:
    """Validate a 6-digit hex color if one was supplied."""
    if color is not None and not COLOR_PATTERN.match(color):
        raise ValueError("Invalid color format")
    return color


def validate_title_length(title: str | None) -> str | None:
    """Validate that title doesn't exceed maximum length."""
    settings = get_settings()
    if title is not None and len(title) > settings.max_title_length:
        raise ValueError(
            f"Title exceeds maximum length of {settings.max_title_length:,} characters "
            f"(got {len(title):,} characters).",
        )
    return title


def validate_description_length(description: str | None) -> str | None:
    """Validate that description doesn't exceed maximum length."""
    settings = get_settings()
    if description is not None and len(description) > settings.max_description_length:
        max_len = settings.max_description_length
        raise ValueError(
            f"Description exceeds maximum length of {max_len:,} characters "
            f"(got {len(description):,} characters).",
        )
    return description


def validate_notes_length(notes: str | None) -> str | None:
    """Validate that notes don't exceed maximum length."""
    settings = get_settings()
    if notes is not None and len(notes) > settings.max_notes_length:
        raise ValueError(
            f"Notes exceed maximum length of {settings.max_notes_length:,} characters "
            f"(got {len(notes):,} characters).",
        )
    return notes


def strip_optional(value: str | None) -> str | None:
    """Trim surrounding whitespace from an optional string."""
    return value.strip() if isinstance(value, str) else value

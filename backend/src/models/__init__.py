"""SQLAlchemy models."""
from models.base import Base, TimestampMixin
from models.tag import Tag, bookmark_tags  # Must be before bookmark due to import
from models.bookmark import Bookmark
from models.collection import Collection
from models.user import User

__all__ = [
    "Base",
    "Bookmark",
    "Collection",
    "Tag",
    "TimestampMixin",
    "User",
    "bookmark_tags",
]

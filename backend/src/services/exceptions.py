"""Shared exceptions for service layer operations."""
from datetime import datetime


class InvalidInputError(Exception):
    """
    Raised when a request is well-formed but refers to something it may not use.

    For example, filing a bookmark into a collection the caller does not own.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class DuplicateUrlError(Exception):
    """Raised when the user already saved a bookmark with this URL."""

    def __init__(
        self,
        url: str,
        existing_id: int,
        existing_title: str | None,
        existing_created_at: datetime,
    ) -> None:
        self.url = url
        self.existing_id = existing_id
        self.existing_title = existing_title
        self.existing_created_at = existing_created_at
        super().__init__(f"Bookmark already exists for URL: {url}")

    def existing(self) -> dict:
        """The already-saved bookmark, shaped for the 409 response body."""
        return {
            "id": self.existing_id,
            "title": self.existing_title,
            "created_at": self.existing_created_at,
        }


class EmailAlreadyRegisteredError(Exception):
    """Raised on signup when the email belongs to an existing account."""

    def __init__(self) -> None:
        super().__init__("Email already registered")


class InvalidCredentialsError(Exception):
    """Raised on login when the email is unknown or the password is wrong."""

    def __init__(self, message: str) -> None:
        super().__init__(message)

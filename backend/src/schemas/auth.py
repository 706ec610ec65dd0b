"""Pydantic schemas for signup, login, and the current user."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

PASSWORD_MIN_LENGTH = 8
NAME_MIN_LENGTH = 2


class SignupRequest(BaseModel):
    """Schema for registering a new account."""

    email: EmailStr
    password: str
    name: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Emails are stored lowercase."""
        return v.lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        """Enforce the minimum password length."""
        if len(v) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.")
        return v

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v: str | None) -> str | None:
        """Trim the display name and enforce its minimum length."""
        if v is None:
            return None
        trimmed = v.strip()
        if len(trimmed) < NAME_MIN_LENGTH:
            raise ValueError(f"Name must be at least {NAME_MIN_LENGTH} characters")
        return trimmed


class LoginRequest(BaseModel):
    """Schema for logging in."""

    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Emails are stored lowercase."""
        return v.lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        """Password must be present."""
        if not v:
            raise ValueError("Please enter your password.")
        return v


class UserSummary(BaseModel):
    """Public user fields returned alongside a token."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str | None


class UserProfile(UserSummary):
    """Public user fields including the signup date."""

    created_at: datetime


class AuthResponse(BaseModel):
    """Token issued by signup or login."""

    user: UserSummary
    token: str


class MeResponse(BaseModel):
    """Response for the current-user endpoint."""

    user: UserProfile

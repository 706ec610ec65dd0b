"""Authentication: password hashing, JWT issuance, and the current-user dependency."""
import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)


# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)

_password_hasher = PasswordHasher()


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity carried by a valid access token."""

    id: int
    email: str | None


async def hash_password(password: str) -> str:
    """Hash a password with Argon2 off the event loop."""
    return await asyncio.to_thread(_password_hasher.hash, password)


async def verify_password(password_hash: str, password: str) -> bool:
    """Check a password against its Argon2 hash off the event loop."""
    try:
        return await asyncio.to_thread(_password_hasher.verify, password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def create_access_token(user_id: int, email: str, settings: Settings | None = None) -> str:
    """Issue a signed token whose `sub` is the user id."""
    settings = settings or get_settings()
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expiry_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str, settings: Settings) -> AuthenticatedUser:
    """
    Decode and validate an access token.

    Raises:
        HTTPException: If token is invalid, expired, or has no usable subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.PyJWTError as e:
        logger.warning("JWT validation failed: %s", e)
        raise _unauthorized("Invalid token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token: bad sub claim")
    return AuthenticatedUser(id=user_id, email=payload.get("email"))


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> AuthenticatedUser:
    """
    Dependency that validates the bearer token and returns the caller's identity.

    Does not touch the store; a token for a deleted account stays valid until it
    expires.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    return decode_access_token(credentials.credentials, settings)

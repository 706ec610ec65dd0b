"""Service layer for account signup and login."""
import logging

from core.auth import hash_password, verify_password
from schemas.auth import LoginRequest, SignupRequest
from services.exceptions import EmailAlreadyRegisteredError, InvalidCredentialsError
from stores.base import BookmarkStore, UserRecord

logger = logging.getLogger(__name__)

UNKNOWN_EMAIL_MESSAGE = "No account found with this email. Please check your email or sign up."
WRONG_PASSWORD_MESSAGE = "Incorrect password. Please try again."


async def create_user(store: BookmarkStore, data: SignupRequest) -> UserRecord:
    """
    Register a new account.

    Raises:
        EmailAlreadyRegisteredError: If the email is taken.
    """
    if await store.get_user_by_email(data.email) is not None:
        raise EmailAlreadyRegisteredError()

    password_hash = await hash_password(data.password)
    user = await store.create_user(data.email, password_hash, data.name)
    logger.info("Registered user %s", user.id)
    return user


async def authenticate(store: BookmarkStore, data: LoginRequest) -> UserRecord:
    """
    Check an email/password pair.

    Raises:
        InvalidCredentialsError: With a message telling the user which part was wrong.
    """
    user = await store.get_user_by_email(data.email)
    if user is None:
        raise InvalidCredentialsError(UNKNOWN_EMAIL_MESSAGE)
    if not await verify_password(user.password_hash, data.password):
        raise InvalidCredentialsError(WRONG_PASSWORD_MESSAGE)
    return user


async def get_user(store: BookmarkStore, user_id: int) -> UserRecord | None:
    """Fetch a user by id."""
    return await store.get_user(user_id)

"""Signup, login, and current-user endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import AuthenticatedUser, get_current_user, get_settings, get_store
from core.auth import create_access_token
from core.config import Settings
from schemas.auth import (
    AuthResponse,
    LoginRequest,
    MeResponse,
    SignupRequest,
    UserProfile,
    UserSummary,
)
from services import user_service
from services.exceptions import EmailAlreadyRegisteredError, InvalidCredentialsError
from stores.base import BookmarkStore

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(
    data: SignupRequest,
    store: BookmarkStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    """Register an account and return a token for it."""
    try:
        user = await user_service.create_user(store, data)
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return AuthResponse(
        user=UserSummary.model_validate(user),
        token=create_access_token(user.id, user.email, settings),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    data: LoginRequest,
    store: BookmarkStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    """Exchange email and password for a token."""
    try:
        user = await user_service.authenticate(store, data)
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    return AuthResponse(
        user=UserSummary.model_validate(user),
        token=create_access_token(user.id, user.email, settings),
    )


@router.get("/me", response_model=MeResponse)
async def me(
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: BookmarkStore = Depends(get_store),
) -> MeResponse:
    """Return the account behind the bearer token."""
    user = await user_service.get_user(store, current_user.id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return MeResponse(user=UserProfile.model_validate(user))

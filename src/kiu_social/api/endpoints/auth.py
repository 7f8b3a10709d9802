"""Registration and login endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from kiu_social.api.dependencies import CurrentUserDep, SessionDep, http_error
from kiu_social.core.security import create_access_token
from kiu_social.schemas.user import (
    AuthResponse,
    LoginRequest,
    QuickLoginRequest,
    RegisterRequest,
    SessionUserResponse,
    UserPrivate,
)
from kiu_social.services.errors import SocialError
from kiu_social.services.user_service import (
    authenticate,
    register_user,
    touch_last_seen,
    verify_pin,
)

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: SessionDep) -> AuthResponse:
    """Create a student account and return a session token."""
    try:
        user = register_user(db, payload)
    except SocialError as err:
        raise http_error(err) from err
    return AuthResponse(
        message="User created successfully",
        token=create_access_token(user.id),
        user=UserPrivate.model_validate(user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, db: SessionDep) -> AuthResponse:
    """Exchange email and password for a session token."""
    user = authenticate(db, payload.email, payload.password)
    if user is None:
        logger.info("Failed login attempt for %s", payload.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    user = touch_last_seen(db, user)
    return AuthResponse(
        message="Login successful",
        token=create_access_token(user.id),
        user=UserPrivate.model_validate(user),
    )


@router.post("/quick-login", response_model=SessionUserResponse)
async def quick_login(
    payload: QuickLoginRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> SessionUserResponse:
    """Re-validate an existing session with the four-digit PIN."""
    if not verify_pin(current_user, payload.pin):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid PIN",
        )
    user = touch_last_seen(db, current_user)
    return SessionUserResponse(
        message="Quick login successful",
        user=UserPrivate.model_validate(user),
    )


@router.get("/verify", response_model=SessionUserResponse)
async def verify(current_user: CurrentUserDep) -> SessionUserResponse:
    """Return the user behind the presented token."""
    return SessionUserResponse(user=UserPrivate.model_validate(current_user))

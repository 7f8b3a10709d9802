"""Shared API dependencies for authentication and error translation."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from kiu_social.core.security import InvalidTokenError, decode_access_token
from kiu_social.db.session import get_db
from kiu_social.models import User
from kiu_social.realtime.gateway import RealtimeGateway, get_gateway
from kiu_social.services.errors import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    PolicyError,
    SocialError,
)

# HTTP Bearer scheme; a missing header is reported as 401 by get_current_user
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from the bearer JWT.

    Raises:
        HTTPException: 401 when the token is missing or names no active user,
            403 when the token cannot be decoded.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
        )
    try:
        user_id = decode_access_token(credentials.credentials)
    except InvalidTokenError as err:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid token",
        ) from err

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token or user not found",
        )
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]

# Type alias for the real-time gateway; tests override get_gateway
GatewayDep = Annotated[RealtimeGateway, Depends(get_gateway)]

_STATUS_BY_ERROR: dict[type[SocialError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_400_BAD_REQUEST,
    InvalidRequestError: status.HTTP_400_BAD_REQUEST,
    PolicyError: status.HTTP_403_FORBIDDEN,
}


def http_error(err: SocialError) -> HTTPException:
    """Translate a service error into the matching HTTPException."""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in _STATUS_BY_ERROR.items():
        if isinstance(err, error_type):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail=str(err))

"""CRUD-style helpers for managing student accounts."""
from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kiu_social.core.security import hash_secret, verify_secret
from kiu_social.db.defaults import utcnow
from kiu_social.models import User
from kiu_social.schemas.user import ProfileUpdateRequest, RegisterRequest
from kiu_social.services.errors import ConflictError, InvalidRequestError, NotFoundError
from kiu_social.services.policy import blocked_user_ids

__all__ = [
    "authenticate",
    "get_active_user",
    "register_user",
    "search_users",
    "set_presence",
    "touch_last_seen",
    "update_profile",
    "verify_pin",
]

logger = logging.getLogger(__name__)

DUPLICATE_USER_DETAIL = "User with this email or username already exists"


def get_active_user(db: Session, user_id: str) -> User:
    """Return an active user by id.

    Raises:
        NotFoundError: If the user does not exist or is deactivated.
    """
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User not found")
    return user


def register_user(db: Session, payload: RegisterRequest) -> User:
    """Create a student account with hashed password and PIN.

    Raises:
        ConflictError: If the email or username is already taken.
    """
    existing = db.execute(
        select(User.id).where(
            or_(User.email == payload.email, User.username == payload.username)
        )
    ).first()
    if existing is not None:
        raise ConflictError(DUPLICATE_USER_DETAIL)

    user = User(
        email=payload.email,
        username=payload.username,
        first_name=payload.first_name,
        last_name=payload.last_name,
        password_hash=hash_secret(payload.password),
        pin_hash=hash_secret(payload.pin),
        major=payload.major,
        date_of_birth=payload.date_of_birth,
        start_year=payload.start_year,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as err:
        # A concurrent registration claimed the email or username first.
        db.rollback()
        raise ConflictError(DUPLICATE_USER_DETAIL) from err
    db.refresh(user)
    logger.info("Registered user %s (%s)", user.id, user.username)
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    """Return the active user matching the credentials, or None."""
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    if not verify_secret(password, user.password_hash):
        return None
    return user


def verify_pin(user: User, pin: str) -> bool:
    """Check the quick-access PIN of an authenticated user."""
    return verify_secret(pin, user.pin_hash)


def touch_last_seen(db: Session, user: User) -> User:
    """Record activity without changing the online flag."""
    user.last_seen = utcnow()
    db.commit()
    db.refresh(user)
    return user


def set_presence(db: Session, user_id: str, *, online: bool) -> None:
    """Persist the online flag and bump the last-seen timestamp."""
    user = db.get(User, user_id)
    if user is None:
        return
    user.is_online = online
    user.last_seen = utcnow()
    db.commit()


def update_profile(db: Session, user: User, update_data: ProfileUpdateRequest) -> User:
    """Apply partial updates to the user's editable profile fields."""
    update_dict = update_data.model_dump(exclude_unset=True)
    for key, value in update_dict.items():
        if value is None:
            continue
        setattr(user, key, value.strip() if key in {"first_name", "last_name"} else value)

    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def search_users(db: Session, viewer: User, query: str, limit: int) -> Sequence[User]:
    """Case-insensitive search over names, username and major.

    Excludes the viewer, deactivated accounts and anyone on either side of a
    block with the viewer.
    """
    term = query.strip()
    if not term:
        raise InvalidRequestError("Search query required")

    pattern = f"%{term}%"
    stmt = select(User).where(
        User.id != viewer.id,
        User.is_active.is_(True),
        or_(
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
            User.username.ilike(pattern),
            User.major.ilike(pattern),
        ),
    )
    excluded = blocked_user_ids(db, viewer.id)
    if excluded:
        stmt = stmt.where(User.id.not_in(excluded))

    return db.execute(stmt.order_by(User.username).limit(limit)).scalars().all()

"""Friendship and block mutations.

Invariants maintained here:

- a pair of users has either zero or two `Friendship` rows;
- a `Block` row and a friendship never coexist for the same pair.

Each mutation runs in a single commit so the invariants hold for any reader.
"""
from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kiu_social.models import Block, Friendship, User
from kiu_social.services.errors import ConflictError, InvalidRequestError, NotFoundError
from kiu_social.services.policy import check_interaction, load_relationship
from kiu_social.services.user_service import get_active_user

logger = logging.getLogger(__name__)

ALREADY_FRIENDS_DETAIL = "Already friends"


def _pair_clause(a: str, b: str):  # type: ignore[no-untyped-def]
    return or_(
        (Friendship.user_id == a) & (Friendship.friend_id == b),
        (Friendship.user_id == b) & (Friendship.friend_id == a),
    )


def are_friends(db: Session, user_id: str, other_id: str) -> bool:
    """Return True if any friendship row links the two users."""
    row = db.execute(select(Friendship.user_id).where(_pair_clause(user_id, other_id))).first()
    return row is not None


def add_friend(db: Session, user: User, friend_id: str) -> None:
    """Create both directions of a friendship.

    Raises:
        InvalidRequestError: On self-friendship.
        NotFoundError: If the target does not exist or is inactive.
        PolicyError: If either user has blocked the other.
        ConflictError: If the two users are already friends.
    """
    if friend_id == user.id:
        raise InvalidRequestError("Cannot add yourself as friend")
    get_active_user(db, friend_id)
    check_interaction(user.id, friend_id, load_relationship(db, user.id, friend_id))

    if are_friends(db, user.id, friend_id):
        raise ConflictError(ALREADY_FRIENDS_DETAIL)

    db.add_all(
        [
            Friendship(user_id=user.id, friend_id=friend_id),
            Friendship(user_id=friend_id, friend_id=user.id),
        ]
    )
    try:
        db.commit()
    except IntegrityError as err:
        # Lost a race with a concurrent add for the same pair.
        db.rollback()
        raise ConflictError(ALREADY_FRIENDS_DETAIL) from err
    logger.info("Users %s and %s are now friends", user.id, friend_id)


def remove_friend(db: Session, user: User, friend_id: str) -> None:
    """Delete both directions of a friendship; a missing edge is not an error."""
    if db.get(User, friend_id) is None:
        raise NotFoundError("User not found")
    db.execute(delete(Friendship).where(_pair_clause(user.id, friend_id)))
    db.commit()


def block_user(db: Session, user: User, blocked_id: str) -> None:
    """Block a user, dropping any friendship with them first.

    Repeating the call leaves a single block row in place.
    """
    if blocked_id == user.id:
        raise InvalidRequestError("Cannot block yourself")
    if db.get(User, blocked_id) is None:
        raise NotFoundError("User not found")

    db.execute(delete(Friendship).where(_pair_clause(user.id, blocked_id)))
    if db.get(Block, (user.id, blocked_id)) is None:
        db.add(Block(user_id=user.id, blocked_id=blocked_id))
    try:
        db.commit()
    except IntegrityError:
        # A concurrent block inserted the same row; the friendship delete still stands.
        db.rollback()
        db.execute(delete(Friendship).where(_pair_clause(user.id, blocked_id)))
        db.commit()
    logger.info("User %s blocked %s", user.id, blocked_id)


def list_friends(db: Session, user_id: str) -> Sequence[User]:
    """Return the user's friends ordered by name."""
    stmt = (
        select(User)
        .join(Friendship, Friendship.friend_id == User.id)
        .where(Friendship.user_id == user_id)
        .order_by(User.first_name, User.last_name)
    )
    return db.execute(stmt).scalars().all()

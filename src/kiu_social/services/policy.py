"""Relationship policy checked before any user-to-user interaction.

The decision itself is a pure function of the two identities and the block
state between them; loading that state is the only part touching the database.
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from kiu_social.models import Block
from kiu_social.services.errors import InvalidRequestError, PolicyError


@dataclass(frozen=True)
class RelationshipState:
    """Block edges between an actor and a target, in both directions."""

    actor_blocked_target: bool = False
    target_blocked_actor: bool = False

    @property
    def blocked(self) -> bool:
        return self.actor_blocked_target or self.target_blocked_actor


def check_interaction(actor_id: str, target_id: str, state: RelationshipState) -> None:
    """Refuse self-interaction and any interaction across a block.

    Raises:
        InvalidRequestError: If actor and target are the same user.
        PolicyError: If either side has blocked the other.
    """
    if actor_id == target_id:
        raise InvalidRequestError("Cannot interact with yourself")
    if state.actor_blocked_target:
        raise PolicyError("You have blocked this user")
    if state.target_blocked_actor:
        raise PolicyError("This user is not accepting interactions from you")


def load_relationship(db: Session, actor_id: str, target_id: str) -> RelationshipState:
    """Read the block edges between two users."""
    rows = db.execute(
        select(Block.user_id, Block.blocked_id).where(
            or_(
                (Block.user_id == actor_id) & (Block.blocked_id == target_id),
                (Block.user_id == target_id) & (Block.blocked_id == actor_id),
            )
        )
    ).all()
    edges = {(row.user_id, row.blocked_id) for row in rows}
    return RelationshipState(
        actor_blocked_target=(actor_id, target_id) in edges,
        target_blocked_actor=(target_id, actor_id) in edges,
    )


def ensure_can_interact(db: Session, actor_id: str, target_id: str) -> None:
    """Load the relationship state and apply :func:`check_interaction`."""
    check_interaction(actor_id, target_id, load_relationship(db, actor_id, target_id))


def blocked_user_ids(db: Session, user_id: str) -> set[str]:
    """Return everyone the user blocked or was blocked by."""
    rows = db.execute(
        select(Block.user_id, Block.blocked_id).where(
            or_(Block.user_id == user_id, Block.blocked_id == user_id)
        )
    ).all()
    return {row.blocked_id if row.user_id == user_id else row.user_id for row in rows}

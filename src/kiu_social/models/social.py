# src/kiu_social/models/social.py
"""Models for the social graph: friendships and blocks."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kiu_social.db.defaults import utcnow
from kiu_social.db.session import Base
from kiu_social.models.user import User


class Friendship(Base):
    """One direction of a friendship.

    A friendship between two users is always stored as two rows, one per
    direction, so "friends of X" is a single indexed lookup.
    """

    __tablename__ = "user_friends"
    __table_args__ = (
        CheckConstraint("user_id <> friend_id", name="ck_user_friends_not_self"),
        Index("ix_user_friends_friend_id", "friend_id"),
    )

    # Composite primary key prevents duplicate edges in the same direction.
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    friend_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    friend: Mapped[User] = relationship("User", foreign_keys=[friend_id])


class Block(Base):
    """Directed block: `user_id` no longer wants contact with `blocked_id`."""

    __tablename__ = "user_blocks"
    __table_args__ = (
        CheckConstraint("user_id <> blocked_id", name="ck_user_blocks_not_self"),
        Index("ix_user_blocks_blocked_id", "blocked_id"),
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    blocked_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

# src/kiu_social/models/message.py
"""Models describing direct messages between users."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kiu_social.db.defaults import new_id, utcnow
from kiu_social.db.session import Base
from kiu_social.models.user import User

MESSAGE_MAX_LENGTH = 5000


class MessageType(str, Enum):
    """Kinds of payload a direct message can carry."""

    TEXT = "TEXT"
    IMAGE = "IMAGE"
    FILE = "FILE"


class Message(Base):
    """Direct message from one user to another.

    Rows are immutable once written apart from the read transition
    (`is_read` / `read_at`). Conversations are derived from these rows on read.
    """

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(
            "message_type IN ('TEXT', 'IMAGE', 'FILE')",
            name="ck_messages_type",
        ),
        Index("ix_messages_pair_created", "sender_id", "recipient_id", "created_at"),
        Index("ix_messages_recipient_unread", "recipient_id", "is_read"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    sender_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    recipient_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=MessageType.TEXT.value,
    )

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    sender: Mapped[User] = relationship("User", foreign_keys=[sender_id], lazy="joined")
    recipient: Mapped[User] = relationship("User", foreign_keys=[recipient_id], lazy="joined")

"""Direct message persistence and derived conversation views."""
from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from kiu_social.db.defaults import utcnow
from kiu_social.models import Message, User
from kiu_social.schemas.common import UserSummary
from kiu_social.schemas.message import ConversationSummary, MessageCreate, MessageResponse
from kiu_social.services.errors import InvalidRequestError, NotFoundError
from kiu_social.services.policy import ensure_can_interact

logger = logging.getLogger(__name__)


def send_message(db: Session, sender_id: str, payload: MessageCreate) -> Message:
    """Validate, authorize and persist a direct message.

    The sender always comes from the authenticated identity, never from the
    payload.

    Raises:
        InvalidRequestError: If the sender addresses themselves.
        NotFoundError: If the recipient does not exist or is inactive.
        PolicyError: If either side has blocked the other.
    """
    if payload.recipient_id == sender_id:
        raise InvalidRequestError("Cannot send a message to yourself")
    recipient = db.get(User, payload.recipient_id)
    if recipient is None or not recipient.is_active:
        raise NotFoundError("Recipient not found")
    ensure_can_interact(db, sender_id, recipient.id)

    message = Message(
        sender_id=sender_id,
        recipient_id=recipient.id,
        content=payload.content,
        message_type=payload.message_type.value,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    logger.debug("Stored message %s from %s to %s", message.id, sender_id, recipient.id)
    return message


def serialize_message(message: Message) -> MessageResponse:
    """Convert a Message row into its API form."""
    return MessageResponse(
        id=message.id,
        sender_id=message.sender_id,
        recipient_id=message.recipient_id,
        sender=UserSummary.model_validate(message.sender),
        recipient=UserSummary.model_validate(message.recipient),
        content=message.content,
        message_type=message.message_type,
        is_read=message.is_read,
        read_at=message.read_at,
        created_at=message.created_at,
    )


def _between(user_id: str, other_id: str):  # type: ignore[no-untyped-def]
    return or_(
        and_(Message.sender_id == user_id, Message.recipient_id == other_id),
        and_(Message.sender_id == other_id, Message.recipient_id == user_id),
    )


def get_conversation(db: Session, user_id: str, other_id: str, page: int,
                     limit: int) -> Sequence[Message]:
    """Return one page of the conversation, oldest message first.

    Pages count backwards from the most recent message: page 1 holds the
    latest `limit` messages.
    """
    offset = (max(page, 1) - 1) * limit
    stmt = (
        select(Message)
        .where(_between(user_id, other_id))
        .order_by(Message.created_at.desc())
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    messages = list(db.execute(stmt).unique().scalars())
    messages.reverse()
    return messages


def list_conversations(db: Session, user_id: str) -> list[ConversationSummary]:
    """Group the user's messages by counterpart.

    Each entry carries the counterpart, the latest message and the number of
    unread messages addressed to the user. Entries are ordered by their latest
    message, newest first.
    """
    stmt = (
        select(Message)
        .where(or_(Message.sender_id == user_id, Message.recipient_id == user_id))
        .order_by(Message.created_at.desc())
        .execution_options(populate_existing=True)
    )
    latest: dict[str, Message] = {}
    unread: dict[str, int] = {}
    for message in db.execute(stmt).unique().scalars():
        partner_id = message.recipient_id if message.sender_id == user_id else message.sender_id
        # Rows arrive newest first, so the first one seen per partner is the latest.
        latest.setdefault(partner_id, message)
        unread.setdefault(partner_id, 0)
        if message.recipient_id == user_id and not message.is_read:
            unread[partner_id] += 1

    summaries = []
    for partner_id, message in latest.items():
        partner = message.recipient if message.sender_id == user_id else message.sender
        summaries.append(
            ConversationSummary(
                user=UserSummary.model_validate(partner),
                last_message=serialize_message(message),
                unread_count=unread[partner_id],
            )
        )
    return summaries


def mark_conversation_read(db: Session, reader_id: str, sender_id: str) -> int:
    """Mark every unread message from `sender_id` to `reader_id` as read.

    Returns:
        Number of messages that changed state.
    """
    result = db.execute(
        update(Message)
        .where(
            Message.sender_id == sender_id,
            Message.recipient_id == reader_id,
            Message.is_read.is_(False),
        )
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    db.commit()
    return int(result.rowcount or 0)

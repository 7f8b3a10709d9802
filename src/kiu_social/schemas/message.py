"""Direct message Pydantic schemas."""

from datetime import datetime

from pydantic import Field, field_validator

from kiu_social.models.message import MESSAGE_MAX_LENGTH, MessageType
from kiu_social.schemas.common import CamelModel, UserSummary


class MessageCreate(CamelModel):
    """Payload for sending a direct message over REST or the real-time channel."""

    recipient_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)
    message_type: MessageType = MessageType.TEXT

    @field_validator("message_type", mode="before")
    @classmethod
    def normalize_message_type(cls, v: object) -> object:
        """Accept the type tag in any case ("text", "TEXT")."""
        if v is None:
            return MessageType.TEXT
        if isinstance(v, str):
            return v.upper()
        return v


class MessageResponse(CamelModel):
    """A persisted message with denormalized participants."""

    id: str
    sender_id: str
    recipient_id: str
    sender: UserSummary
    recipient: UserSummary
    content: str
    message_type: MessageType
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class ConversationSummary(CamelModel):
    """Derived view of one counterpart: latest message and unread count."""

    user: UserSummary
    last_message: MessageResponse
    unread_count: int


class MarkReadResponse(CamelModel):
    """Result of marking a counterpart's messages as read."""

    message: str
    updated: int


class CounterpartPayload(CamelModel):
    """Real-time payload naming the other side of a conversation."""

    user_id: str = Field(..., min_length=1)


class TypingPayload(CamelModel):
    """Real-time payload for typing indicators."""

    recipient_id: str = Field(..., min_length=1)

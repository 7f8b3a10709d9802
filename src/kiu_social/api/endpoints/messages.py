"""Direct message endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query, status

from kiu_social.api.dependencies import CurrentUserDep, GatewayDep, SessionDep, http_error
from kiu_social.realtime.broker import BrokerError
from kiu_social.schemas.message import (
    ConversationSummary,
    MarkReadResponse,
    MessageCreate,
    MessageResponse,
)
from kiu_social.services import message_service
from kiu_social.services.errors import SocialError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])

CONVERSATION_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    gateway: GatewayDep,
) -> MessageResponse:
    """Store a direct message and push it to the recipient's live connections."""
    try:
        message = message_service.send_message(db, current_user.id, payload)
    except SocialError as err:
        raise http_error(err) from err
    response = message_service.serialize_message(message)
    try:
        await gateway.publish_new_message(
            response.model_dump(mode="json", by_alias=True),
            message.sender_id,
            message.recipient_id,
        )
    except BrokerError:
        # The message is stored; the recipient picks it up from history.
        logger.warning("Live delivery of message %s failed", message.id, exc_info=True)
    return response


@router.get("/conversation/{user_id}", response_model=list[MessageResponse])
async def get_conversation(
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=CONVERSATION_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> list[MessageResponse]:
    """Return one page of the conversation with a user, oldest first."""
    messages = message_service.get_conversation(db, current_user.id, user_id, page, limit)
    return [message_service.serialize_message(message) for message in messages]


@router.get("/conversations", response_model=list[ConversationSummary])
async def list_conversations(
    current_user: CurrentUserDep,
    db: SessionDep,
) -> list[ConversationSummary]:
    """Return one summary per counterpart, most recent conversation first."""
    return message_service.list_conversations(db, current_user.id)


@router.put("/read/{user_id}", response_model=MarkReadResponse)
async def mark_read(user_id: str, current_user: CurrentUserDep, db: SessionDep) -> MarkReadResponse:
    """Mark every unread message from the user as read."""
    updated = message_service.mark_conversation_read(db, current_user.id, user_id)
    return MarkReadResponse(message="Messages marked as read", updated=updated)

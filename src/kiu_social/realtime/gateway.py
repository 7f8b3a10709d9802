"""WebSocket gateway: handshake, event dispatch and presence bookkeeping."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kiu_social.core.security import InvalidTokenError, decode_access_token
from kiu_social.core.settings import settings
from kiu_social.models import User
from kiu_social.realtime.broker import BrokerError, LocalBroker, RedisBroker
from kiu_social.realtime.registry import (
    Connection,
    ConnectionRegistry,
    conversation_room,
    user_room,
)
from kiu_social.schemas.message import CounterpartPayload, MessageCreate, TypingPayload
from kiu_social.services.errors import SocialError
from kiu_social.services.message_service import send_message, serialize_message
from kiu_social.services.policy import ensure_can_interact, load_relationship
from kiu_social.services.user_service import get_active_user, set_presence

logger = logging.getLogger(__name__)

AUTH_ERROR_REASON = "Authentication error"

Handler = Callable[[Connection, Session, Any], Awaitable[None]]


class RealtimeGateway:
    """Serves authenticated WebSocket connections on top of a broker."""

    def __init__(self, broker: LocalBroker) -> None:
        self.broker = broker
        self._handlers: dict[str, Handler] = {
            "join_conversation": self._join_conversation,
            "leave_conversation": self._leave_conversation,
            "send_message": self._send_message,
            "typing_start": self._typing_start,
            "typing_stop": self._typing_stop,
        }

    @property
    def registry(self) -> ConnectionRegistry:
        return self.broker.registry

    async def start(self) -> None:
        await self.broker.start()

    async def stop(self) -> None:
        await self.broker.stop()

    async def publish_new_message(self, body: dict[str, Any], sender_id: str,
                                  recipient_id: str) -> None:
        """Fan a stored message out to the recipient and the conversation room."""
        await self.broker.publish(
            [user_room(recipient_id), conversation_room(sender_id, recipient_id)],
            "new_message",
            body,
        )

    def authenticate(self, db: Session, token: str | None) -> User | None:
        """Resolve a handshake token to an active user, or None."""
        if not token:
            return None
        try:
            user_id = decode_access_token(token)
        except InvalidTokenError:
            return None
        user = db.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return user

    async def serve(self, websocket: WebSocket, db: Session, token: str | None) -> None:
        """Run one connection from handshake to disconnect.

        The session is shared by every frame on the socket, so each step ends
        its own transaction instead of holding one open between frames.
        """
        user = self.authenticate(db, token)
        if user is None:
            db.rollback()
            logger.info("Rejected real-time connection: %s", AUTH_ERROR_REASON)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=AUTH_ERROR_REASON)
            return
        user_id = user.id

        await websocket.accept()
        connection = Connection(websocket=websocket, user_id=user_id)
        opened = False
        try:
            self.registry.register(connection)
            self.registry.join(connection, user_room(user_id))
            open_count = await self.broker.connection_opened(user_id)
            opened = True
            set_presence(db, user_id, online=True)
            logger.info("User %s connected (%d open connection(s))", user_id, open_count)

            while True:
                raw = await websocket.receive_text()
                await self.dispatch(connection, db, raw)
        except WebSocketDisconnect as exc:
            logger.debug("Socket for user %s closed with code %s", user_id, exc.code)
        except (SQLAlchemyError, BrokerError):
            db.rollback()
            logger.error("Real-time session for user %s failed", user_id, exc_info=True)
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        finally:
            self.registry.unregister(connection)
            if opened:
                await self._release(db, user_id)

    async def _release(self, db: Session, user_id: str) -> None:
        try:
            remaining = await self.broker.connection_closed(user_id)
        except BrokerError:
            logger.error("Failed to release connection count for user %s", user_id,
                         exc_info=True)
            remaining = len(self.registry.connections_for(user_id))
        try:
            set_presence(db, user_id, online=remaining > 0)
        except SQLAlchemyError:
            db.rollback()
            logger.error("Failed to record presence for user %s", user_id, exc_info=True)
        logger.info("User %s disconnected (%d remaining)", user_id, remaining)

    async def dispatch(self, connection: Connection, db: Session, raw: str) -> None:
        """Decode one client frame and run its handler.

        Handlers commit their own writes. Once a frame is handled the read
        transaction its lookups opened is closed, so an idle socket never
        holds the database.
        """
        try:
            frame = json.loads(raw)
        except ValueError:
            await connection.send("message_error", {"error": "Malformed frame"})
            return
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await connection.send("message_error", {"error": "Malformed frame"})
            return

        event = frame["event"]
        handler = self._handlers.get(event)
        if handler is None:
            await connection.send("message_error", {"error": f"Unknown event: {event}"})
            return

        try:
            await handler(connection, db, frame.get("data"))
        except SocialError as err:
            await connection.send("message_error", {"error": str(err)})
        except ValidationError:
            await connection.send("message_error", {"error": "Invalid payload"})
        except SQLAlchemyError:
            db.rollback()
            logger.error("Storage failure handling %s for user %s", event, connection.user_id,
                         exc_info=True)
            await connection.send("message_error", {"error": "Failed to send message"})
            return
        except BrokerError:
            logger.warning("Could not fan out %s for user %s", event, connection.user_id,
                           exc_info=True)
            await connection.send("message_error", {"error": "Failed to deliver message"})
        db.commit()

    @staticmethod
    def _counterpart(data: Any) -> str:
        if isinstance(data, str):
            return CounterpartPayload(user_id=data).user_id
        return CounterpartPayload.model_validate(data).user_id

    async def _join_conversation(self, connection: Connection, db: Session, data: Any) -> None:
        other_id = self._counterpart(data)
        get_active_user(db, other_id)
        ensure_can_interact(db, connection.user_id, other_id)
        self.registry.join(connection, conversation_room(connection.user_id, other_id))

    async def _leave_conversation(self, connection: Connection, db: Session, data: Any) -> None:
        other_id = self._counterpart(data)
        self.registry.leave(connection, conversation_room(connection.user_id, other_id))

    async def _send_message(self, connection: Connection, db: Session, data: Any) -> None:
        payload = MessageCreate.model_validate(data)
        message = send_message(db, connection.user_id, payload)
        body = serialize_message(message).model_dump(mode="json", by_alias=True)
        await self.publish_new_message(body, message.sender_id, message.recipient_id)
        await connection.send("message_sent", body)

    async def _typing(self, connection: Connection, db: Session, data: Any,
                      is_typing: bool) -> None:
        payload = TypingPayload.model_validate(data)
        recipient_id = payload.recipient_id
        if recipient_id == connection.user_id:
            return
        if load_relationship(db, connection.user_id, recipient_id).blocked:
            logger.debug("Dropped typing signal from %s to %s", connection.user_id, recipient_id)
            return
        await self.broker.publish(
            [user_room(recipient_id)],
            "user_typing",
            {"userId": connection.user_id, "isTyping": is_typing},
            exclude=connection.id,
        )

    async def _typing_start(self, connection: Connection, db: Session, data: Any) -> None:
        await self._typing(connection, db, data, True)

    async def _typing_stop(self, connection: Connection, db: Session, data: Any) -> None:
        await self._typing(connection, db, data, False)


def build_broker(registry: ConnectionRegistry | None = None) -> LocalBroker:
    """Create the broker selected by ``REALTIME_BROKER``."""
    registry = registry or ConnectionRegistry()
    if settings.realtime_broker == "redis":
        return RedisBroker(registry, settings.redis_url, settings.redis_channel)
    return LocalBroker(registry)


_gateway: RealtimeGateway | None = None


def get_gateway() -> RealtimeGateway:
    """Return the process-wide gateway, creating it on first use."""
    global _gateway
    if _gateway is None:
        _gateway = RealtimeGateway(build_broker())
    return _gateway

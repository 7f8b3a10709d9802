"""Process-local registry of live WebSocket connections and their rooms."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def user_room(user_id: str) -> str:
    """Room holding every connection of one user."""
    return f"user_{user_id}"


def conversation_room(user_id: str, other_id: str) -> str:
    """Room shared by both participants of a conversation.

    The two ids are sorted so either side derives the same key.
    """
    first, second = sorted((user_id, other_id))
    return f"conversation_{first}_{second}"


@dataclass(eq=False)
class Connection:
    """One authenticated WebSocket bound to a user."""

    websocket: WebSocket
    user_id: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    rooms: set[str] = field(default_factory=set)

    async def send(self, event: str, data: Any) -> None:
        """Send an event frame to this connection."""
        await self.websocket.send_json({"event": event, "data": data})


class ConnectionRegistry:
    """Tracks connections, room membership and per-user connection lists.

    All state lives in this process. Multi-process deployments route events
    through a broker that calls :meth:`deliver` in every process.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = defaultdict(set)

    def register(self, connection: Connection) -> None:
        self._connections[connection.id] = connection

    def unregister(self, connection: Connection) -> None:
        """Forget a connection and remove it from every room it joined."""
        for room in list(connection.rooms):
            self.leave(connection, room)
        self._connections.pop(connection.id, None)

    def join(self, connection: Connection, room: str) -> None:
        """Add a connection to a room; joining twice is a no-op."""
        self._rooms[room].add(connection.id)
        connection.rooms.add(room)

    def leave(self, connection: Connection, room: str) -> None:
        """Remove a connection from a room; leaving a room not joined is a no-op."""
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection.id)
            if not members:
                del self._rooms[room]
        connection.rooms.discard(room)

    def members(self, room: str) -> set[str]:
        """Return ids of connections currently in the room."""
        return set(self._rooms.get(room, ()))

    def connections_for(self, user_id: str) -> list[Connection]:
        """Return this process's live connections for a user."""
        return [conn for conn in self._connections.values() if conn.user_id == user_id]

    def __len__(self) -> int:
        return len(self._connections)

    async def deliver(
        self,
        rooms: Iterable[str],
        event: str,
        data: Any,
        exclude: str | None = None,
    ) -> int:
        """Send an event to every connection in any of the rooms.

        A connection that belongs to several target rooms receives the event
        once. `exclude` names a connection id that must not receive it.

        Returns:
            Number of connections the event was written to.
        """
        targets: set[str] = set()
        for room in rooms:
            targets |= self._rooms.get(room, set())
        if exclude is not None:
            targets.discard(exclude)

        delivered = 0
        for connection_id in sorted(targets):
            connection = self._connections.get(connection_id)
            if connection is None:
                continue
            try:
                await connection.send(event, data)
            except Exception as exc:  # connection went away mid fan-out
                logger.warning(
                    "Dropping %s for connection %s of user %s: %s",
                    event,
                    connection.id,
                    connection.user_id,
                    exc,
                )
                continue
            delivered += 1
        logger.debug("Delivered %s to %d connection(s)", event, delivered)
        return delivered

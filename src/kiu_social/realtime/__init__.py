"""Real-time delivery over WebSockets."""

from .broker import LocalBroker, RedisBroker
from .gateway import RealtimeGateway, get_gateway
from .registry import Connection, ConnectionRegistry, conversation_room, user_room

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "LocalBroker",
    "RealtimeGateway",
    "RedisBroker",
    "conversation_room",
    "get_gateway",
    "user_room",
]

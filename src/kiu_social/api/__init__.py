"""HTTP and WebSocket API."""

from .endpoints import (
    auth_router,
    messages_router,
    posts_router,
    realtime_router,
    users_router,
)

__all__ = [
    "auth_router",
    "messages_router",
    "posts_router",
    "realtime_router",
    "users_router",
]

"""API endpoint modules."""

from .auth import router as auth_router
from .messages import router as messages_router
from .posts import router as posts_router
from .realtime import router as realtime_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "messages_router",
    "posts_router",
    "realtime_router",
    "users_router",
]

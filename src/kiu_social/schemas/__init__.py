"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .common import CamelModel, StatusResponse, UserCard, UserSummary
from .message import ConversationSummary, MarkReadResponse, MessageCreate, MessageResponse
from .post import CommentCreate, CommentResponse, LikeToggleResponse, PostCreate, PostResponse
from .user import (
    AuthResponse,
    LoginRequest,
    ProfileUpdateRequest,
    QuickLoginRequest,
    RegisterRequest,
    SessionUserResponse,
    UserPrivate,
    UserPublic,
)

__all__ = [
    "CamelModel", "StatusResponse", "UserCard", "UserSummary",
    "ConversationSummary", "MarkReadResponse", "MessageCreate", "MessageResponse",
    "CommentCreate", "CommentResponse", "LikeToggleResponse", "PostCreate", "PostResponse",
    "AuthResponse", "LoginRequest", "ProfileUpdateRequest", "QuickLoginRequest",
    "RegisterRequest", "SessionUserResponse", "UserPrivate", "UserPublic",
]

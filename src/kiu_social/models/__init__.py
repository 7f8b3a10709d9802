# src/kiu_social/models/__init__.py
"""SQLAlchemy models for the KIU Social application."""

from .message import Message, MessageType
from .post import Comment, CommentLike, Post, PostLike
from .social import Block, Friendship
from .user import User

__all__ = [
    "Block", "Friendship",
    "Comment", "CommentLike", "Post", "PostLike",
    "Message", "MessageType",
    "User",
]

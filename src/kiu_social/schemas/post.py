"""Post and comment Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from kiu_social.models.post import COMMENT_MAX_LENGTH, POST_MAX_LENGTH
from kiu_social.schemas.common import CamelModel, UserCard, UserSummary


class PostCreate(CamelModel):
    """Schema for creating a new post."""

    content: str = Field(..., min_length=1, max_length=POST_MAX_LENGTH)
    images: list[str] = Field(default_factory=list, max_length=10)
    is_public: bool = True


class CommentCreate(CamelModel):
    """Schema for adding a comment or a reply to a comment."""

    content: str = Field(..., min_length=1, max_length=COMMENT_MAX_LENGTH)
    parent_comment_id: str | None = Field(None, description="Top-level comment being replied to")


class CommentResponse(CamelModel):
    """Comment with its author, like count and (for top-level comments) replies."""

    id: str
    post_id: str
    author: UserSummary
    content: str
    parent_comment_id: str | None = None
    likes_count: int = 0
    is_liked: bool = False
    replies: list[CommentResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class PostResponse(CamelModel):
    """Post as shown in feeds and profile timelines."""

    id: str
    author: UserCard
    content: str
    images: list[str] = Field(default_factory=list)
    is_public: bool
    likes_count: int = 0
    comments_count: int = 0
    is_liked: bool = False
    comments: list[CommentResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class LikeToggleResponse(CamelModel):
    """New like state after a toggle and the recomputed count."""

    is_liked: bool
    likes_count: int

"""Service-level helpers for posts and comments."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from kiu_social.models import Comment, CommentLike, Post, PostLike, User
from kiu_social.schemas.common import UserCard, UserSummary
from kiu_social.schemas.post import CommentCreate, CommentResponse, PostCreate, PostResponse
from kiu_social.services.errors import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)


def _offset(page: int, limit: int) -> int:
    return (max(page, 1) - 1) * limit


def create_post(db: Session, author: User, payload: PostCreate) -> Post:
    """Persist a new post for the author."""
    post = Post(
        author_id=author.id,
        content=payload.content,
        images=list(payload.images),
        is_public=payload.is_public,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    logger.debug("User %s created post %s", author.id, post.id)
    return post


def list_feed(db: Session, page: int, limit: int) -> Sequence[Post]:
    """Return public posts, newest first."""
    stmt = (
        select(Post)
        .where(Post.is_public.is_(True))
        .order_by(Post.created_at.desc())
        .offset(_offset(page, limit))
        .limit(limit)
    )
    return db.execute(stmt).unique().scalars().all()


def list_user_posts(db: Session, user_id: str, page: int, limit: int) -> Sequence[Post]:
    """Return a user's public posts, newest first."""
    if db.get(User, user_id) is None:
        raise NotFoundError("User not found")
    stmt = (
        select(Post)
        .where(Post.author_id == user_id, Post.is_public.is_(True))
        .order_by(Post.created_at.desc())
        .offset(_offset(page, limit))
        .limit(limit)
    )
    return db.execute(stmt).unique().scalars().all()


def add_comment(db: Session, author: User, post_id: str, payload: CommentCreate) -> Comment:
    """Attach a comment, or a reply to a top-level comment, to a post.

    Raises:
        NotFoundError: If the post or the parent comment does not exist.
        InvalidRequestError: If the parent belongs to another post or is itself a reply.
    """
    if db.get(Post, post_id) is None:
        raise NotFoundError("Post not found")

    if payload.parent_comment_id is not None:
        parent = db.get(Comment, payload.parent_comment_id)
        if parent is None:
            raise NotFoundError("Parent comment not found")
        if parent.post_id != post_id:
            raise InvalidRequestError("Parent comment belongs to a different post")
        if parent.parent_comment_id is not None:
            raise InvalidRequestError("Replies can only be one level deep")

    comment = Comment(
        post_id=post_id,
        author_id=author.id,
        content=payload.content,
        parent_comment_id=payload.parent_comment_id,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment


def list_comments(db: Session, post_id: str, page: int, limit: int) -> Sequence[Comment]:
    """Return top-level comments of a post with their replies loaded."""
    if db.get(Post, post_id) is None:
        raise NotFoundError("Post not found")
    stmt = (
        select(Comment)
        .where(Comment.post_id == post_id, Comment.parent_comment_id.is_(None))
        .options(selectinload(Comment.replies))
        .order_by(Comment.created_at.desc())
        .offset(_offset(page, limit))
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).unique().scalars().all()


def _count_by(db: Session, column, ids: list[str]) -> dict[str, int]:  # type: ignore[no-untyped-def]
    if not ids:
        return {}
    rows = db.execute(
        select(column, func.count()).where(column.in_(ids)).group_by(column)
    ).all()
    return {key: int(count) for key, count in rows}


def _liked_ids(db: Session, user_column, target_column, user_id: str | None,  # type: ignore[no-untyped-def]
               ids: list[str]) -> set[str]:
    if user_id is None or not ids:
        return set()
    rows = db.execute(
        select(target_column).where(user_column == user_id, target_column.in_(ids))
    ).scalars()
    return set(rows)


def build_comment_views(
    db: Session,
    comments: Iterable[Comment],
    viewer_id: str | None,
    *,
    include_replies: bool = True,
) -> list[CommentResponse]:
    """Serialize comments with like counts, the viewer's like state and replies."""
    comments = list(comments)
    replies = [reply for c in comments for reply in c.replies] if include_replies else []
    ids = [c.id for c in comments] + [r.id for r in replies]
    counts = _count_by(db, CommentLike.comment_id, ids)
    liked = _liked_ids(db, CommentLike.user_id, CommentLike.comment_id, viewer_id, ids)

    def _view(comment: Comment, nested: list[CommentResponse]) -> CommentResponse:
        return CommentResponse(
            id=comment.id,
            post_id=comment.post_id,
            author=UserSummary.model_validate(comment.author),
            content=comment.content,
            parent_comment_id=comment.parent_comment_id,
            likes_count=counts.get(comment.id, 0),
            is_liked=comment.id in liked,
            replies=nested,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )

    views = []
    for comment in comments:
        nested = [_view(r, []) for r in comment.replies] if include_replies else []
        views.append(_view(comment, nested))
    return views


def build_post_views(db: Session, posts: Iterable[Post], viewer_id: str | None,
                     preview_comments: int = 3) -> list[PostResponse]:
    """Serialize posts with counts, the viewer's like state and a comment preview."""
    posts = list(posts)
    ids = [p.id for p in posts]
    like_counts = _count_by(db, PostLike.post_id, ids)
    comment_counts = _count_by(db, Comment.post_id, ids)
    liked = _liked_ids(db, PostLike.user_id, PostLike.post_id, viewer_id, ids)

    views = []
    for post in posts:
        preview: list[Comment] = []
        if preview_comments > 0:
            preview = list(
                db.execute(
                    select(Comment)
                    .where(Comment.post_id == post.id)
                    .order_by(Comment.created_at.desc())
                    .limit(preview_comments)
                ).unique().scalars()
            )
        views.append(
            PostResponse(
                id=post.id,
                author=UserCard.model_validate(post.author),
                content=post.content,
                images=list(post.images or []),
                is_public=post.is_public,
                likes_count=like_counts.get(post.id, 0),
                comments_count=comment_counts.get(post.id, 0),
                is_liked=post.id in liked,
                comments=build_comment_views(db, preview, viewer_id, include_replies=False),
                created_at=post.created_at,
                updated_at=post.updated_at,
            )
        )
    return views

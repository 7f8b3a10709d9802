"""Like toggles for posts and comments.

A toggle is a delete followed, only when nothing was deleted, by an insert in
a savepoint. Two concurrent toggles by the same user therefore never fail: a
second delete removes nothing, and a second insert hits the composite primary
key and is read as "already liked".
"""
from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kiu_social.models import Comment, CommentLike, Post, PostLike
from kiu_social.services.errors import NotFoundError


def _toggle(db: Session, model: type[PostLike] | type[CommentLike], target_column: str,
            user_id: str, target_id: str) -> tuple[bool, int]:
    target = getattr(model, target_column)
    result = db.execute(
        delete(model).where(model.user_id == user_id, target == target_id)
    )
    if result.rowcount:
        liked = False
    else:
        liked = True
        try:
            with db.begin_nested():
                db.add(model(user_id=user_id, **{target_column: target_id}))
        except IntegrityError:
            # A concurrent toggle by the same user inserted the row first.
            pass
    db.commit()

    likes_count = db.scalar(
        select(func.count()).select_from(model).where(target == target_id)
    ) or 0
    return liked, int(likes_count)


def toggle_post_like(db: Session, user_id: str, post_id: str) -> tuple[bool, int]:
    """Flip the user's like on a post and return ``(is_liked, likes_count)``."""
    if db.get(Post, post_id) is None:
        raise NotFoundError("Post not found")
    return _toggle(db, PostLike, "post_id", user_id, post_id)


def toggle_comment_like(db: Session, user_id: str, comment_id: str) -> tuple[bool, int]:
    """Flip the user's like on a comment and return ``(is_liked, likes_count)``."""
    if db.get(Comment, comment_id) is None:
        raise NotFoundError("Comment not found")
    return _toggle(db, CommentLike, "comment_id", user_id, comment_id)

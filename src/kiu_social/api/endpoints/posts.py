"""Post, comment and like endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from kiu_social.api.dependencies import CurrentUserDep, SessionDep, http_error
from kiu_social.core.settings import settings
from kiu_social.schemas.post import (
    CommentCreate,
    CommentResponse,
    LikeToggleResponse,
    PostCreate,
    PostResponse,
)
from kiu_social.services import likes, post_service
from kiu_social.services.errors import SocialError

router = APIRouter(prefix="/posts", tags=["posts"])

FEED_PAGE_SIZE = 10
COMMENT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@router.get("/feed", response_model=list[PostResponse])
async def get_feed(
    current_user: CurrentUserDep,
    db: SessionDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=FEED_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> list[PostResponse]:
    """Return public posts, newest first, with a preview of recent comments."""
    posts = post_service.list_feed(db, page, limit)
    return post_service.build_post_views(
        db, posts, current_user.id, preview_comments=settings.feed_comment_preview
    )


@router.get("/user/{user_id}", response_model=list[PostResponse])
async def get_user_posts(
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=FEED_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> list[PostResponse]:
    """Return one student's public posts, newest first."""
    try:
        posts = post_service.list_user_posts(db, user_id, page, limit)
    except SocialError as err:
        raise http_error(err) from err
    return post_service.build_post_views(
        db, posts, current_user.id, preview_comments=settings.feed_comment_preview
    )


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> PostResponse:
    """Publish a new post."""
    post = post_service.create_post(db, current_user, payload)
    return post_service.build_post_views(db, [post], current_user.id, preview_comments=0)[0]


@router.post("/{post_id}/like", response_model=LikeToggleResponse)
async def toggle_post_like(
    post_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> LikeToggleResponse:
    """Like the post, or remove an existing like."""
    try:
        is_liked, likes_count = likes.toggle_post_like(db, current_user.id, post_id)
    except SocialError as err:
        raise http_error(err) from err
    return LikeToggleResponse(is_liked=is_liked, likes_count=likes_count)


@router.post(
    "/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    post_id: str,
    payload: CommentCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommentResponse:
    """Comment on a post, or reply to one of its top-level comments."""
    try:
        comment = post_service.add_comment(db, current_user, post_id, payload)
    except SocialError as err:
        raise http_error(err) from err
    return post_service.build_comment_views(
        db, [comment], current_user.id, include_replies=False
    )[0]


@router.get("/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    post_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=COMMENT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> list[CommentResponse]:
    """Return top-level comments with their replies, newest first."""
    try:
        comments = post_service.list_comments(db, post_id, page, limit)
    except SocialError as err:
        raise http_error(err) from err
    return post_service.build_comment_views(db, comments, current_user.id)


@router.post("/comments/{comment_id}/like", response_model=LikeToggleResponse)
async def toggle_comment_like(
    comment_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> LikeToggleResponse:
    """Like the comment, or remove an existing like."""
    try:
        is_liked, likes_count = likes.toggle_comment_like(db, current_user.id, comment_id)
    except SocialError as err:
        raise http_error(err) from err
    return LikeToggleResponse(is_liked=is_liked, likes_count=likes_count)

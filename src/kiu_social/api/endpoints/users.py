"""Profile, search and social graph endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from kiu_social.api.dependencies import CurrentUserDep, SessionDep, http_error
from kiu_social.core.settings import settings
from kiu_social.schemas.common import StatusResponse, UserCard
from kiu_social.schemas.user import ProfileUpdateRequest, UserPrivate, UserPublic
from kiu_social.services import social_graph
from kiu_social.services.errors import SocialError
from kiu_social.services.user_service import get_active_user, search_users, update_profile

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile", response_model=UserPrivate)
async def get_profile(current_user: CurrentUserDep) -> UserPrivate:
    """Return the authenticated user's own profile."""
    return UserPrivate.model_validate(current_user)


@router.put("/profile", response_model=UserPrivate)
async def put_profile(
    payload: ProfileUpdateRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> UserPrivate:
    """Update editable profile fields; omitted fields keep their value."""
    user = update_profile(db, current_user, payload)
    return UserPrivate.model_validate(user)


@router.get("/search", response_model=list[UserCard])
async def search(
    current_user: CurrentUserDep,
    db: SessionDep,
    q: str = Query(default=""),
) -> list[UserCard]:
    """Find active students by name, username or major."""
    try:
        users = search_users(db, current_user, q, settings.search_result_limit)
    except SocialError as err:
        raise http_error(err) from err
    return [UserCard.model_validate(user) for user in users]


@router.get("/friends/list", response_model=list[UserCard])
async def list_friends(current_user: CurrentUserDep, db: SessionDep) -> list[UserCard]:
    """Return the authenticated user's friends."""
    friends = social_graph.list_friends(db, current_user.id)
    return [UserCard.model_validate(friend) for friend in friends]


@router.get("/{user_id}", response_model=UserPublic)
async def get_user(user_id: str, current_user: CurrentUserDep, db: SessionDep) -> UserPublic:
    """Return another student's public profile."""
    try:
        user = get_active_user(db, user_id)
    except SocialError as err:
        raise http_error(err) from err
    return UserPublic.model_validate(user)


@router.post("/{user_id}/friend", response_model=StatusResponse)
async def add_friend(user_id: str, current_user: CurrentUserDep, db: SessionDep) -> StatusResponse:
    """Befriend another student; the friendship is symmetric."""
    try:
        social_graph.add_friend(db, current_user, user_id)
    except SocialError as err:
        raise http_error(err) from err
    return StatusResponse(message="Friend added successfully")


@router.delete("/{user_id}/friend", response_model=StatusResponse)
async def remove_friend(
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> StatusResponse:
    """Remove a friendship in both directions."""
    try:
        social_graph.remove_friend(db, current_user, user_id)
    except SocialError as err:
        raise http_error(err) from err
    return StatusResponse(message="Friend removed successfully")


@router.post("/{user_id}/block", response_model=StatusResponse)
async def block_user(user_id: str, current_user: CurrentUserDep, db: SessionDep) -> StatusResponse:
    """Block another student, ending any friendship with them."""
    try:
        social_graph.block_user(db, current_user, user_id)
    except SocialError as err:
        raise http_error(err) from err
    return StatusResponse(message="User blocked successfully")

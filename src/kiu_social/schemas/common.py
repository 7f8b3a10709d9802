"""Shared Pydantic building blocks."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema that speaks camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserSummary(CamelModel):
    """Denormalized author/participant fields embedded in posts and messages."""

    id: str
    first_name: str
    last_name: str
    username: str
    profile_picture: str = ""


class UserCard(UserSummary):
    """Summary plus academic fields, used by friend lists and the feed."""

    major: str
    start_year: int


class StatusResponse(CamelModel):
    """Plain acknowledgement body."""

    message: str


class PresenceFields(CamelModel):
    """Presence attributes exposed on profiles."""

    is_online: bool
    last_seen: datetime | None = None

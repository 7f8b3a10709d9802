"""User-related Pydantic schemas."""

import re
from datetime import UTC, date, datetime

from pydantic import Field, field_validator

from kiu_social.core.settings import settings
from kiu_social.schemas.common import CamelModel, PresenceFields, UserCard

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"
PIN_PATTERN = r"^\d{4}$"


class RegisterRequest(CamelModel):
    """Schema for student registration."""

    email: str = Field(..., max_length=255, description="University email address")
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)
    pin: str = Field(..., pattern=PIN_PATTERN, description="Four-digit quick-access PIN")
    major: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date
    start_year: int

    @field_validator("email")
    @classmethod
    def validate_email_domain(cls, v: str) -> str:
        """Normalize the address and require the university domain."""
        email = v.strip().lower()
        if not re.match(settings.email_pattern, email):
            raise ValueError(f"Email must be a valid {settings.allowed_email_domain} address")
        return email

    @field_validator("first_name", "last_name", "major")
    @classmethod
    def strip_required_text(cls, v: str) -> str:
        """Trim surrounding whitespace and reject blank values."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be blank")
        return stripped

    @field_validator("start_year")
    @classmethod
    def validate_start_year(cls, v: int) -> int:
        """Keep the start year within the accepted enrollment window."""
        latest = datetime.now(UTC).year + settings.start_year_horizon
        if not settings.min_start_year <= v <= latest:
            raise ValueError(f"Start year must be between {settings.min_start_year} and {latest}")
        return v


class LoginRequest(CamelModel):
    """Schema for email/password login."""

    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class QuickLoginRequest(CamelModel):
    """PIN re-validation for an already authenticated session."""

    pin: str = Field(..., min_length=1, description="Four-digit quick-access PIN")


class ProfileUpdateRequest(CamelModel):
    """Schema for updating profile information; omitted fields stay unchanged."""

    first_name: str | None = Field(None, min_length=1, max_length=50)
    last_name: str | None = Field(None, min_length=1, max_length=50)
    bio: str | None = Field(None, max_length=500)
    profile_picture: str | None = Field(None, max_length=2048)


class UserPublic(UserCard, PresenceFields):
    """Profile view of another student."""

    bio: str = ""
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserPrivate(UserPublic):
    """Profile view of the authenticated student, including the email."""

    email: str


class AuthResponse(CamelModel):
    """Response returned after registration or login."""

    message: str
    token: str
    user: UserPrivate


class SessionUserResponse(CamelModel):
    """Response carrying only the authenticated user."""

    message: str | None = None
    user: UserPrivate

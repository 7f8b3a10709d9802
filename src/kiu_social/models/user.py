# src/kiu_social/models/user.py
"""SQLAlchemy model for student accounts."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from kiu_social.db.defaults import new_id, utcnow
from kiu_social.db.session import Base


class User(Base):
    """A registered student identity with profile and presence fields."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)

    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    # Quick-access PIN, hashed with the same policy as the password.
    pin_hash: Mapped[str] = mapped_column(Text, nullable=False)

    major: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    start_year: Mapped[int] = mapped_column(Integer, nullable=False)
    profile_picture: Mapped[str] = mapped_column(Text, nullable=False, default="")
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Account switch: inactive users cannot authenticate.
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Presence: true while at least one real-time connection is open.
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

# src/kiu_social/db/defaults.py
"""Column default factories shared by the ORM models."""

import uuid
from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def new_id() -> str:
    """Return a fresh opaque identifier for a row."""
    return str(uuid.uuid4())

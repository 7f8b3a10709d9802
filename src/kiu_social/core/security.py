"""Credential hashing and JWT helpers."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

from kiu_social.core.settings import settings

# Passwords and quick-access PINs share one hashing policy.
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class InvalidTokenError(ValueError):
    """Raised when a bearer token cannot be decoded or lacks a subject."""


def hash_secret(secret: str) -> str:
    """Return a salted hash suitable for storing a password or PIN."""
    return pwd_context.hash(secret)


def verify_secret(secret: str, hashed: str) -> bool:
    """Check a plain password or PIN against its stored hash."""
    return pwd_context.verify(secret, hashed)


def create_access_token(subject: str) -> str:
    """Create a signed JWT whose subject is the user id."""
    to_encode: dict[str, object] = {"sub": subject}
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> str:
    """Return the user id carried by a token.

    Raises:
        InvalidTokenError: If the signature, expiry or subject claim is invalid.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise InvalidTokenError("Invalid token") from err

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise InvalidTokenError("Token has no subject")
    return subject

"""Exceptions raised by the service layer.

Routers translate these into HTTP responses; the real-time gateway turns them
into ``message_error`` events for the originating connection.
"""


class SocialError(RuntimeError):
    """Base exception for rejected social operations."""


class NotFoundError(SocialError):
    """Raised when a referenced user, post, comment or message does not exist."""


class ConflictError(SocialError):
    """Raised when an operation collides with existing state (duplicates, already friends)."""


class InvalidRequestError(SocialError):
    """Raised when input is well-formed but not acceptable (self-friendship, deep replies)."""


class PolicyError(SocialError):
    """Raised when the relationship between two users forbids the action."""

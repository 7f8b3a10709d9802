"""KIU Social: a university social network backend."""

__version__ = "1.0.0"

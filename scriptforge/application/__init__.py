"""Application services."""

from .sessions import SessionService

__all__ = [
    "SessionService",
]

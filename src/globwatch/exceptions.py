"""Custom exceptions for the globwatch package."""

from typing import Optional


class GlobWatchError(Exception):
    """Base exception for all globwatch errors."""
    pass


class PatternSyntaxError(GlobWatchError, ValueError):
    """A glob pattern is not well formed."""

    def __init__(self, pattern: str, message: str, position: Optional[int] = None):
        self.pattern = pattern
        self.message = message
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Cannot parse pattern {pattern!r}{where}: {message}")


class InvalidChangeTypeError(GlobWatchError):
    """The watch primitive reported a change kind other than created, changed or deleted."""
    pass


class WatchError(GlobWatchError):
    """A directory watch could not be installed."""
    pass

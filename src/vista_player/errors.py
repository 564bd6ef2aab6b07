"""Exception types for Vista Player."""

from __future__ import annotations

from typing import Optional


class VistaPlayerError(Exception):
    """Base class for errors raised by the player engine."""


class ParseError(VistaPlayerError):
    """A subtitle block or timestamp could not be parsed."""

    def __init__(self, reason: str, *, block_index: Optional[int] = None) -> None:
        self.reason = reason
        self.block_index = block_index
        if block_index is None:
            super().__init__(reason)
        else:
            super().__init__(f"block {block_index}: {reason}")


class PlaybackError(VistaPlayerError):
    """The media backend failed to load or decode the active item."""

    def __init__(self, ref: str, reason: str) -> None:
        self.ref = ref
        self.reason = reason
        super().__init__(f"{reason} ({ref})")


class PersistenceError(VistaPlayerError):
    """A key-value store read or write failed."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"{key}: {message}")


class InvalidPathError(VistaPlayerError, ValueError):
    """A candidate media path was rejected before reaching the playlist."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path!r}")

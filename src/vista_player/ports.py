"""Contracts for the collaborators the engine drives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Protocol, Sequence

EventKind = Literal[
    "load_start",
    "loaded_metadata",
    "can_play",
    "time_update",
    "ended",
    "error",
]


@dataclass(frozen=True)
class PlayerEvent:
    """A notification from the media backend, tagged with the ref it belongs to."""

    kind: EventKind
    ref: Optional[str] = None
    value: Optional[float] = None
    reason: Optional[str] = None


class MediaBackend(Protocol):
    """The playback primitive: decodes, renders and reports on one item."""

    def load(self, ref: str) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def stop(self) -> None: ...

    def seek(self, seconds: float) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def set_muted(self, muted: bool) -> None: ...

    def set_playback_rate(self, rate: float) -> bool: ...


class FileDialogs(Protocol):
    """Host-provided native file selection."""

    def open_file_dialog(self, allowed_extensions: Sequence[str]) -> Optional[str]: ...

    def save_file_dialog(self, suggested_name: str, image_data: bytes) -> bool: ...

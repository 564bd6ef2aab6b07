"""Helpers for media references, file names and paths."""

from __future__ import annotations

from datetime import date
import math
from pathlib import Path, PureWindowsPath
import re
from typing import Optional
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from vista_player.errors import InvalidPathError

VIDEO_EXTENSIONS = ("mkv", "avi", "mp4", "webm", "mov", "flv", "wmv", "m4v")
SUBTITLE_EXTENSIONS = ("srt",)

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_DRIVE_RE = re.compile(r"^[A-Za-z]:[\\/]")
_SUSPICIOUS_PATTERNS = (
    re.compile(r"\.\."),
    re.compile(r'[<>"|?*]'),
)
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def get_file_name(path: str) -> str:
    """Return the last path segment, percent-decoded."""
    name = re.split(r"[/\\]", path)[-1]
    return unquote(name) if name else path


def get_file_extension(path: str) -> str:
    """Return the lowercase final dot-delimited segment, or an empty string."""
    if "." not in path:
        return ""
    return path.rsplit(".", 1)[-1].lower()


def is_video_file(path: str) -> bool:
    return get_file_extension(path) in VIDEO_EXTENSIONS


def is_subtitle_file(path: str) -> bool:
    return get_file_extension(path) in SUBTITLE_EXTENSIONS


def is_valid_file_path(path: str) -> bool:
    """Reject empty paths, parent traversal and characters Windows forbids."""
    if not path or not isinstance(path, str):
        return False
    return not any(pattern.search(path) for pattern in _SUSPICIOUS_PATTERNS)


def validate_media_path(path: str) -> str:
    """Return ``path`` unchanged or raise :class:`InvalidPathError`."""
    if not is_valid_file_path(path):
        raise InvalidPathError(str(path), "suspicious path")
    if not is_video_file(path):
        raise InvalidPathError(path, "not a recognized video file")
    return path


def path_to_media_ref(path: str | Path) -> str:
    """Turn a local path into a ``file:`` URI; URIs are returned untouched."""
    text = str(path)
    if _SCHEME_RE.match(text):
        return text
    if _DRIVE_RE.match(text):
        return PureWindowsPath(text).as_uri()
    return Path(text).absolute().as_uri()


def media_ref_to_path(ref: str) -> Optional[Path]:
    """Return the local path behind a ``file:`` ref, or None for other schemes."""
    if not _SCHEME_RE.match(ref):
        return Path(ref)
    parsed = urlparse(ref)
    if parsed.scheme != "file":
        return None
    return Path(url2pathname(parsed.path))


def format_file_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "0 Bytes"
    exponent = 0
    while exponent < len(_SIZE_UNITS) - 1 and size_bytes >= 1024 ** (exponent + 1):
        exponent += 1
    value = round(size_bytes / (1024**exponent), 2)
    text = str(int(value)) if float(value).is_integer() else f"{value:g}"
    return f"{text} {_SIZE_UNITS[exponent]}"


def format_clock(seconds: float) -> str:
    """Format a play-head time as ``M:SS`` for display."""
    if not math.isfinite(seconds):
        return "0:00"
    seconds = max(0.0, seconds)
    minutes = int(seconds // 60)
    return f"{minutes}:{int(seconds % 60):02d}"


def _format_time_for_filename(seconds: float) -> str:
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}-{minutes:02d}-{secs:02d}"


def generate_screenshot_name(
    ref: str, current_time: float, today: Optional[date] = None
) -> str:
    """Build ``<video>_<HH-MM-SS>_<YYYY-MM-DD>.png`` for a frame capture."""
    stem = re.sub(r"\.[^/.]+$", "", get_file_name(ref)) or "video"
    stamp = (today or date.today()).isoformat()
    return f"{stem}_{_format_time_for_filename(current_time)}_{stamp}.png"

"""Media metadata helpers for playlist display."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Optional

from vista_player.media_paths import get_file_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaMeta:
    title: Optional[str] = None
    duration_seconds: Optional[float] = None


_MEDIA_META_CACHE: dict[Path, MediaMeta] = {}

_TITLE_KEYS = ("\xa9nam", "title", "TITLE", "TIT2")


def _extract_text(value: object | None) -> str | None:
    if value is None:
        return None
    if hasattr(value, "text"):
        value = getattr(value, "text", value)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    if isinstance(value, bytes):
        text = value.decode("utf-8", errors="replace")
    else:
        text = str(value)
    return text.strip() or None


def _read_title(tags: object | None) -> str | None:
    getter = getattr(tags, "get", None)
    if getter is None:
        return None
    for key in _TITLE_KEYS:
        try:
            text = _extract_text(getter(key))
        except Exception:
            continue
        if text:
            return text
    return None


def read_media_meta(path: Path) -> MediaMeta:
    """Best-effort title and duration extraction; failures yield empty metadata."""
    try:
        from mutagen import File as MutagenFile
    except ImportError:
        logger.debug("mutagen unavailable, skipping metadata for %s", path)
        return MediaMeta()
    try:
        media = MutagenFile(path)
    except Exception:
        logger.debug("mutagen could not read %s", path, exc_info=True)
        return MediaMeta()
    if not media:
        return MediaMeta()
    length = getattr(getattr(media, "info", None), "length", None)
    duration = float(length) if isinstance(length, (int, float)) and length > 0 else None
    return MediaMeta(title=_read_title(getattr(media, "tags", None)), duration_seconds=duration)


def get_media_meta(path: Path) -> MediaMeta:
    cached = _MEDIA_META_CACHE.get(path)
    if cached is not None:
        return cached
    meta = read_media_meta(path)
    _MEDIA_META_CACHE[path] = meta
    return meta


def format_display_title(ref: str, meta: MediaMeta | None = None) -> str:
    if meta and meta.title:
        return meta.title
    return get_file_name(ref)

"""Playlist import and export (M3U/M3U8)."""

from __future__ import annotations

import logging
from pathlib import Path
import re
from typing import Iterable, Literal

from vista_player.media_paths import (
    is_valid_file_path,
    is_video_file,
    media_ref_to_path,
    path_to_media_ref,
)

logger = logging.getLogger(__name__)

_URI_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def save_m3u8(
    refs: Iterable[str],
    dest: Path,
    mode: Literal["relative", "absolute"] = "relative",
) -> None:
    """Save media refs as a UTF-8 M3U8 playlist."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    lines = ["#EXTM3U"]
    for ref in refs:
        path = media_ref_to_path(ref)
        if path is None:
            lines.append(ref)
            continue
        if mode == "absolute":
            lines.append(str(path))
            continue
        try:
            lines.append(str(path.relative_to(dest.parent)))
        except ValueError:
            lines.append(str(path))
    dest.write_text("\n".join(lines) + "\n", encoding="utf-8")


def load_m3u_any(path: Path) -> list[str]:
    """Load an M3U/M3U8 playlist as media refs, skipping unusable entries."""
    refs: list[str] = []
    base = path.parent
    try:
        lines = path.read_text(encoding="utf-8-sig").splitlines()
    except FileNotFoundError:
        logger.warning("Playlist file %s not found", path)
        return []
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read playlist %s: %s", path, exc)
        return []
    for line in lines:
        entry = line.strip()
        if not entry or entry.startswith("#"):
            continue
        if _URI_RE.match(entry):
            refs.append(entry)
            continue
        if not is_valid_file_path(entry) or not is_video_file(entry):
            logger.info("Skipping playlist entry %s", entry)
            continue
        item = Path(entry)
        if not item.is_absolute():
            item = (base / item).resolve()
        if not item.is_file():
            logger.info("Skipping missing playlist entry %s", item)
            continue
        refs.append(path_to_media_ref(item))
    return refs

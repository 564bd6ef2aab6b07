"""SubRip subtitle parsing and cue lookup."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import re
from typing import Iterable, Optional, Sequence

from vista_player.errors import ParseError

logger = logging.getLogger(__name__)

_BLOCK_SPLIT_RE = re.compile(r"\n\s*\n")
_ARROW_RE = re.compile(r"\s*-->\s*")
_TIMESTAMP_RE = re.compile(r"^(\d+):(\d{1,2}):(\d{1,2})(?:[,.](\d{1,3}))?$")


@dataclass(frozen=True)
class Cue:
    """A time-bounded subtitle line; both bounds are inclusive."""

    id: str
    start_time: float
    end_time: float
    text: str

    def contains(self, time: float) -> bool:
        return self.start_time <= time <= self.end_time


def parse_timestamp(field: str) -> float:
    """Convert ``HH:MM:SS,mmm`` (or ``HH:MM:SS.mmm``) to seconds."""
    match = _TIMESTAMP_RE.match(field.strip())
    if match is None:
        raise ParseError(f"malformed timestamp {field!r}")
    hours, minutes, seconds, millis = match.groups()
    total = int(hours) * 3600 + int(minutes) * 60 + int(seconds)
    return total + (int(millis) / 1000 if millis else 0.0)


def format_timestamp(seconds: float) -> str:
    """Format seconds as a zero-padded ``HH:MM:SS,mmm`` string."""
    total_ms = max(0, int(round(seconds * 1000)))
    total_seconds, millis = divmod(total_ms, 1000)
    minutes, secs = divmod(total_seconds, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def _parse_block(block: str, block_index: int) -> Cue:
    lines = block.split("\n")
    if len(lines) < 3:
        raise ParseError(
            "expected index, timing and text lines", block_index=block_index
        )
    cue_id = lines[0].strip()
    parts = _ARROW_RE.split(lines[1].strip(), maxsplit=1)
    if len(parts) != 2 or not parts[1]:
        raise ParseError("missing timing line", block_index=block_index)
    start_field = parts[0]
    # Anything after the end stamp is positioning metadata.
    end_field = parts[1].split()[0]
    try:
        start_time = parse_timestamp(start_field)
        end_time = parse_timestamp(end_field)
    except ParseError as exc:
        raise ParseError(exc.reason, block_index=block_index) from exc
    if start_time >= end_time:
        raise ParseError("cue ends before it starts", block_index=block_index)
    text = "\n".join(lines[2:]).strip()
    return Cue(id=cue_id, start_time=start_time, end_time=end_time, text=text)


def parse_srt(data: str) -> list[Cue]:
    """Parse SubRip text into cues, skipping malformed blocks.

    Never raises: bad input yields an empty or partial list. Cues keep the
    order of their blocks in the source.
    """
    if not isinstance(data, str) or not data.strip():
        logger.debug("No subtitle data to parse")
        return []
    normalized = data.replace("\r\n", "\n").replace("\r", "\n").lstrip("\ufeff")
    cues: list[Cue] = []
    blocks = _BLOCK_SPLIT_RE.split(normalized.strip())
    for index, block in enumerate(blocks, start=1):
        try:
            cues.append(_parse_block(block, index))
        except ParseError as exc:
            logger.warning("Skipping subtitle %s", exc)
    return cues


def resolve_active_cue(cues: Sequence[Cue], time: float) -> Optional[Cue]:
    """Return the first cue covering ``time``, or None in a gap."""
    for cue in cues:
        if cue.start_time <= time <= cue.end_time:
            return cue
    return None


def format_srt(cues: Iterable[Cue]) -> str:
    """Render cues back to SubRip, renumbering blocks from 1."""
    blocks = [
        f"{number}\n{format_timestamp(cue.start_time)} --> "
        f"{format_timestamp(cue.end_time)}\n{cue.text}"
        for number, cue in enumerate(cues, start=1)
    ]
    if not blocks:
        return ""
    return "\n\n".join(blocks) + "\n"


def read_srt_file(path: Path) -> list[Cue]:
    """Load and parse an ``.srt`` file; unreadable files yield no cues."""
    try:
        text = path.read_text(encoding="utf-8-sig", errors="replace")
    except OSError:
        logger.exception("Failed to read subtitles from %s", path)
        return []
    cues = parse_srt(text)
    logger.info("Loaded %d subtitle cues from %s", len(cues), path)
    return cues

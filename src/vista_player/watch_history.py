"""Per-item watch progress that survives restarts."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import time
from typing import Any, Callable, Optional

from vista_player.store import WATCH_HISTORY_KEY, KeyValueStore, load_state, save_state

logger = logging.getLogger(__name__)

# An item watched this far counts as finished.
COMPLETION_THRESHOLD = 0.95


@dataclass(frozen=True)
class WatchRecord:
    """Last known position of one media item.

    ``position`` is 0 whenever ``completed`` is set, so resuming a finished
    item starts from the top.
    """

    position: float
    duration: float
    last_watched: int
    completed: bool

    def to_json(self) -> dict[str, Any]:
        return {
            "position": self.position,
            "duration": self.duration,
            "lastWatched": self.last_watched,
            "completed": self.completed,
        }

    @classmethod
    def from_json(cls, raw: Any) -> Optional["WatchRecord"]:
        if not isinstance(raw, dict):
            return None
        position = raw.get("position")
        duration = raw.get("duration")
        last_watched = raw.get("lastWatched", 0)
        completed = raw.get("completed", False)
        for value in (position, duration, last_watched):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None
            if not math.isfinite(value):
                return None
        if not isinstance(completed, bool):
            return None
        return cls(
            position=0.0 if completed else float(position),
            duration=float(duration),
            last_watched=int(last_watched),
            completed=completed,
        )


def _now_ms() -> int:
    return int(time.time() * 1000)


class WatchHistory:
    """Ledger of watch records keyed by media ref.

    Every write persists the whole map under one key; readers see the last
    write for a ref.
    """

    def __init__(
        self, store: KeyValueStore, *, clock: Callable[[], int] = _now_ms
    ) -> None:
        self._store = store
        self._clock = clock
        self._records: dict[str, WatchRecord] = self._load()

    def _load(self) -> dict[str, WatchRecord]:
        raw = load_state(self._store, WATCH_HISTORY_KEY, {})
        if not isinstance(raw, dict):
            logger.warning("Ignoring malformed watch history")
            return {}
        records: dict[str, WatchRecord] = {}
        for ref, entry in raw.items():
            record = WatchRecord.from_json(entry)
            if record is None:
                logger.warning("Skipping malformed watch record for %s", ref)
                continue
            records[ref] = record
        return records

    def _persist(self) -> None:
        save_state(
            self._store,
            WATCH_HISTORY_KEY,
            {ref: record.to_json() for ref, record in self._records.items()},
        )

    def record_position(
        self, ref: str, position: float, duration: float
    ) -> Optional[WatchRecord]:
        """Store the play-head for ``ref``; unusable readings are dropped."""
        if not (math.isfinite(position) and math.isfinite(duration)) or duration < 0:
            logger.warning("Ignoring position %r/%r for %s", position, duration, ref)
            return None
        position = max(0.0, float(position))
        completed = position >= duration * COMPLETION_THRESHOLD
        record = WatchRecord(
            position=0.0 if completed else position,
            duration=duration,
            last_watched=self._clock(),
            completed=completed,
        )
        self._records[ref] = record
        self._persist()
        logger.debug(
            "Recorded %s at %.2f/%.2f completed=%s", ref, position, duration, completed
        )
        return record

    def get_history(self, ref: str) -> Optional[WatchRecord]:
        return self._records.get(ref)

    def is_completed(self, ref: str) -> bool:
        record = self._records.get(ref)
        return record is not None and record.completed

    def get_progress_percent(self, ref: str) -> float:
        record = self._records.get(ref)
        if record is None or record.duration <= 0:
            return 0.0
        percent = record.position / record.duration * 100
        return max(0.0, min(100.0, percent))

    def all_history(self) -> list[tuple[str, WatchRecord]]:
        """Return every record, most recently watched first."""
        return sorted(
            self._records.items(), key=lambda item: item[1].last_watched, reverse=True
        )

    def clear(self, ref: str) -> None:
        if self._records.pop(ref, None) is not None:
            self._persist()

    def clear_all(self) -> None:
        self._records.clear()
        self._persist()

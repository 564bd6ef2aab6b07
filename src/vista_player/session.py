"""Playback session controller for the active media item.

The session is a plain state machine driven by discrete notifications from
the media backend (metadata, time updates, end, error) and by user actions.
It never blocks: waiting for metadata is simply the ``LOADING`` state.

    IDLE -> LOADING -> READY -> ENDED -> LOADING (next item) / IDLE (stop)
                 \\        \\
                  +--------+--> ERROR (terminal until the next load_item)

Notifications may be tagged with the ref they belong to; anything tagged
with a ref other than the active one is ignored, so late callbacks from a
previous item cannot touch the current one.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
import logging
import math
from pathlib import Path
import time
from typing import Callable, Optional

from vista_player.errors import PlaybackError
from vista_player.playlist import PlaylistNavigator
from vista_player.ports import MediaBackend, PlayerEvent
from vista_player.preferences import (
    PlayerPreferences,
    clamp_volume,
    load_preferences,
    save_preferences,
)
from vista_player.store import KeyValueStore, MemoryStore
from vista_player.subtitles import (
    Cue,
    format_srt,
    parse_srt,
    read_srt_file,
    resolve_active_cue,
)
from vista_player.watch_history import WatchHistory

logger = logging.getLogger(__name__)

# Minimum A/B segment length in seconds.
LOOP_EPSILON = 0.05
DEFAULT_SNAPSHOT_INTERVAL = 5.0


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ENDED = "ended"
    ERROR = "error"


@dataclass
class ABLoop:
    """Bounded replay segment; active only once B lies past A."""

    point_a: Optional[float] = None
    point_b: Optional[float] = None

    def is_active(self) -> bool:
        return (
            self.point_a is not None
            and self.point_b is not None
            and self.point_b > self.point_a + LOOP_EPSILON
        )

    def set_a(self, time: float) -> None:
        self.point_a = time
        if self.point_b is not None and time >= self.point_b:
            self.point_b = None

    def set_b(self, time: float) -> bool:
        """Set B, or start over with ``time`` as A when it precedes A."""
        if self.point_a is None or time < self.point_a:
            self.point_a = time
            self.point_b = None
            return False
        self.point_b = time
        return True

    def rewind_target(self, time: float) -> Optional[float]:
        """Return A when ``time`` has reached B of an active loop."""
        point_a, point_b = self.point_a, self.point_b
        if point_a is None or point_b is None or not self.is_active():
            return None
        return point_a if time >= point_b else None

    def reset(self) -> None:
        self.point_a = None
        self.point_b = None


class PlaybackSession:
    """Drives one media item at a time through the backend."""

    def __init__(
        self,
        backend: MediaBackend,
        history: WatchHistory,
        navigator: Optional[PlaylistNavigator] = None,
        *,
        store: Optional[KeyValueStore] = None,
        snapshot_interval: float = DEFAULT_SNAPSHOT_INTERVAL,
        resume_playback: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend = backend
        self.history = history
        self.navigator = navigator
        self._store: KeyValueStore = store if store is not None else MemoryStore()
        self.snapshot_interval = snapshot_interval
        self.resume_playback = resume_playback
        self._clock = clock
        self.preferences: PlayerPreferences = load_preferences(self._store)

        self.state = SessionState.IDLE
        self.ref: Optional[str] = None
        self.duration: Optional[float] = None
        self.current_time = 0.0
        self.is_playing = False
        self.error: Optional[PlaybackError] = None
        self.cues: list[Cue] = []
        self.active_cue: Optional[Cue] = None
        self.loop = ABLoop()
        self._autoplay = False
        self._snapshot_elapsed = 0.0
        self._last_tick: Optional[float] = None

    # -- item lifecycle -------------------------------------------------

    def load_item(self, ref: str, *, autoplay: bool = False) -> None:
        """Make ``ref`` the active item, discarding all per-item state."""
        self._flush_snapshot()
        self.ref = ref
        self._reset_item_state()
        self.state = SessionState.LOADING
        self._autoplay = autoplay
        logger.info("Loading %s", ref)
        self._apply_preferences()
        self.backend.load(ref)

    def stop(self) -> None:
        if self.state is SessionState.IDLE:
            return
        self._flush_snapshot()
        self.backend.stop()
        logger.info("Stopped %s", self.ref)
        self.ref = None
        self._reset_item_state()
        self.state = SessionState.IDLE

    def _reset_item_state(self) -> None:
        self.duration = None
        self.current_time = 0.0
        self.is_playing = False
        self.error = None
        self.cues = []
        self.active_cue = None
        self.loop = ABLoop()
        self._autoplay = False
        self._snapshot_elapsed = 0.0
        self._last_tick = None

    def _is_stale(self, ref: Optional[str], kind: str) -> bool:
        if ref is None or ref == self.ref:
            return False
        logger.debug("Dropping stale %s for %s (active %s)", kind, ref, self.ref)
        return True

    # -- backend notifications ------------------------------------------

    def on_load_start(self, ref: Optional[str] = None) -> None:
        if self._is_stale(ref, "load_start"):
            return
        logger.debug("Load started for %s", self.ref)

    def on_metadata_ready(self, duration: float, ref: Optional[str] = None) -> None:
        if self._is_stale(ref, "loaded_metadata"):
            return
        if self.state is not SessionState.LOADING:
            logger.debug("Ignoring metadata in state %s", self.state.value)
            return
        if not math.isfinite(duration) or duration < 0:
            duration = 0.0
        self.duration = float(duration)
        if self.resume_playback and self.ref is not None:
            record = self.history.get_history(self.ref)
            if record is not None and not record.completed and record.position > 0:
                logger.info("Resuming %s at %.1fs", self.ref, record.position)
                self.backend.seek(record.position)
                self.current_time = record.position
        self.state = SessionState.READY
        self.active_cue = resolve_active_cue(self.cues, self.current_time)
        if self._autoplay:
            self._autoplay = False
            self.play()

    def on_can_play(self, ref: Optional[str] = None) -> None:
        # Only metadata moves LOADING to READY.
        if self._is_stale(ref, "can_play"):
            return
        logger.debug("Playback started for %s", self.ref)

    def on_time_update(self, time: float, ref: Optional[str] = None) -> float:
        """Track the play-head and return the effective time for this tick.

        Reaching B of an active loop seeks back to A; the tick is then
        treated as having reported A.
        """
        if self._is_stale(ref, "time_update"):
            return time
        if self.state is not SessionState.READY:
            return time
        effective = time
        rewind = self.loop.rewind_target(time)
        if rewind is not None:
            effective = rewind
            self.backend.seek(rewind)
        self.current_time = effective
        self.active_cue = resolve_active_cue(self.cues, effective)
        if self.is_playing:
            self._tick_snapshot()
        return effective

    def on_ended(self, ref: Optional[str] = None) -> Optional[int]:
        """Mark the item finished and return the playlist index to play next."""
        if self._is_stale(ref, "ended"):
            return None
        if self.state is not SessionState.READY or self.ref is None:
            logger.debug("Ignoring ended in state %s", self.state.value)
            return None
        final = self.duration if self.duration is not None else self.current_time
        self.state = SessionState.ENDED
        self.is_playing = False
        self.current_time = final
        self._last_tick = None
        self._snapshot_elapsed = 0.0
        # Natural end is completion regardless of the threshold.
        self.history.record_position(self.ref, final, final)
        logger.info("Finished %s", self.ref)
        if self.navigator is None:
            return None
        return self.navigator.on_item_ended()

    def on_error(self, reason: Optional[str], ref: Optional[str] = None) -> None:
        if self._is_stale(ref, "error"):
            return
        if self.state not in (SessionState.LOADING, SessionState.READY):
            logger.debug("Ignoring error in state %s", self.state.value)
            return
        self.state = SessionState.ERROR
        self.is_playing = False
        self._autoplay = False
        self._last_tick = None
        self.error = PlaybackError(self.ref or "", reason or "Playback failed")
        logger.error("Playback failed for %s: %s", self.ref, self.error.reason)

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def dispatch(self, event: PlayerEvent) -> Optional[int]:
        """Route a backend event to its handler.

        Returns the next playlist index for ``ended`` events, else None.
        """
        if event.kind == "load_start":
            self.on_load_start(event.ref)
        elif event.kind == "loaded_metadata":
            if event.value is not None:
                self.on_metadata_ready(event.value, event.ref)
        elif event.kind == "can_play":
            self.on_can_play(event.ref)
        elif event.kind == "time_update":
            if event.value is not None:
                self.on_time_update(event.value, event.ref)
        elif event.kind == "ended":
            return self.on_ended(event.ref)
        elif event.kind == "error":
            self.on_error(event.reason, event.ref)
        return None

    # -- transport ------------------------------------------------------

    def play(self) -> bool:
        if self.state is SessionState.LOADING:
            self._autoplay = True
            return False
        if self.state is SessionState.ENDED:
            self.backend.seek(0.0)
            self.current_time = 0.0
            self.state = SessionState.READY
        if self.state is not SessionState.READY:
            return False
        self.backend.play()
        self.is_playing = True
        self._last_tick = self._clock()
        return True

    def pause(self) -> None:
        if not self.is_playing:
            return
        self.backend.pause()
        self.is_playing = False
        self._last_tick = None
        self._flush_snapshot()

    def toggle_play(self) -> bool:
        if self.is_playing:
            self.pause()
            return False
        return self.play()

    def seek(self, seconds: float) -> Optional[float]:
        if self.state not in (SessionState.READY, SessionState.ENDED):
            return None
        target = max(0.0, seconds)
        if self.duration is not None:
            target = min(target, self.duration)
        self.backend.seek(target)
        self.current_time = target
        if self.state is SessionState.ENDED and target < (self.duration or 0.0):
            self.state = SessionState.READY
        self.active_cue = resolve_active_cue(self.cues, target)
        return target

    def seek_relative(self, delta: float) -> Optional[float]:
        return self.seek(self.current_time + delta)

    # -- A/B loop -------------------------------------------------------

    def set_loop_a(self, time: Optional[float] = None) -> bool:
        if self.duration is None:
            return False
        self.loop.set_a(self.current_time if time is None else time)
        return True

    def set_loop_b(self, time: Optional[float] = None) -> bool:
        if self.duration is None:
            return False
        self.loop.set_b(self.current_time if time is None else time)
        return True

    def reset_loop(self) -> None:
        self.loop.reset()

    # -- subtitles ------------------------------------------------------

    def load_subtitles(self, text: str) -> int:
        return self._replace_cues(parse_srt(text), "upload")

    def load_subtitle_file(self, path: Path) -> int:
        return self._replace_cues(read_srt_file(path), str(path))

    def _replace_cues(self, cues: list[Cue], source: str) -> int:
        if not cues:
            logger.warning(
                "No subtitles parsed from %s; keeping %d existing cues",
                source,
                len(self.cues),
            )
            return 0
        self.cues = cues
        self.active_cue = resolve_active_cue(cues, self.current_time)
        return len(cues)

    def export_subtitles(self) -> str:
        return format_srt(self.cues)

    # -- preferences ----------------------------------------------------

    def set_volume(self, volume: float) -> float:
        volume = clamp_volume(volume)
        self.preferences = replace(self.preferences, volume=volume, muted=volume == 0)
        self.backend.set_volume(volume)
        self.backend.set_muted(self.preferences.muted)
        save_preferences(self._store, self.preferences)
        return volume

    def toggle_mute(self) -> bool:
        self.preferences = replace(self.preferences, muted=not self.preferences.muted)
        self.backend.set_muted(self.preferences.muted)
        save_preferences(self._store, self.preferences)
        return self.preferences.muted

    def set_playback_rate(self, rate: float) -> None:
        if not math.isfinite(rate) or rate <= 0:
            raise ValueError(f"playback rate must be positive, got {rate}")
        self.preferences = replace(self.preferences, playback_rate=float(rate))
        self.backend.set_playback_rate(float(rate))
        save_preferences(self._store, self.preferences)

    def _apply_preferences(self) -> None:
        self.backend.set_volume(self.preferences.volume)
        self.backend.set_muted(self.preferences.muted)
        self.backend.set_playback_rate(self.preferences.playback_rate)

    # -- watch snapshots ------------------------------------------------

    def _tick_snapshot(self) -> None:
        now = self._clock()
        if self._last_tick is not None:
            self._snapshot_elapsed += max(0.0, now - self._last_tick)
        self._last_tick = now
        if self._snapshot_elapsed >= self.snapshot_interval:
            self._snapshot_elapsed = 0.0
            self._record_snapshot()

    def _flush_snapshot(self) -> None:
        if self.state is SessionState.READY and self.current_time > 0:
            self._snapshot_elapsed = 0.0
            self._record_snapshot()

    def _record_snapshot(self) -> None:
        if self.ref is None or not self.duration:
            return
        self.history.record_position(self.ref, self.current_time, self.duration)

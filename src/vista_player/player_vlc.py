"""VLC-backed media playback primitive."""

from __future__ import annotations

import logging
import queue
from typing import Any, Optional, cast

from vista_player.ports import EventKind, PlayerEvent

logger = logging.getLogger(__name__)

vlc: Any | None = None
_VLC_IMPORT_ERROR: Optional[Exception] = None

# VLC media states reported to the session, by State member name.
_STATE_EVENTS: tuple[tuple[str, EventKind], ...] = (
    ("Opening", "load_start"),
    ("Playing", "can_play"),
    ("Ended", "ended"),
    ("Error", "error"),
)


def _load_vlc() -> None:
    global vlc
    global _VLC_IMPORT_ERROR
    if vlc is not None or _VLC_IMPORT_ERROR is not None:
        return
    try:
        import vlc as vlc_module  # type: ignore
    except Exception as exc:  # pragma: no cover - platform-dependent import
        vlc = None
        _VLC_IMPORT_ERROR = exc
    else:
        vlc = cast(Any, vlc_module)
        _VLC_IMPORT_ERROR = None


class VlcPlayer:
    """Thin wrapper around python-vlc's MediaPlayer.

    VLC fires its callbacks on its own threads, so they only enqueue
    events; :meth:`poll_events` hands them to the caller's thread together
    with metadata and play-head readings taken there.
    """

    def __init__(self) -> None:
        _load_vlc()
        if vlc is None:
            raise RuntimeError(
                "VLC backend is unavailable. Install VLC and the python-vlc package."
            ) from _VLC_IMPORT_ERROR
        self._instance = cast(Any, vlc).Instance()
        self._player = self._instance.media_player_new()
        self._media: Any = None
        self._current_media: Optional[str] = None
        self._duration_reported = False
        self._pending_seek_ms: Optional[int] = None
        self._events: queue.Queue[PlayerEvent] = queue.Queue()

    def _attach_media_events(self, media: Any, ref: str) -> None:
        """Listen to state changes of one media, tagged with its own ref.

        Callbacks still pending for a previous media keep that media's ref,
        so the session can tell them apart from the current item.
        """
        event_types = getattr(cast(Any, vlc), "EventType", None)
        event_type = getattr(event_types, "MediaStateChanged", None)
        if event_type is None:
            return
        try:
            media.event_manager().event_attach(
                event_type, self._handle_media_state, ref
            )
        except Exception:
            logger.warning("Could not attach VLC events for %s", ref, exc_info=True)

    def _handle_media_state(self, event: object, ref: str) -> None:
        new_state = getattr(getattr(event, "u", None), "new_state", None)
        states = getattr(cast(Any, vlc), "State", None)
        if new_state is None or states is None:
            return
        for name, kind in _STATE_EVENTS:
            member = getattr(states, name, None)
            if member is not None and new_state == member:
                reason = "VLC could not play this media" if kind == "error" else None
                self._events.put(PlayerEvent(kind, ref=ref, reason=reason))
                return

    @property
    def current_media(self) -> Optional[str]:
        return self._current_media

    def load(self, ref: str) -> None:
        """Load media and start parsing it so its duration becomes known."""
        media = self._instance.media_new(ref)
        self._attach_media_events(media, ref)
        self._player.set_media(media)
        self._media = media
        self._current_media = ref
        self._duration_reported = False
        self._pending_seek_ms = None
        parse = getattr(media, "parse_with_options", None)
        parse_flags = getattr(cast(Any, vlc), "MediaParseFlag", None)
        if callable(parse) and parse_flags is not None:
            try:
                parse(parse_flags.local, 0)
            except Exception:
                logger.warning("VLC could not parse %s", ref, exc_info=True)

    def play(self) -> None:
        self._player.play()

    def pause(self) -> None:
        self._player.set_pause(1)

    def stop(self) -> None:
        self._player.stop()
        self._pending_seek_ms = None

    def seek(self, seconds: float) -> None:
        target = max(0, int(round(seconds * 1000)))
        # VLC ignores set_time until the media is open.
        if self.get_state() not in ("playing", "paused"):
            self._pending_seek_ms = target
            return
        try:
            self._player.set_time(target)
        except Exception:
            logger.warning("Seek to %sms failed", target, exc_info=True)

    def set_volume(self, volume: float) -> None:
        """Set volume from a 0..1 ratio."""
        self._player.audio_set_volume(int(round(max(0.0, min(1.0, volume)) * 100)))

    def set_muted(self, muted: bool) -> None:
        self._player.audio_set_mute(bool(muted))

    def set_playback_rate(self, rate: float) -> bool:
        try:
            result = self._player.set_rate(float(rate))
        except Exception:
            return False
        return result in (None, 0)

    def get_playback_rate(self) -> Optional[float]:
        try:
            rate = self._player.get_rate()
        except Exception:
            return None
        if rate is None or rate <= 0:
            return None
        return float(rate)

    def get_state(self) -> str:
        """Return a best-effort playback state string."""
        try:
            state = self._player.get_state()
        except Exception:
            return "unknown"
        if state is None:
            return "unknown"
        name = getattr(state, "name", None)
        if isinstance(name, str):
            return name.lower()
        return str(state).lower()

    def get_position_ms(self) -> Optional[int]:
        try:
            position = self._player.get_time()
        except Exception:
            return None
        if position is None or position < 0:
            return None
        return int(position)

    def get_length_ms(self) -> Optional[int]:
        length = None
        if self._media is not None:
            try:
                length = self._media.get_duration()
            except Exception:
                length = None
        if length is None or length <= 0:
            try:
                length = self._player.get_length()
            except Exception:
                return None
        if length is None or length <= 0:
            return None
        return int(length)

    def poll_events(self) -> list[PlayerEvent]:
        """Drain queued notifications and add fresh metadata/time readings."""
        events: list[PlayerEvent] = []
        ref = self._current_media
        if ref is not None and not self._duration_reported:
            length = self.get_length_ms()
            if length is not None:
                self._duration_reported = True
                events.append(PlayerEvent("loaded_metadata", ref=ref, value=length / 1000))
        while True:
            try:
                events.append(self._events.get_nowait())
            except queue.Empty:
                break
        state = self.get_state()
        if self._pending_seek_ms is not None and state in ("playing", "paused"):
            target, self._pending_seek_ms = self._pending_seek_ms, None
            try:
                self._player.set_time(target)
            except Exception:
                logger.warning("Deferred seek to %sms failed", target, exc_info=True)
        terminal = any(event.kind in ("ended", "error") for event in events)
        if ref is not None and state == "playing" and not terminal:
            position = self.get_position_ms()
            if position is not None:
                events.append(PlayerEvent("time_update", ref=ref, value=position / 1000))
        return events

"""Application glue: one playlist, one ledger and one session over a shared store."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Iterable, Optional

from vista_player.config import AppConfig
from vista_player.errors import InvalidPathError
from vista_player.media_paths import (
    VIDEO_EXTENSIONS,
    generate_screenshot_name,
    path_to_media_ref,
    validate_media_path,
)
from vista_player.playlist import Direction, PlaylistNavigator
from vista_player.ports import FileDialogs, MediaBackend, PlayerEvent
from vista_player.session import PlaybackSession, SessionState
from vista_player.shortcuts import action_for_key
from vista_player.store import KeyValueStore
from vista_player.watch_history import WatchHistory

logger = logging.getLogger(__name__)


class PlayerApp:
    """User-facing operations, expressed over the engine components."""

    def __init__(
        self,
        store: KeyValueStore,
        backend: MediaBackend,
        dialogs: Optional[FileDialogs] = None,
        *,
        config: Optional[AppConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or AppConfig()
        self.dialogs = dialogs
        self.navigator = PlaylistNavigator(store, rng=rng)
        self.history = WatchHistory(store)
        self.session = PlaybackSession(
            backend,
            self.history,
            self.navigator,
            store=store,
            snapshot_interval=self.config.snapshot_interval,
            resume_playback=self.config.resume_playback,
            clock=clock,
        )

    # -- adding media ---------------------------------------------------

    def open_file(self) -> Optional[int]:
        if self.dialogs is None:
            logger.warning("No file dialog available")
            return None
        path = self.dialogs.open_file_dialog(VIDEO_EXTENSIONS)
        if not path:
            return None
        return self.add_path(path)

    def add_path(self, path: str) -> int:
        """Validate ``path`` and append it; raises :class:`InvalidPathError`."""
        validate_media_path(path)
        index = self.navigator.add(path_to_media_ref(path))
        logger.info("Added %s at %d", path, index)
        return index

    def add_dropped(self, paths: Iterable[str]) -> list[int]:
        added: list[int] = []
        for path in paths:
            try:
                added.append(self.add_path(path))
            except InvalidPathError as exc:
                logger.warning("Skipping dropped file %s: %s", path, exc.reason)
        return added

    # -- selection and playback -----------------------------------------

    def play_selected(self) -> bool:
        ref = self.navigator.current()
        if ref is None:
            return False
        self.session.load_item(ref, autoplay=True)
        return True

    def select(self, index: int, *, autoplay: bool = True) -> bool:
        if not self.navigator.select_at(index):
            return False
        if index == -1:
            self.session.stop()
        elif autoplay:
            self.play_selected()
        return True

    def _step(self, direction: Direction) -> Optional[int]:
        if self.navigator.is_empty():
            return None
        before = self.navigator.cursor
        after = self.navigator.advance(direction)
        if after != before or self.session.state is SessionState.IDLE:
            self.play_selected()
        return after

    def next_item(self) -> Optional[int]:
        return self._step("next")

    def prev_item(self) -> Optional[int]:
        return self._step("prev")

    def remove(self, index: int) -> None:
        active = (
            index == self.navigator.cursor
            and self.session.state is not SessionState.IDLE
        )
        self.navigator.remove(index)
        if active:
            self.session.stop()

    def clear_playlist(self) -> None:
        self.session.stop()
        self.navigator.clear()

    def clear_watched(self) -> int:
        """Drop completed items; the new selection plays if the active item went."""
        current = self.navigator.current()
        active_removed = (
            current is not None
            and self.session.state is not SessionState.IDLE
            and self.history.is_completed(current)
        )
        removed = self.navigator.remove_where(self.history.is_completed)
        if removed:
            logger.info("Removed %d watched items", removed)
        if active_removed:
            self.session.stop()
            self.play_selected()
        return removed

    # -- backend events -------------------------------------------------

    def handle_event(self, event: PlayerEvent) -> Optional[int]:
        """Feed a backend event to the session and auto-advance after an end."""
        next_index = self.session.dispatch(event)
        if event.kind == "ended" and next_index is not None:
            self.play_selected()
        return next_index

    def skip_failed(self) -> Optional[int]:
        """Move past an item that failed to load, or stop when nothing follows."""
        if self.session.state is not SessionState.ERROR:
            return None
        next_index = self.navigator.on_item_ended()
        if next_index is None:
            self.session.stop()
            return None
        self.play_selected()
        return next_index

    # -- keyboard -------------------------------------------------------

    def handle_key(self, code: str) -> Optional[str]:
        """Run the shortcut bound to ``code`` and return its action name."""
        action = action_for_key(code)
        if action is None:
            return None
        session = self.session
        cfg = self.config
        if action == "play_pause":
            if session.state is SessionState.IDLE:
                self.play_selected()
            else:
                session.toggle_play()
        elif action == "seek_forward_small":
            session.seek_relative(cfg.seek_step_small)
        elif action == "seek_backward_small":
            session.seek_relative(-cfg.seek_step_small)
        elif action == "seek_forward_large":
            session.seek_relative(cfg.seek_step_large)
        elif action == "seek_backward_large":
            session.seek_relative(-cfg.seek_step_large)
        elif action == "volume_up":
            session.set_volume(session.preferences.volume + cfg.volume_step)
        elif action == "volume_down":
            session.set_volume(session.preferences.volume - cfg.volume_step)
        elif action == "toggle_mute":
            session.toggle_mute()
        elif action == "next_item":
            self.next_item()
        elif action == "prev_item":
            self.prev_item()
        elif action == "loop_set_a":
            session.set_loop_a()
        elif action == "loop_set_b":
            session.set_loop_b()
        elif action == "loop_reset":
            session.reset_loop()
        return action

    def save_screenshot(self, image_data: bytes) -> bool:
        ref = self.session.ref
        if self.dialogs is None or ref is None:
            return False
        name = generate_screenshot_name(ref, self.session.current_time)
        return self.dialogs.save_file_dialog(name, image_data)

    def close(self) -> None:
        self.session.stop()

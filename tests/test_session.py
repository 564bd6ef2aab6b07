"""Tests for the playback session state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import random

import pytest

from vista_player.errors import PlaybackError
from vista_player.playlist import PlaylistNavigator
from vista_player.ports import PlayerEvent
from vista_player.session import ABLoop, PlaybackSession, SessionState
from vista_player.store import MUTED_KEY, SPEED_KEY, VOLUME_KEY, MemoryStore
from vista_player.watch_history import WatchHistory

SRT = """1
00:00:01,000 --> 00:00:03,000
first

2
00:00:05,000 --> 00:00:06,000
second
"""


@dataclass
class FakeBackend:
    calls: list[tuple] = field(default_factory=list)
    rate_ok: bool = True

    def load(self, ref: str) -> None:
        self.calls.append(("load", ref))

    def play(self) -> None:
        self.calls.append(("play",))

    def pause(self) -> None:
        self.calls.append(("pause",))

    def stop(self) -> None:
        self.calls.append(("stop",))

    def seek(self, seconds: float) -> None:
        self.calls.append(("seek", seconds))

    def set_volume(self, volume: float) -> None:
        self.calls.append(("volume", volume))

    def set_muted(self, muted: bool) -> None:
        self.calls.append(("muted", muted))

    def set_playback_rate(self, rate: float) -> bool:
        self.calls.append(("rate", rate))
        return self.rate_ok

    def named(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@dataclass
class Harness:
    session: PlaybackSession
    backend: FakeBackend
    history: WatchHistory
    navigator: PlaylistNavigator
    store: MemoryStore
    clock: FakeClock


def make_session(
    items: list[str] | None = None, *, resume: bool = True, interval: float = 5.0
) -> Harness:
    store = MemoryStore()
    backend = FakeBackend()
    history = WatchHistory(store, clock=lambda: 1)
    navigator = PlaylistNavigator(store, rng=random.Random(3))
    navigator.add_many(items or [])
    clock = FakeClock()
    session = PlaybackSession(
        backend,
        history,
        navigator,
        store=store,
        snapshot_interval=interval,
        resume_playback=resume,
        clock=clock,
    )
    return Harness(session, backend, history, navigator, store, clock)


def ready(h: Harness, ref: str = "a.mp4", duration: float = 100.0) -> None:
    h.session.load_item(ref)
    h.session.on_metadata_ready(duration, ref)


def test_starts_idle() -> None:
    h = make_session()
    assert h.session.state is SessionState.IDLE
    assert h.session.ref is None
    assert h.session.play() is False


def test_load_item_enters_loading_and_applies_preferences() -> None:
    h = make_session()
    h.session.load_item("a.mp4")
    assert h.session.state is SessionState.LOADING
    assert h.session.duration is None
    assert h.backend.calls[-1] == ("load", "a.mp4")
    assert ("volume", 1.0) in h.backend.calls
    assert ("rate", 1.0) in h.backend.calls


def test_metadata_makes_ready() -> None:
    h = make_session()
    ready(h)
    assert h.session.state is SessionState.READY
    assert h.session.duration == 100.0
    assert h.backend.named("play") == []


def test_bad_duration_becomes_zero() -> None:
    h = make_session()
    h.session.load_item("a.mp4")
    h.session.on_metadata_ready(float("nan"))
    assert h.session.duration == 0.0


def test_autoplay_plays_once_ready() -> None:
    h = make_session()
    h.session.load_item("a.mp4", autoplay=True)
    assert h.backend.named("play") == []
    h.session.on_metadata_ready(50.0, "a.mp4")
    assert h.backend.named("play") == [("play",)]
    assert h.session.is_playing


def test_play_while_loading_is_deferred() -> None:
    h = make_session()
    h.session.load_item("a.mp4")
    assert h.session.play() is False
    h.session.on_metadata_ready(50.0)
    assert h.session.is_playing


def test_resume_seeks_to_saved_position() -> None:
    h = make_session()
    h.history.record_position("a.mp4", 42.0, 100.0)
    ready(h)
    assert ("seek", 42.0) in h.backend.calls
    assert h.session.current_time == 42.0


def test_resume_skips_completed_items() -> None:
    h = make_session()
    h.history.record_position("a.mp4", 99.0, 100.0)
    ready(h)
    assert h.backend.named("seek") == []
    assert h.session.current_time == 0.0


def test_resume_can_be_disabled() -> None:
    h = make_session(resume=False)
    h.history.record_position("a.mp4", 42.0, 100.0)
    ready(h)
    assert h.backend.named("seek") == []


def test_stale_notifications_are_ignored() -> None:
    h = make_session()
    h.session.load_item("a.mp4")
    h.session.load_item("b.mp4")
    h.session.on_metadata_ready(10.0, "a.mp4")
    assert h.session.state is SessionState.LOADING
    h.session.on_metadata_ready(20.0, "b.mp4")
    assert h.session.duration == 20.0
    h.session.on_error("boom", "a.mp4")
    assert h.session.state is SessionState.READY
    assert h.session.on_ended("a.mp4") is None
    assert h.session.state is SessionState.READY


def test_load_item_twice_resets_state() -> None:
    h = make_session()
    ready(h)
    h.session.load_subtitles(SRT)
    h.session.set_loop_a(1.0)
    h.session.set_loop_b(2.0)
    h.session.load_item("a.mp4")
    assert h.session.state is SessionState.LOADING
    assert h.session.cues == []
    assert h.session.loop.point_a is None
    assert h.session.duration is None
    h.session.load_item("a.mp4")
    assert h.session.state is SessionState.LOADING


def test_time_update_tracks_cue() -> None:
    h = make_session()
    ready(h)
    h.session.load_subtitles(SRT)
    h.session.on_time_update(2.0)
    assert h.session.active_cue is not None
    assert h.session.active_cue.text == "first"
    h.session.on_time_update(4.0)
    assert h.session.active_cue is None
    h.session.on_time_update(5.0)
    assert h.session.active_cue.text == "second"


def test_time_update_ignored_unless_ready() -> None:
    h = make_session()
    h.session.load_item("a.mp4")
    h.session.on_time_update(12.0)
    assert h.session.current_time == 0.0


def test_ab_loop_rewinds() -> None:
    h = make_session()
    ready(h)
    assert h.session.set_loop_a(10.0)
    assert h.session.set_loop_b(20.0)
    assert h.session.on_time_update(15.0) == 15.0
    assert h.session.on_time_update(20.0) == 10.0
    assert h.backend.named("seek")[-1] == ("seek", 10.0)
    assert h.session.current_time == 10.0


def test_ab_loop_too_short_is_inactive() -> None:
    h = make_session()
    ready(h)
    h.session.set_loop_a(10.0)
    h.session.set_loop_b(10.04)
    assert not h.session.loop.is_active()
    assert h.session.on_time_update(10.5) == 10.5


def test_ab_loop_rewind_target_uses_active_rule() -> None:
    assert ABLoop(10.0, 10.04).rewind_target(11.0) is None
    assert ABLoop(10.0, None).rewind_target(11.0) is None
    loop = ABLoop(10.0, 20.0)
    assert loop.rewind_target(19.9) is None
    assert loop.rewind_target(20.0) == 10.0


def test_loop_points_need_duration() -> None:
    h = make_session()
    h.session.load_item("a.mp4")
    assert h.session.set_loop_a(1.0) is False
    assert h.session.set_loop_b(2.0) is False


def test_loop_points_default_to_current_time() -> None:
    h = make_session()
    ready(h)
    h.session.on_time_update(7.0)
    h.session.set_loop_a()
    assert h.session.loop.point_a == 7.0
    h.session.reset_loop()
    assert h.session.loop.point_a is None


def test_ab_loop_b_before_a_restarts() -> None:
    loop = ABLoop()
    loop.set_a(10.0)
    assert loop.set_b(5.0) is False
    assert loop.point_a == 5.0
    assert loop.point_b is None


def test_ab_loop_a_after_b_clears_b() -> None:
    loop = ABLoop()
    loop.set_a(1.0)
    loop.set_b(4.0)
    loop.set_a(6.0)
    assert loop.point_a == 6.0
    assert loop.point_b is None
    assert not loop.is_active()


def test_ab_loop_b_without_a_becomes_a() -> None:
    loop = ABLoop()
    loop.set_b(3.0)
    assert loop.point_a == 3.0
    assert loop.point_b is None


def test_ended_records_completion_and_advances() -> None:
    h = make_session(["a.mp4", "b.mp4"])
    ready(h)
    h.session.play()
    assert h.session.on_ended("a.mp4") == 1
    assert h.session.state is SessionState.ENDED
    assert h.session.is_playing is False
    assert h.history.is_completed("a.mp4")


def test_ended_at_last_item_stops() -> None:
    h = make_session(["a.mp4"])
    ready(h)
    assert h.session.on_ended() is None
    assert h.session.state is SessionState.ENDED


def test_ended_only_from_ready() -> None:
    h = make_session(["a.mp4", "b.mp4"])
    h.session.load_item("a.mp4")
    assert h.session.on_ended() is None
    assert h.session.state is SessionState.LOADING


def test_play_after_end_restarts() -> None:
    h = make_session(["a.mp4"])
    ready(h)
    h.session.on_ended()
    assert h.session.play() is True
    assert ("seek", 0.0) in h.backend.calls
    assert h.session.state is SessionState.READY


def test_error_is_terminal_until_next_load() -> None:
    h = make_session()
    h.session.load_item("a.mp4")
    h.session.on_error("unsupported codec")
    assert h.session.state is SessionState.ERROR
    assert h.session.play() is False
    with pytest.raises(PlaybackError) as excinfo:
        h.session.raise_for_error()
    assert excinfo.value.ref == "a.mp4"
    assert excinfo.value.reason == "unsupported codec"
    h.session.on_metadata_ready(10.0)
    assert h.session.state is SessionState.ERROR
    h.session.load_item("b.mp4")
    assert h.session.state is SessionState.LOADING
    assert h.session.error is None


def test_error_ignored_when_idle() -> None:
    h = make_session()
    h.session.on_error("late")
    assert h.session.state is SessionState.IDLE


def test_seek_clamps_and_requires_duration() -> None:
    h = make_session()
    h.session.load_item("a.mp4")
    assert h.session.seek(10.0) is None
    h.session.on_metadata_ready(30.0)
    assert h.session.seek(-5.0) == 0.0
    assert h.session.seek(99.0) == 30.0
    h.session.seek(10.0)
    assert h.session.seek_relative(5.0) == 15.0


def test_seek_back_from_ended_returns_to_ready() -> None:
    h = make_session(["a.mp4"])
    ready(h, duration=30.0)
    h.session.on_ended()
    h.session.seek(10.0)
    assert h.session.state is SessionState.READY


def test_pause_and_toggle() -> None:
    h = make_session()
    ready(h)
    assert h.session.toggle_play() is True
    assert h.session.is_playing
    assert h.session.toggle_play() is False
    assert h.backend.named("pause") == [("pause",)]
    h.session.pause()
    assert h.backend.named("pause") == [("pause",)]


def test_snapshot_written_after_interval_of_playing() -> None:
    h = make_session(interval=5.0)
    ready(h)
    h.session.play()
    h.clock.now = 3.0
    h.session.on_time_update(3.0)
    assert h.history.get_history("a.mp4") is None
    h.clock.now = 5.5
    h.session.on_time_update(5.5)
    record = h.history.get_history("a.mp4")
    assert record is not None
    assert record.position == 5.5


def test_no_snapshot_while_paused() -> None:
    h = make_session(interval=1.0)
    ready(h)
    h.clock.now = 10.0
    h.session.on_time_update(10.0)
    assert h.history.get_history("a.mp4") is None


def test_pause_flushes_snapshot() -> None:
    h = make_session()
    ready(h)
    h.session.play()
    h.session.on_time_update(12.0)
    h.session.pause()
    record = h.history.get_history("a.mp4")
    assert record is not None
    assert record.position == 12.0


def test_changing_item_flushes_snapshot() -> None:
    h = make_session()
    ready(h)
    h.session.play()
    h.session.on_time_update(33.0)
    h.session.load_item("b.mp4")
    assert h.history.get_history("a.mp4").position == 33.0


def test_stop_flushes_and_goes_idle() -> None:
    h = make_session()
    ready(h)
    h.session.play()
    h.session.on_time_update(8.0)
    h.session.stop()
    assert h.session.state is SessionState.IDLE
    assert h.session.ref is None
    assert h.backend.named("stop") == [("stop",)]
    assert h.history.get_history("a.mp4").position == 8.0


def test_subtitles_load_and_export() -> None:
    h = make_session()
    ready(h)
    assert h.session.load_subtitles(SRT) == 2
    assert h.session.load_subtitles("garbage") == 0
    assert len(h.session.cues) == 2
    exported = h.session.export_subtitles()
    assert exported.startswith("1\n00:00:01,000 --> 00:00:03,000\nfirst")


def test_load_subtitle_file(tmp_path: Path) -> None:
    path = tmp_path / "subs.srt"
    path.write_text(SRT, encoding="utf-8")
    h = make_session()
    ready(h)
    assert h.session.load_subtitle_file(path) == 2


def test_volume_persists_and_zero_mutes() -> None:
    h = make_session()
    assert h.session.set_volume(1.7) == 1.0
    assert h.session.set_volume(0.0) == 0.0
    assert h.session.preferences.muted is True
    assert h.store.get(VOLUME_KEY) == 0.0
    assert h.store.get(MUTED_KEY) is True
    h.session.set_volume(0.5)
    assert h.session.preferences.muted is False


def test_toggle_mute() -> None:
    h = make_session()
    assert h.session.toggle_mute() is True
    assert ("muted", True) in h.backend.calls
    assert h.session.toggle_mute() is False


def test_playback_rate() -> None:
    h = make_session()
    h.session.set_playback_rate(1.5)
    assert h.store.get(SPEED_KEY) == 1.5
    assert ("rate", 1.5) in h.backend.calls
    with pytest.raises(ValueError):
        h.session.set_playback_rate(0)


def test_preferences_survive_new_session() -> None:
    h = make_session()
    h.session.set_volume(0.3)
    again = PlaybackSession(FakeBackend(), h.history, store=h.store)
    assert again.preferences.volume == 0.3


def test_dispatch_routes_events() -> None:
    h = make_session(["a.mp4", "b.mp4"])
    h.session.load_item("a.mp4")
    h.session.dispatch(PlayerEvent("load_start", ref="a.mp4"))
    h.session.dispatch(PlayerEvent("loaded_metadata", ref="a.mp4", value=60.0))
    assert h.session.state is SessionState.READY
    h.session.dispatch(PlayerEvent("can_play", ref="a.mp4"))
    h.session.dispatch(PlayerEvent("time_update", ref="a.mp4", value=4.0))
    assert h.session.current_time == 4.0
    assert h.session.dispatch(PlayerEvent("ended", ref="a.mp4")) == 1
    h.session.load_item("b.mp4")
    h.session.dispatch(PlayerEvent("error", ref="b.mp4", reason="bad file"))
    assert h.session.error is not None
    assert h.session.error.reason == "bad file"


def test_can_play_does_not_replace_metadata() -> None:
    h = make_session()
    h.session.load_item("a.mp4")
    h.session.dispatch(PlayerEvent("can_play", ref="a.mp4"))
    assert h.session.state is SessionState.LOADING
    assert h.session.duration is None

"""Tests for persisted player preferences."""

from __future__ import annotations

from vista_player import preferences
from vista_player.preferences import PlayerPreferences
from vista_player.store import MUTED_KEY, SPEED_KEY, VOLUME_KEY, MemoryStore


def test_defaults_when_store_is_empty() -> None:
    assert preferences.load_preferences(MemoryStore()) == PlayerPreferences()


def test_save_then_load() -> None:
    store = MemoryStore()
    prefs = PlayerPreferences(volume=0.4, muted=True, playback_rate=1.5)
    preferences.save_preferences(store, prefs)
    assert store.get(VOLUME_KEY) == 0.4
    assert store.get(MUTED_KEY) is True
    assert store.get(SPEED_KEY) == 1.5
    assert preferences.load_preferences(store) == prefs


def test_each_field_falls_back_independently() -> None:
    store = MemoryStore()
    store.put(VOLUME_KEY, "loud")
    store.put(MUTED_KEY, True)
    store.put(SPEED_KEY, -2)
    prefs = preferences.load_preferences(store)
    assert prefs.volume == preferences.DEFAULT_VOLUME
    assert prefs.muted is True
    assert prefs.playback_rate == preferences.DEFAULT_PLAYBACK_RATE


def test_stored_volume_is_clamped() -> None:
    store = MemoryStore()
    store.put(VOLUME_KEY, 7)
    assert preferences.load_preferences(store).volume == 1.0


def test_clamp_volume() -> None:
    assert preferences.clamp_volume(-0.5) == 0.0
    assert preferences.clamp_volume(0.25) == 0.25
    assert preferences.clamp_volume(3) == 1.0


def test_boolean_volume_is_rejected() -> None:
    store = MemoryStore()
    store.put(VOLUME_KEY, True)
    assert preferences.load_preferences(store).volume == preferences.DEFAULT_VOLUME

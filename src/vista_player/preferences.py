"""Persisted player preferences: volume, mute and playback speed."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any

from vista_player.store import (
    MUTED_KEY,
    SPEED_KEY,
    VOLUME_KEY,
    KeyValueStore,
    load_state,
    save_state,
)

PLAYBACK_SPEEDS = (0.5, 0.75, 1.0, 1.25, 1.5, 2.0)
DEFAULT_VOLUME = 1.0
DEFAULT_PLAYBACK_RATE = 1.0


@dataclass(frozen=True)
class PlayerPreferences:
    volume: float = DEFAULT_VOLUME
    muted: bool = False
    playback_rate: float = DEFAULT_PLAYBACK_RATE


def clamp_volume(volume: float) -> float:
    return max(0.0, min(1.0, float(volume)))


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def load_preferences(store: KeyValueStore) -> PlayerPreferences:
    """Read each preference independently, falling back field by field."""
    volume = load_state(store, VOLUME_KEY, DEFAULT_VOLUME)
    muted = load_state(store, MUTED_KEY, False)
    rate = load_state(store, SPEED_KEY, DEFAULT_PLAYBACK_RATE)
    return PlayerPreferences(
        volume=clamp_volume(volume) if _is_number(volume) else DEFAULT_VOLUME,
        muted=muted if isinstance(muted, bool) else False,
        playback_rate=float(rate) if _is_number(rate) and rate > 0 else DEFAULT_PLAYBACK_RATE,
    )


def save_preferences(store: KeyValueStore, prefs: PlayerPreferences) -> None:
    save_state(store, VOLUME_KEY, prefs.volume)
    save_state(store, MUTED_KEY, prefs.muted)
    save_state(store, SPEED_KEY, prefs.playback_rate)

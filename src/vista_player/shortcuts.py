"""Keyboard shortcut table, keyed by DOM-style key codes."""

from __future__ import annotations

from typing import Optional

KEYBOARD_SHORTCUTS: dict[str, tuple[str, ...]] = {
    "play_pause": ("Space", "KeyK"),
    "seek_forward_small": ("ArrowRight",),
    "seek_backward_small": ("ArrowLeft",),
    "seek_forward_large": ("KeyL",),
    "seek_backward_large": ("KeyJ",),
    "volume_up": ("ArrowUp",),
    "volume_down": ("ArrowDown",),
    "toggle_mute": ("KeyM",),
    "next_item": ("KeyN", "PageDown"),
    "prev_item": ("KeyP", "PageUp"),
    "loop_set_a": ("BracketLeft",),
    "loop_set_b": ("BracketRight",),
    "loop_reset": ("Backslash",),
}

_ACTION_BY_KEY = {
    code: action for action, codes in KEYBOARD_SHORTCUTS.items() for code in codes
}


def action_for_key(code: str) -> Optional[str]:
    return _ACTION_BY_KEY.get(code)

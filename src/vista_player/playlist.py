"""Playlist order, selection cursor and loop/shuffle policy."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
from typing import Callable, Iterable, Literal, Optional

from vista_player.store import (
    CURRENT_INDEX_KEY,
    LOOPING_KEY,
    PLAYLIST_KEY,
    SHUFFLING_KEY,
    KeyValueStore,
    MemoryStore,
    load_state,
    save_state,
)

logger = logging.getLogger(__name__)

Direction = Literal["next", "prev"]


@dataclass(frozen=True)
class PlaylistEntry:
    ref: str
    position: int


@dataclass
class PlaybackModes:
    looping: bool = False
    shuffling: bool = False


class PlaylistNavigator:
    """Ordered media refs with a cursor; ``cursor == -1`` means nothing is selected.

    Duplicates are allowed. Every mutation writes the playlist, cursor and
    modes through to the store.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._store: KeyValueStore = store if store is not None else MemoryStore()
        self._rng = rng or random.Random()
        self.items: list[str] = []
        self.cursor = -1
        self.modes = PlaybackModes()
        self._load()

    def _load(self) -> None:
        items = load_state(self._store, PLAYLIST_KEY, [])
        if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
            logger.warning("Ignoring malformed stored playlist")
            items = []
        cursor = load_state(self._store, CURRENT_INDEX_KEY, -1)
        if isinstance(cursor, bool) or not isinstance(cursor, int):
            cursor = -1
        if not -1 <= cursor < len(items):
            logger.warning("Stored cursor %s out of range, clearing selection", cursor)
            cursor = -1
        looping = load_state(self._store, LOOPING_KEY, False)
        shuffling = load_state(self._store, SHUFFLING_KEY, False)
        self.items = list(items)
        self.cursor = cursor
        self.modes = PlaybackModes(
            looping=looping if isinstance(looping, bool) else False,
            shuffling=shuffling if isinstance(shuffling, bool) else False,
        )

    def _persist(self) -> None:
        save_state(self._store, PLAYLIST_KEY, list(self.items))
        save_state(self._store, CURRENT_INDEX_KEY, self.cursor)
        save_state(self._store, LOOPING_KEY, self.modes.looping)
        save_state(self._store, SHUFFLING_KEY, self.modes.shuffling)

    def __len__(self) -> int:
        return len(self.items)

    def is_empty(self) -> bool:
        return not self.items

    def current(self) -> Optional[str]:
        if self.cursor == -1:
            return None
        return self.items[self.cursor]

    def entries(self) -> list[PlaylistEntry]:
        return [PlaylistEntry(ref, index) for index, ref in enumerate(self.items)]

    def add(self, ref: str) -> int:
        """Append ``ref``; it becomes selected only when nothing was."""
        if self.cursor == -1:
            self.cursor = len(self.items)
        self.items.append(ref)
        self._persist()
        return len(self.items) - 1

    def add_many(self, refs: Iterable[str]) -> list[int]:
        added = list(refs)
        if not added:
            return []
        start = len(self.items)
        if self.cursor == -1:
            self.cursor = start
        self.items.extend(added)
        self._persist()
        return list(range(start, len(self.items)))

    def remove(self, index: int) -> None:
        """Remove one entry; removing the selected entry clears the selection."""
        if index < 0 or index >= len(self.items):
            return
        del self.items[index]
        if self.cursor == index:
            self.cursor = -1
        elif self.cursor > index:
            self.cursor -= 1
        self._persist()

    def clear(self) -> None:
        self.items = []
        self.cursor = -1
        self._persist()

    def remove_where(self, predicate: Callable[[str], bool]) -> int:
        """Bulk-remove entries matching ``predicate`` and return how many went.

        A removed selection moves to the first remaining entry; a surviving
        selection keeps pointing at the same entry.
        """
        kept: list[str] = []
        new_cursor = -1
        selected_removed = False
        for index, ref in enumerate(self.items):
            if predicate(ref):
                if index == self.cursor:
                    selected_removed = True
                continue
            if index == self.cursor:
                new_cursor = len(kept)
            kept.append(ref)
        removed = len(self.items) - len(kept)
        if not removed:
            return 0
        if selected_removed:
            new_cursor = 0 if kept else -1
        self.items = kept
        self.cursor = new_cursor
        self._persist()
        return removed

    def move(self, from_index: int, to_index: int) -> bool:
        """Reorder one entry; the cursor follows the entry it pointed at."""
        count = len(self.items)
        if not (0 <= from_index < count and 0 <= to_index < count):
            return False
        if from_index == to_index:
            return True
        selected = self.cursor
        ref = self.items.pop(from_index)
        self.items.insert(to_index, ref)
        if selected == from_index:
            self.cursor = to_index
        elif from_index < selected <= to_index:
            self.cursor = selected - 1
        elif to_index <= selected < from_index:
            self.cursor = selected + 1
        self._persist()
        return True

    def select_at(self, index: int) -> bool:
        if not -1 <= index < len(self.items):
            logger.debug("Ignoring selection of index %s", index)
            return False
        self.cursor = index
        self._persist()
        return True

    def set_looping(self, enabled: bool) -> None:
        self.modes.looping = enabled
        self._persist()

    def toggle_looping(self) -> bool:
        self.set_looping(not self.modes.looping)
        return self.modes.looping

    def set_shuffling(self, enabled: bool) -> None:
        self.modes.shuffling = enabled
        self._persist()

    def toggle_shuffling(self) -> bool:
        self.set_shuffling(not self.modes.shuffling)
        return self.modes.shuffling

    def _random_other_index(self) -> int:
        count = len(self.items)
        if self.cursor == -1:
            return self._rng.randrange(count)
        pick = self._rng.randrange(count - 1)
        return pick if pick < self.cursor else pick + 1

    def advance(self, direction: Direction = "next") -> int:
        """Move the cursor and return it; stays put at the ends unless looping."""
        count = len(self.items)
        if count == 0:
            return self.cursor
        if self.modes.shuffling:
            if count <= 1:
                return self.cursor
            self.cursor = self._random_other_index()
            self._persist()
            return self.cursor
        step = 1 if direction == "next" else -1
        target = self.cursor + step
        if target >= count:
            target = 0 if self.modes.looping else count - 1
        elif target < 0:
            target = count - 1 if self.modes.looping else 0
        if target != self.cursor:
            self.cursor = target
            self._persist()
        return self.cursor

    def on_item_ended(self) -> Optional[int]:
        """Return the index to play after the current item, or None to stop."""
        count = len(self.items)
        if count == 0:
            return None
        if self.modes.shuffling:
            if count > 1:
                return self.advance("next")
            return self.cursor if self.modes.looping and self.cursor != -1 else None
        if self.cursor < count - 1:
            return self.advance("next")
        if self.modes.looping:
            return self.advance("next")
        return None

"""Key-value persistence for player state.

Everything the engine remembers between sessions is a JSON-compatible value
stored under a fixed key. Stores raise :class:`PersistenceError`; the
``load_state``/``save_state`` helpers absorb it so that a broken store only
ever degrades to defaults.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
import sqlite3
import threading
import time
from typing import Any, Optional, Protocol

from vista_player.config import get_config_dir
from vista_player.errors import PersistenceError

logger = logging.getLogger(__name__)

PLAYLIST_KEY = "playlist"
CURRENT_INDEX_KEY = "currentIndex"
LOOPING_KEY = "isLooping"
SHUFFLING_KEY = "isShuffling"
VOLUME_KEY = "player_volume"
MUTED_KEY = "player_muted"
SPEED_KEY = "player_speed"
WATCH_HISTORY_KEY = "watch_history"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def put(self, key: str, value: Any) -> None: ...


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise PersistenceError(key, f"value is not JSON serialisable: {exc}") from exc


def _decode(key: str, text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise PersistenceError(key, f"stored value is corrupt: {exc}") from exc


class MemoryStore:
    """Dict-backed store that still round-trips values through JSON."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        text = self._data.get(key)
        if text is None:
            return None
        return _decode(key, text)

    def put(self, key: str, value: Any) -> None:
        self._data[key] = _encode(key, value)

    def keys(self) -> list[str]:
        return sorted(self._data)


def default_db_path() -> Path:
    try:
        base = get_config_dir()
    except OSError:
        base = Path.cwd() / ".vista-player"
        base.mkdir(parents=True, exist_ok=True)
    return base / "state.db"


class SQLiteStore:
    """SQLite-backed store with one transaction per write."""

    def __init__(self, db_path: Path | None = None) -> None:
        self._path = db_path or default_db_path()
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise PersistenceError("*", f"cannot open {self._path}: {exc}") from exc
        self._apply_pragmas()
        self._ensure_schema()

    @property
    def path(self) -> Path:
        return self._path

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def get(self, key: str) -> Any | None:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM kv WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(key, f"read failed: {exc}") from exc
        if row is None:
            return None
        return _decode(key, row[0])

    def put(self, key: str, value: Any) -> None:
        text = _encode(key, value)
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    """
                    INSERT INTO kv (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, text, int(time.time())),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(key, f"write failed: {exc}") from exc

    def _apply_pragmas(self) -> None:
        with self._lock:
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA synchronous = NORMAL")
            self._conn.execute("PRAGMA busy_timeout = 3000")

    def _ensure_schema(self) -> None:
        with self._lock:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                );
                """
            )
            self._conn.commit()


class WriteBehindStore:
    """Fire-and-forget writes with last-write-wins ordering per key.

    Only the newest pending value of each key is kept, and a single worker
    drains them, so an older write can never land after a newer one.
    """

    def __init__(self, inner: KeyValueStore, *, thread_name: str = "StoreWriter") -> None:
        self._inner = inner
        self._pending: dict[str, str] = {}
        self._in_flight: Optional[tuple[str, str]] = None
        self._closed = False
        self._cond = threading.Condition()
        self._thread = threading.Thread(target=self._worker, name=thread_name, daemon=True)
        self._thread.start()

    def get(self, key: str) -> Any | None:
        with self._cond:
            text = self._pending.get(key)
            if text is None and self._in_flight is not None and self._in_flight[0] == key:
                text = self._in_flight[1]
        if text is not None:
            return _decode(key, text)
        return self._inner.get(key)

    def put(self, key: str, value: Any) -> None:
        text = _encode(key, value)
        with self._cond:
            if self._closed:
                raise PersistenceError(key, "store is closed")
            self._pending[key] = text
            self._cond.notify_all()

    def flush(self, timeout: float | None = None) -> bool:
        """Block until every pending write was attempted."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._pending or self._in_flight is not None:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cond.wait(remaining)
        return True

    def close(self, timeout: float = 2.0) -> None:
        self.flush(timeout)
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self._thread.join(timeout=timeout)

    def _worker(self) -> None:
        while True:
            with self._cond:
                while not self._pending and not self._closed:
                    self._cond.wait()
                if not self._pending:
                    return
                key = next(iter(self._pending))
                text = self._pending.pop(key)
                self._in_flight = (key, text)
            try:
                self._inner.put(key, json.loads(text))
            except Exception:
                logger.exception("Background write failed for key %s", key)
            finally:
                with self._cond:
                    self._in_flight = None
                    self._cond.notify_all()


def load_state(store: KeyValueStore, key: str, default: Any) -> Any:
    """Read ``key`` or return ``default`` when it is absent or unreadable."""
    try:
        value = store.get(key)
    except PersistenceError:
        logger.warning("Falling back to default for %s", key, exc_info=True)
        return default
    if value is None:
        return default
    return value


def save_state(store: KeyValueStore, key: str, value: Any) -> bool:
    """Write ``key``; failures are logged and reported as ``False``."""
    try:
        store.put(key, value)
    except PersistenceError:
        logger.warning("Failed to save state for %s", key, exc_info=True)
        return False
    return True

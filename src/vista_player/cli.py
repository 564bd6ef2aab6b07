"""Command-line interface for Vista Player."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
import threading
import time
from types import TracebackType
from typing import Callable, Iterable, Optional, Sequence, Tuple

from rich.console import Console
from rich.table import Table

from vista_player.app import PlayerApp
from vista_player.config import AppConfig, load_config
from vista_player.errors import InvalidPathError, PersistenceError
from vista_player.logging_setup import init_logging
from vista_player.media_paths import (
    format_clock,
    media_ref_to_path,
    path_to_media_ref,
    validate_media_path,
)
from vista_player.metadata import format_display_title, get_media_meta
from vista_player.player_vlc import VlcPlayer
from vista_player.playlist import PlaylistNavigator
from vista_player.playlist_io import load_m3u_any, save_m3u8
from vista_player.session import SessionState
from vista_player.store import (
    KeyValueStore,
    SQLiteStore,
    WriteBehindStore,
    default_db_path,
)
from vista_player.watch_history import WatchHistory

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.2


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="vista-player", description="Vista Player")
    parser.add_argument(
        "paths",
        nargs="*",
        default=[],
        help="Video files to add to the playlist",
    )
    parser.add_argument(
        "--subtitles",
        type=Path,
        default=None,
        help="SRT file to show with the first played item",
    )
    parser.add_argument("--loop", choices=("on", "off"), default=None)
    parser.add_argument("--shuffle", choices=("on", "off"), default=None)
    parser.add_argument(
        "--import-m3u",
        type=Path,
        default=None,
        help="Append the entries of an M3U/M3U8 playlist",
    )
    parser.add_argument(
        "--export-m3u",
        type=Path,
        default=None,
        help="Write the playlist as M3U8 and exit",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Print the playlist with watch progress and exit",
    )
    parser.add_argument(
        "--clear-watched",
        action="store_true",
        help="Remove completed items from the playlist",
    )
    parser.add_argument(
        "--no-play",
        action="store_true",
        help="Apply playlist changes without starting playback",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="State database path",
    )
    return parser


def _install_excepthooks() -> None:
    def excepthook(
        exc_type: type[BaseException],
        exc: BaseException,
        tb: Optional[TracebackType],
    ) -> None:
        logger.error("Uncaught exception", exc_info=(exc_type, exc, tb))

    sys.excepthook = excepthook

    if hasattr(threading, "excepthook"):

        def thread_hook(args: threading.ExceptHookArgs) -> None:
            exc_value = args.exc_value or RuntimeError("unknown")
            exc_info: Tuple[
                type[BaseException], BaseException, Optional[TracebackType]
            ] = (
                args.exc_type,
                exc_value,
                args.exc_traceback,
            )
            thread_name = args.thread.name if args.thread else "thread"
            logger.error("Thread exception in %s", thread_name, exc_info=exc_info)

        threading.excepthook = thread_hook


def _resolve_db_path(arg: Optional[Path], cfg: AppConfig) -> Path:
    if arg is not None:
        arg.parent.mkdir(parents=True, exist_ok=True)
        return arg
    if cfg.store_path:
        path = Path(cfg.store_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        return path
    return default_db_path()


def _add_paths(navigator: PlaylistNavigator, paths: Sequence[str]) -> int:
    added = 0
    for raw in paths:
        try:
            validate_media_path(raw)
        except InvalidPathError as exc:
            print(f"Skipping {raw}: {exc.reason}", file=sys.stderr)
            continue
        navigator.add(path_to_media_ref(raw))
        added += 1
    return added


def _print_playlist(
    navigator: PlaylistNavigator, history: WatchHistory, console: Console
) -> None:
    table = Table(title="Playlist")
    table.add_column("#", justify="right")
    table.add_column("")
    table.add_column("Title")
    table.add_column("Length", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Watched")
    for entry in navigator.entries():
        path = media_ref_to_path(entry.ref)
        meta = get_media_meta(path) if path is not None and path.is_file() else None
        length = ""
        if meta is not None and meta.duration_seconds is not None:
            length = format_clock(meta.duration_seconds)
        table.add_row(
            str(entry.position + 1),
            ">" if entry.position == navigator.cursor else "",
            format_display_title(entry.ref, meta),
            length,
            f"{history.get_progress_percent(entry.ref):.0f}%",
            "yes" if history.is_completed(entry.ref) else "",
        )
    console.print(table)
    modes = navigator.modes
    console.print(
        f"Loop: {'on' if modes.looping else 'off'}  "
        f"Shuffle: {'on' if modes.shuffling else 'off'}"
    )


def _run_playback(
    app: PlayerApp,
    player: VlcPlayer,
    subtitles: Optional[Path] = None,
    *,
    poll_interval: Optional[float] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> int:
    """Play the selection until the playlist runs out or the user interrupts."""
    if not app.play_selected():
        return 0
    if subtitles is not None:
        app.session.load_subtitle_file(subtitles)
    wait = sleep or time.sleep
    interval = POLL_INTERVAL if poll_interval is None else poll_interval
    failures = 0
    try:
        while True:
            for event in player.poll_events():
                app.handle_event(event)
            session = app.session
            if session.state is SessionState.ERROR:
                failures += 1
                reason = session.error.reason if session.error else "unknown error"
                print(f"Skipping {session.ref}: {reason}", file=sys.stderr)
                if failures >= len(app.navigator) or app.skip_failed() is None:
                    break
            elif session.state is SessionState.ENDED:
                break
            elif session.is_playing:
                failures = 0
            wait(interval)
    except KeyboardInterrupt:
        logger.info("Playback interrupted")
    finally:
        app.close()
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Entry point for the CLI."""
    init_logging()
    logger.info("App start")
    _install_excepthooks()

    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    cfg = load_config()

    try:
        sqlite_store = SQLiteStore(_resolve_db_path(args.db, cfg))
    except PersistenceError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    store = WriteBehindStore(sqlite_store)
    try:
        exit_code = _run(args, store, cfg)
    finally:
        store.close()
        sqlite_store.close()
    logger.info("App exit code=%s", exit_code)
    return exit_code


def _run(args: argparse.Namespace, store: KeyValueStore, cfg: AppConfig) -> int:
    navigator = PlaylistNavigator(store)
    history = WatchHistory(store)

    _add_paths(navigator, args.paths)
    if args.import_m3u is not None:
        imported = navigator.add_many(load_m3u_any(args.import_m3u))
        logger.info("Imported %d entries from %s", len(imported), args.import_m3u)
    if args.loop is not None:
        navigator.set_looping(args.loop == "on")
    if args.shuffle is not None:
        navigator.set_shuffling(args.shuffle == "on")
    if args.clear_watched:
        removed = navigator.remove_where(history.is_completed)
        print(f"Removed {removed} watched item(s)")
    if args.export_m3u is not None:
        save_m3u8(navigator.items, args.export_m3u)
        print(f"Saved {len(navigator)} item(s) to {args.export_m3u}")
    if args.list:
        _print_playlist(navigator, history, Console())

    if args.no_play or args.list or args.export_m3u is not None:
        return 0
    if navigator.is_empty():
        print("Playlist is empty", file=sys.stderr)
        return 0

    try:
        player = VlcPlayer()
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    app = PlayerApp(store, player, config=cfg)
    return _run_playback(app, player, args.subtitles)


if __name__ == "__main__":
    raise SystemExit(main())

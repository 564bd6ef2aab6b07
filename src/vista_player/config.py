"""Configuration persistence for Vista Player."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

APP_DIR_NAME = "vista-player"


@dataclass(frozen=True)
class AppConfig:
    """Immutable user configuration loaded from disk."""

    snapshot_interval: float = 5.0
    resume_playback: bool = True
    seek_step_small: float = 5.0
    seek_step_large: float = 10.0
    volume_step: float = 0.1
    store_path: Optional[str] = None
    last_open_dir: Optional[str] = None


def get_config_dir(app_name: str = APP_DIR_NAME) -> Path:
    """Return the per-user config directory for the current platform."""
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Roaming"
        return _ensure_dir(root / app_name)
    if os.name == "posix" and _is_macos():
        return _ensure_dir(Path.home() / "Library" / "Application Support" / app_name)
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return _ensure_dir(root / app_name)


def get_config_path() -> Path:
    """Return the full config file path."""
    return get_config_dir() / "config.json"


def load_config() -> AppConfig:
    """Load configuration from disk, falling back to defaults on error."""
    path = get_config_path()
    if not path.exists():
        return AppConfig()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.exception("Failed to load config from %s", path)
        return AppConfig()
    if not isinstance(raw, dict):
        logger.warning("Ignoring config with unexpected shape in %s", path)
        return AppConfig()
    return _config_from_mapping(raw)


def save_config(cfg: AppConfig) -> None:
    """Persist configuration to disk atomically."""
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(".tmp")
    data = {
        "snapshot_interval": cfg.snapshot_interval,
        "resume_playback": cfg.resume_playback,
        "seek_step_small": cfg.seek_step_small,
        "seek_step_large": cfg.seek_step_large,
        "volume_step": cfg.volume_step,
        "store_path": cfg.store_path,
        "last_open_dir": cfg.last_open_dir,
    }
    temp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    os.replace(temp_path, path)


def _ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _is_macos() -> bool:
    return os.uname().sysname == "Darwin" if hasattr(os, "uname") else False


def _get_bool(raw: dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    return value if isinstance(value, bool) else default


def _get_float(
    raw: dict[str, Any],
    key: str,
    default: float,
    *,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    """Fetch a numeric value with optional clamping."""
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        value = default
    value = float(value)
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value


def _get_optional_str(raw: dict[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        return None
    return value


def _config_from_mapping(raw: dict[str, Any]) -> AppConfig:
    """Normalize raw JSON data into an AppConfig."""
    return AppConfig(
        snapshot_interval=_get_float(raw, "snapshot_interval", 5.0, min_value=0.5),
        resume_playback=_get_bool(raw, "resume_playback", True),
        seek_step_small=_get_float(raw, "seek_step_small", 5.0, min_value=0.0),
        seek_step_large=_get_float(raw, "seek_step_large", 10.0, min_value=0.0),
        volume_step=_get_float(raw, "volume_step", 0.1, min_value=0.0, max_value=1.0),
        store_path=_get_optional_str(raw, "store_path"),
        last_open_dir=_get_optional_str(raw, "last_open_dir"),
    )

"""Configuration helpers for the live map viewer."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .connection import ReconnectPolicy

SERVER_URL_ENV_VAR = "LIVE_MAP_SERVER_URL"
TILES_DIR_ENV_VAR = "LIVE_MAP_TILES_DIR"
DEBUG_ENV_VAR = "LIVE_MAP_DEBUG"
DEFAULT_SERVER_URL = "ws://127.0.0.1:3000/ws"


@dataclass(frozen=True)
class ViewerSettings:
    """Values used to bootstrap the viewer window and its connection."""

    server_url: str = DEFAULT_SERVER_URL
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0
    stale_after: float = 30.0
    sweep_interval: float = 5.0
    tiles_dir: Optional[Path] = None
    zoom_intensity: float = 0.1
    label_min_zoom: float = 0.75
    label_max_zoom: float = 300.0
    log_retention: int = 5
    debug: bool = False

    def reconnect_policy(self) -> ReconnectPolicy:
        return ReconnectPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            factor=self.backoff_factor,
            max_delay=self.max_delay,
        )


def _float(value: Any, fallback: float, *, minimum: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if number != number or number < minimum:  # NaN or out of range
        return fallback
    return number


def _int(value: Any, fallback: int, *, minimum: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        number = int(value)
    except (TypeError, ValueError):
        return fallback
    return number if number >= minimum else fallback


def _bool(value: Any, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _read_json(settings_path: Optional[Path]) -> Dict[str, Any]:
    if settings_path is None:
        return {}
    try:
        raw = settings_path.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_viewer_settings(
    settings_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ViewerSettings:
    """Read viewer settings from a JSON file if it exists, then apply env overrides."""
    environ = os.environ if env is None else env
    defaults = ViewerSettings()
    data = _read_json(settings_path)

    server_url = data.get("server_url")
    if not isinstance(server_url, str) or not server_url.strip():
        server_url = defaults.server_url
    tiles_value = data.get("tiles_dir")
    tiles_dir = Path(tiles_value).expanduser() if isinstance(tiles_value, str) and tiles_value else None

    label_min = _float(data.get("label_min_zoom"), defaults.label_min_zoom)
    label_max = _float(data.get("label_max_zoom"), defaults.label_max_zoom)
    if label_max < label_min:
        label_min, label_max = defaults.label_min_zoom, defaults.label_max_zoom

    backoff_factor = _float(data.get("backoff_factor"), defaults.backoff_factor, minimum=1.0)

    settings = ViewerSettings(
        server_url=server_url.strip(),
        max_attempts=_int(data.get("max_attempts"), defaults.max_attempts),
        base_delay=_float(data.get("base_delay"), defaults.base_delay),
        backoff_factor=backoff_factor,
        max_delay=_float(data.get("max_delay"), defaults.max_delay),
        stale_after=_float(data.get("stale_after"), defaults.stale_after, minimum=1.0),
        sweep_interval=_float(data.get("sweep_interval"), defaults.sweep_interval, minimum=0.1),
        tiles_dir=tiles_dir,
        zoom_intensity=min(0.9, _float(data.get("zoom_intensity"), defaults.zoom_intensity, minimum=0.01)),
        label_min_zoom=label_min,
        label_max_zoom=label_max,
        log_retention=max(1, _int(data.get("log_retention"), defaults.log_retention)),
        debug=_bool(data.get("debug"), defaults.debug),
    )

    env_url = environ.get(SERVER_URL_ENV_VAR)
    if env_url and env_url.strip():
        settings = replace(settings, server_url=env_url.strip())
    env_tiles = environ.get(TILES_DIR_ENV_VAR)
    if env_tiles:
        settings = replace(settings, tiles_dir=Path(env_tiles).expanduser())
    env_debug = environ.get(DEBUG_ENV_VAR)
    if env_debug is not None:
        settings = replace(settings, debug=_bool(env_debug, settings.debug))
    return settings

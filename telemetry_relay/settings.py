"""Configuration helpers for the telemetry relay server."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

TOKEN_ENV_VAR = "LIVE_MAP_INGEST_TOKEN"
HOST_ENV_VAR = "LIVE_MAP_HOST"
PORT_ENV_VAR = "LIVE_MAP_PORT"
DEBUG_ENV_VAR = "LIVE_MAP_DEBUG"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class RelaySettings:
    """Values used to run the ingest endpoint and broadcast relay."""

    host: str = "0.0.0.0"
    port: int = 3000
    token: Optional[str] = None
    send_timeout: float = 5.0
    log_retention: int = 5
    debug: bool = False

    @property
    def token_configured(self) -> bool:
        return bool(self.token)


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUTHY:
            return True
        if token in _FALSY:
            return False
    return fallback


def _coerce_int(value: Any, fallback: int, *, minimum: int) -> int:
    try:
        numeric = int(value)
    except (TypeError, ValueError):
        return fallback
    return max(minimum, numeric)


def _coerce_float(value: Any, fallback: float, *, minimum: float) -> float:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return fallback
    if numeric != numeric:  # NaN
        return fallback
    return max(minimum, numeric)


def _read_settings_file(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    try:
        raw = path.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_relay_settings(
    settings_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> RelaySettings:
    """Read relay settings from an optional JSON file, then apply env overrides.

    Environment variables win over the file. Invalid values fall back to the
    defaults rather than failing startup; a missing token leaves every ingest
    request unauthorized.
    """
    environ = os.environ if env is None else env
    defaults = RelaySettings()
    data = _read_settings_file(settings_path)

    host = str(data.get("host") or defaults.host)
    port = _coerce_int(data.get("port", defaults.port), defaults.port, minimum=0)
    token_value = data.get("token")
    token = str(token_value) if isinstance(token_value, (str, int)) and str(token_value) else None
    send_timeout = _coerce_float(data.get("send_timeout", defaults.send_timeout), defaults.send_timeout, minimum=0.1)
    retention = _coerce_int(data.get("log_retention", defaults.log_retention), defaults.log_retention, minimum=1)
    debug = _coerce_bool(data.get("debug"), defaults.debug)

    settings = RelaySettings(
        host=host,
        port=port,
        token=token,
        send_timeout=send_timeout,
        log_retention=retention,
        debug=debug,
    )

    env_token = environ.get(TOKEN_ENV_VAR)
    if env_token:
        settings = replace(settings, token=env_token)
    env_host = environ.get(HOST_ENV_VAR)
    if env_host:
        settings = replace(settings, host=env_host.strip())
    env_port = environ.get(PORT_ENV_VAR)
    if env_port:
        settings = replace(settings, port=_coerce_int(env_port, settings.port, minimum=0))
    env_debug = environ.get(DEBUG_ENV_VAR)
    if env_debug is not None:
        settings = replace(settings, debug=_coerce_bool(env_debug, settings.debug))
    return settings

from __future__ import annotations

import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, List, Optional

LOGGER_NAME = "LiveMap.Relay"
LOG_DIR_ENV_VAR = "LIVE_MAP_LOG_DIR"
LOG_FILENAME = "relay.log"
# uvicorn.error and uvicorn.access propagate into "uvicorn".
SERVER_LOGGERS = ("uvicorn",)
_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def resolve_logs_dir(log_dir_name: str = "telemetry-relay") -> Path:
    """Directory for relay logs: ``LIVE_MAP_LOG_DIR``, then ``./logs``, then the temp dir."""
    candidates: List[Path] = []
    env_override = os.environ.get(LOG_DIR_ENV_VAR)
    if env_override:
        candidates.append(Path(env_override).expanduser())
    candidates.append(Path.cwd() / "logs")

    for base in candidates:
        target = base / log_dir_name
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError:
            continue
        return target

    temp_fallback = Path(tempfile.gettempdir()) / "live-map" / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def build_rotating_log_handler(
    log_dir: Path,
    filename: str,
    *,
    retention: int,
    max_bytes: int = 1024 * 1024,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Rotating handler that accepts every record; loggers decide the level."""
    backup_count = max(0, max(1, retention) - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_dir / filename, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    if formatter is not None:
        handler.setFormatter(formatter)
    handler.setLevel(logging.DEBUG)
    return handler


def uvicorn_log_level(debug: bool) -> str:
    return "debug" if debug else "info"


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def configure_logging(
    *,
    debug: bool,
    retention: int,
    log_dir: Optional[Path] = None,
    console: bool = True,
    server_loggers: Iterable[str] = SERVER_LOGGERS,
) -> logging.Logger:
    """Send the relay's own records and uvicorn's server/access records to one console and one file.

    uvicorn must then be started with ``log_config=None`` so it keeps these handlers.
    """
    formatter = logging.Formatter(_LOG_FORMAT)
    handlers: List[logging.Handler] = []
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        handlers.append(stream_handler)
    file_error: Optional[OSError] = None
    try:
        target_dir = log_dir if log_dir is not None else resolve_logs_dir()
        handlers.append(build_rotating_log_handler(target_dir, LOG_FILENAME, retention=retention, formatter=formatter))
    except OSError as exc:
        file_error = exc

    level = logging.DEBUG if debug else logging.INFO
    logger = logging.getLogger(LOGGER_NAME)
    for name in (LOGGER_NAME, *server_loggers):
        target = logging.getLogger(name)
        _reset_handlers(target)
        target.setLevel(level)
        target.propagate = False
        for handler in handlers:
            target.addHandler(handler)

    if file_error is not None:
        logger.warning("File logging unavailable; continuing with console only: %s", file_error)
    return logger

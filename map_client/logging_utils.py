from __future__ import annotations

import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, List, Optional

LOGGER_NAME = "LiveMap.Client"
LOG_DIR_ENV_VAR = "LIVE_MAP_LOG_DIR"
LOG_FILENAME = "map-client.log"
# Handshake and protocol errors from the websockets library end up in the viewer log too.
LIBRARY_LOGGERS = {"websockets": logging.WARNING}


def resolve_logs_dir(log_dir_name: str = "map-client") -> Path:
    """
    Resolve the per-user directory for viewer logs.

    Strategy:
    - Use LIVE_MAP_LOG_DIR if set.
    - Fall back to XDG state/cache locations, then `cwd/logs/<log_dir_name>`.
    - Final fallback: tempdir/<log_dir_name>.
    """
    candidates: List[Path] = []
    env_override = os.environ.get(LOG_DIR_ENV_VAR)
    if env_override:
        candidates.append(Path(env_override).expanduser())
    state_home = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    cache_home = Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))
    candidates.extend((state_home / "live-map" / "logs", cache_home / "live-map" / "logs", Path.cwd() / "logs"))

    for base in candidates:
        try:
            target = base / log_dir_name
            target.mkdir(parents=True, exist_ok=True)
            return target
        except OSError:
            continue

    temp_fallback = Path(tempfile.gettempdir()) / "live-map" / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def build_rotating_file_handler(
    log_dir: Path,
    filename: str = LOG_FILENAME,
    *,
    retention: int = 5,
    max_bytes: int = 512 * 1024,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    backup_count = max(0, max(1, retention) - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_dir / filename, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    if formatter is not None:
        handler.setFormatter(formatter)
    return handler


def resolve_log_level(debug_enabled: bool) -> int:
    """Return the level for the LiveMap.Client logger tree."""
    return logging.DEBUG if debug_enabled else logging.INFO


def configure_client_logging(*, debug: bool, retention: int, log_dir: Optional[Path] = None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolve_log_level(debug))
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    try:
        target_dir = log_dir if log_dir is not None else resolve_logs_dir()
        file_handler = build_rotating_file_handler(target_dir, retention=retention, formatter=formatter)
    except OSError as exc:
        logger.warning("Failed to initialise viewer log file: %s", exc)
        return logger
    logger.addHandler(file_handler)
    for name, level in LIBRARY_LOGGERS.items():
        library_logger = logging.getLogger(name)
        library_logger.setLevel(level)
        if file_handler not in library_logger.handlers:
            library_logger.addHandler(file_handler)
    return logger


def install_qt_message_handler(logger: logging.Logger) -> Callable[..., None]:
    """Forward Qt's own warnings (qWarning, qCritical, ...) into ``logger``."""
    from PyQt6.QtCore import QtMsgType, qInstallMessageHandler

    levels = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }

    def _handler(msg_type, _context, message: str) -> None:
        logger.log(levels.get(msg_type, logging.WARNING), "Qt: %s", message)

    qInstallMessageHandler(_handler)
    return _handler

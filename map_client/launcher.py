from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from PyQt6.QtWidgets import QApplication

from .client_config import ViewerSettings, load_viewer_settings
from .connection import ConnectionManager
from .logging_utils import configure_client_logging, install_qt_message_handler
from .map_window import MapWindow
from .paint_commands import TilePixmapCache
from .qt_timers import build_qt_timers
from .status_presenter import ConnectionBanner
from .world_model import WorldModel
from .ws_transport import WebSocketTransport

SETTINGS_ENV_VAR = "LIVE_MAP_VIEWER_SETTINGS"


def resolve_settings_path(arg_path: Optional[str]) -> Optional[Path]:
    if arg_path:
        return Path(arg_path).expanduser().resolve()
    env_override = os.getenv(SETTINGS_ENV_VAR)
    if env_override:
        return Path(env_override).expanduser().resolve()
    return None


def resolve_tiles_dir(arg_dir: Optional[str], settings: ViewerSettings) -> Optional[Path]:
    if arg_dir:
        return Path(arg_dir).expanduser().resolve()
    if settings.tiles_dir is not None:
        return settings.tiles_dir
    candidate = Path.cwd() / "images"
    return candidate if candidate.is_dir() else None


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Live map viewer")
    parser.add_argument("--server-url", help="Relay WebSocket URL (default ws://127.0.0.1:3000/ws)")
    parser.add_argument("--settings", help="Path to a JSON settings file")
    parser.add_argument("--tiles-dir", help="Directory holding row-R-column-C.png map tiles")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    settings_path = resolve_settings_path(args.settings)
    settings = load_viewer_settings(settings_path)
    if args.server_url:
        settings = replace(settings, server_url=args.server_url)
    if args.debug:
        settings = replace(settings, debug=True)
    tiles_dir = resolve_tiles_dir(args.tiles_dir, settings)

    logger = configure_client_logging(debug=settings.debug, retention=settings.log_retention)
    install_qt_message_handler(logger.getChild("Qt"))
    logger.info("Starting map viewer (pid=%s)", os.getpid())
    logger.debug(
        "Viewer settings: url=%s tiles=%s stale_after=%.1fs sweep=%.1fs attempts=%d",
        settings.server_url,
        tiles_dir,
        settings.stale_after,
        settings.sweep_interval,
        settings.max_attempts,
    )
    if tiles_dir is None:
        logger.warning("No map tile directory found; drawing markers on a blank background")

    app = QApplication(sys.argv)
    model = WorldModel(stale_after=settings.stale_after)
    window = MapWindow(model, settings, TilePixmapCache(tiles_dir))
    transport = WebSocketTransport()
    banner = ConnectionBanner(apply_fn=window.apply_banner, log_fn=logger.debug)
    manager = ConnectionManager(
        settings.server_url,
        transport.connect_session,
        build_qt_timers(window, logger),
        settings.reconnect_policy(),
        on_message=window.handle_message,
        on_state_changed=banner.update,
        on_sweep=window.handle_sweep,
        sweep_interval=settings.sweep_interval,
    )
    window.reconnect_requested.connect(manager.reconnect)

    window.show()
    manager.start()

    exit_code = app.exec()
    manager.stop()
    transport.stop()
    logger.info("Map viewer exiting with code %s", exit_code)
    return int(exit_code)

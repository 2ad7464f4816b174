from __future__ import annotations

import argparse
import os
from dataclasses import replace
from pathlib import Path
from typing import Optional

import uvicorn

from .app import create_app
from .logging_utils import configure_logging, uvicorn_log_level
from .settings import load_relay_settings

SETTINGS_ENV_VAR = "LIVE_MAP_RELAY_SETTINGS"


def resolve_settings_path(arg_path: Optional[str]) -> Optional[Path]:
    if arg_path:
        return Path(arg_path).expanduser().resolve()
    env_override = os.getenv(SETTINGS_ENV_VAR)
    if env_override:
        return Path(env_override).expanduser().resolve()
    return None


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Live map telemetry relay")
    parser.add_argument("--host", help="Interface to bind (default from settings: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to bind (default from settings: 3000)")
    parser.add_argument("--settings", help="Path to a JSON settings file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    settings_path = resolve_settings_path(args.settings)
    settings = load_relay_settings(settings_path)
    if args.host:
        settings = replace(settings, host=args.host)
    if args.port is not None:
        settings = replace(settings, port=args.port)
    if args.debug:
        settings = replace(settings, debug=True)

    logger = configure_logging(debug=settings.debug, retention=settings.log_retention)
    logger.info("Starting telemetry relay on %s:%d (pid=%s)", settings.host, settings.port, os.getpid())
    if settings_path is not None:
        logger.debug("Loaded relay settings from %s", settings_path)

    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=uvicorn_log_level(settings.debug),
        log_config=None,
    )
    logger.info("Telemetry relay exited")
    return 0

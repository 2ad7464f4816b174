import json
import logging

from telemetry_relay.logging_utils import (
    build_rotating_log_handler,
    configure_logging,
    resolve_logs_dir,
    uvicorn_log_level,
)
from telemetry_relay.settings import RelaySettings, load_relay_settings


def test_defaults_without_file_or_env():
    settings = load_relay_settings(None, env={})
    assert settings == RelaySettings()
    assert settings.port == 3000
    assert settings.token_configured is False


def test_file_values_are_read(tmp_path):
    path = tmp_path / "relay.json"
    path.write_text(
        json.dumps({"host": "127.0.0.1", "port": 8123, "token": "abc", "send_timeout": 2.5, "debug": "yes"}),
        encoding="utf-8",
    )
    settings = load_relay_settings(path, env={})
    assert settings.host == "127.0.0.1"
    assert settings.port == 8123
    assert settings.token == "abc"
    assert settings.send_timeout == 2.5
    assert settings.debug is True


def test_invalid_values_fall_back(tmp_path):
    path = tmp_path / "relay.json"
    path.write_text(json.dumps({"port": "abc", "send_timeout": "never", "log_retention": None}), encoding="utf-8")
    settings = load_relay_settings(path, env={})
    assert settings.port == 3000
    assert settings.send_timeout == 5.0
    assert settings.log_retention == 5


def test_unreadable_file_uses_defaults(tmp_path):
    path = tmp_path / "relay.json"
    path.write_text("{broken", encoding="utf-8")
    assert load_relay_settings(path, env={}) == RelaySettings()
    assert load_relay_settings(tmp_path / "missing.json", env={}) == RelaySettings()


def test_environment_overrides_file(tmp_path):
    path = tmp_path / "relay.json"
    path.write_text(json.dumps({"token": "from-file", "port": 9000}), encoding="utf-8")
    env = {"LIVE_MAP_INGEST_TOKEN": "from-env", "LIVE_MAP_PORT": "9100", "LIVE_MAP_DEBUG": "1"}
    settings = load_relay_settings(path, env=env)
    assert settings.token == "from-env"
    assert settings.port == 9100
    assert settings.debug is True


def test_log_dir_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("LIVE_MAP_LOG_DIR", str(tmp_path))
    assert resolve_logs_dir() == tmp_path / "telemetry-relay"


def test_log_dir_defaults_to_working_directory(tmp_path, monkeypatch):
    monkeypatch.delenv("LIVE_MAP_LOG_DIR", raising=False)
    monkeypatch.chdir(tmp_path)
    assert resolve_logs_dir() == tmp_path / "logs" / "telemetry-relay"


def test_rotating_handler_respects_retention(tmp_path):
    handler = build_rotating_log_handler(tmp_path, "relay.log", retention=3)
    try:
        assert handler.backupCount == 2
        assert handler.level == logging.DEBUG
        assert handler.baseFilename.endswith("relay.log")
    finally:
        handler.close()


def test_uvicorn_level_follows_debug_flag():
    assert uvicorn_log_level(True) == "debug"
    assert uvicorn_log_level(False) == "info"


def test_configure_logging_routes_server_records_to_relay_log(tmp_path):
    logger = configure_logging(debug=False, retention=2, log_dir=tmp_path, console=False)
    server_logger = logging.getLogger("uvicorn")
    try:
        assert logger.level == logging.INFO
        assert server_logger.propagate is False
        assert server_logger.handlers == logger.handlers

        logging.getLogger("uvicorn.access").info("GET /status 200")
        logger.getChild("App").debug("hidden at info level")
        for handler in logger.handlers:
            handler.flush()
        text = (tmp_path / "relay.log").read_text(encoding="utf-8")
        assert "GET /status 200" in text
        assert "hidden at info level" not in text
    finally:
        for name in ("LiveMap.Relay", "uvicorn"):
            target = logging.getLogger(name)
            for handler in list(target.handlers):
                target.removeHandler(handler)
                handler.close()
            target.propagate = True
            target.setLevel(logging.NOTSET)

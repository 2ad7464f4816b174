from types import SimpleNamespace

from map_client.connection import ConnectionState, ConnectionStatus
from map_client.status_presenter import BannerView, ConnectionBanner


def _status(state, attempts=0, retry_in=None, reason=None):
    return ConnectionStatus(state=state, attempts=attempts, max_attempts=3, retry_in=retry_in, reason=reason)


def _banner():
    calls = SimpleNamespace(applied=[], logs=[])
    banner = ConnectionBanner(
        apply_fn=lambda view: calls.applied.append(view),
        log_fn=lambda *args: calls.logs.append(args),
    )
    return banner, calls


def test_open_hides_banner_and_resets_button():
    view = ConnectionBanner.format_status(_status(ConnectionState.OPEN))
    assert view == BannerView(False, "", "Reconnect", True)


def test_initial_connect_keeps_banner_hidden_but_disables_button():
    view = ConnectionBanner.format_status(_status(ConnectionState.CONNECTING))
    assert view.visible is False
    assert view.button_enabled is False
    assert view.button_text == "Connecting..."


def test_connecting_after_retry_shows_banner():
    view = ConnectionBanner.format_status(_status(ConnectionState.CONNECTING, attempts=2, reason="closed: reset"))
    assert view.visible is True
    assert view.button_enabled is False
    assert "attempt 2/3" in view.message


def test_retrying_shows_countdown_and_next_attempt():
    view = ConnectionBanner.format_status(_status(ConnectionState.CLOSED_RETRYING, attempts=1, retry_in=2.0))
    assert view.visible is True
    assert view.message == "Connection lost. Reconnecting in 2s (attempt 2/3)"
    assert view.button_enabled is True


def test_given_up_shows_reconnect_button():
    view = ConnectionBanner.format_status(_status(ConnectionState.CLOSED_GIVEN_UP, attempts=3))
    assert view.visible is True
    assert view.button_text == "Reconnect"
    assert view.button_enabled is True


def test_update_only_applies_changes():
    banner, calls = _banner()
    banner.update(_status(ConnectionState.OPEN))
    assert calls.applied == []  # already the default view

    banner.update(_status(ConnectionState.CLOSED_GIVEN_UP, attempts=3))
    banner.update(_status(ConnectionState.CLOSED_GIVEN_UP, attempts=3))
    assert len(calls.applied) == 1
    assert banner.view.visible is True
    assert len(calls.logs) == 1


def test_manual_reconnect_after_failure_keeps_banner_visible():
    view = ConnectionBanner.format_status(_status(ConnectionState.CONNECTING, reason="closed: reset"))
    assert view == BannerView(True, "Reconnecting to live map...", "Connecting...", False)

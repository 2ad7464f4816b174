import time

import pytest

from map_client.connection import TransportCallbacks

pytestmark = pytest.mark.pyqt_required


def _recording_callbacks(events):
    return TransportCallbacks(
        on_open=lambda: events.append(("open",)),
        on_message=lambda text: events.append(("message", text)),
        on_error=lambda reason: events.append(("error", reason)),
        on_close=lambda reason: events.append(("close", reason)),
    )


def test_signals_route_to_session_callbacks(qt_app):
    from map_client.ws_transport import WebSocketTransport

    transport = WebSocketTransport()
    events = []
    # Register a session without starting the loop by bypassing connect_session.
    transport._callbacks[7] = _recording_callbacks(events)  # type: ignore[attr-defined]

    transport.opened.emit(7)
    transport.message.emit(7, '{"jobId": "a"}')
    transport.closed.emit(7, "bye")
    transport.closed.emit(7, "again")

    assert events == [("open",), ("message", '{"jobId": "a"}'), ("close", "bye")]
    assert transport.active_sessions() == 0


def test_closed_session_receives_nothing(qt_app):
    from map_client.ws_transport import WebSocketTransport

    transport = WebSocketTransport()
    events = []
    transport._callbacks[3] = _recording_callbacks(events)  # type: ignore[attr-defined]

    transport.close_session(3)
    transport.failed.emit(3, "refused")

    assert events == []


def test_unreachable_relay_reports_failure(qt_app):
    from map_client.ws_transport import WebSocketTransport

    transport = WebSocketTransport(open_timeout=2.0)
    events = []
    transport.connect_session("ws://127.0.0.1:9/ws", _recording_callbacks(events))
    deadline = time.monotonic() + 5.0
    try:
        while not events and time.monotonic() < deadline:
            qt_app.processEvents()
            time.sleep(0.01)
    finally:
        transport.stop()

    assert events and events[0][0] in {"error", "close"}

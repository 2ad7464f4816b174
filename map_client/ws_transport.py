"""Async WebSocket sessions that forward relay frames to the Qt thread."""
from __future__ import annotations

import asyncio
import concurrent.futures
import itertools
import logging
import threading
from typing import Dict, Optional

import websockets
from PyQt6.QtCore import QObject, pyqtSignal
from websockets.exceptions import ConnectionClosed, WebSocketException

from .connection import TransportCallbacks

_LOGGER = logging.getLogger("LiveMap.Client.Transport")


class WebSocketSession:
    """Handle for one connection attempt; closing it cancels the attempt."""

    def __init__(self, transport: "WebSocketTransport", session_id: int) -> None:
        self._transport = transport
        self.session_id = session_id

    def close(self) -> None:
        self._transport.close_session(self.session_id)


class WebSocketTransport(QObject):
    """Runs relay sessions on a background asyncio loop.

    Lifecycle events are emitted as signals tagged with the session id and
    connected to slots on this object, so callbacks run on the Qt thread.
    """

    opened = pyqtSignal(int)
    message = pyqtSignal(int, str)
    failed = pyqtSignal(int, str)
    closed = pyqtSignal(int, str)

    def __init__(self, open_timeout: float = 10.0, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._open_timeout = open_timeout
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ready = threading.Event()
        self._ids = itertools.count(1)
        self._callbacks: Dict[int, TransportCallbacks] = {}
        self._futures: Dict[int, concurrent.futures.Future] = {}

        self.opened.connect(self._on_opened)
        self.message.connect(self._on_message)
        self.failed.connect(self._on_failed)
        self.closed.connect(self._on_closed)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._thread_main, name="LiveMap-Transport", daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout=5.0):
            raise RuntimeError("Transport loop failed to start in time")

    def stop(self) -> None:
        for session_id in list(self._futures):
            self.close_session(session_id)
        loop = self._loop
        if loop is not None and loop.is_running():
            loop.call_soon_threadsafe(loop.stop)
        if self._thread:
            self._thread.join(timeout=5.0)
        self._loop = None
        self._thread = None

    def connect_session(self, url: str, callbacks: TransportCallbacks) -> WebSocketSession:
        """Open a new session; matches the connection manager's transport factory."""
        self.start()
        loop = self._loop
        if loop is None:
            raise RuntimeError("Transport loop is not running")
        session_id = next(self._ids)
        self._callbacks[session_id] = callbacks
        future = asyncio.run_coroutine_threadsafe(self._run_session(session_id, url), loop)
        self._futures[session_id] = future
        _LOGGER.debug("Session #%d opening %s", session_id, url)
        return WebSocketSession(self, session_id)

    def close_session(self, session_id: int) -> None:
        self._callbacks.pop(session_id, None)
        future = self._futures.pop(session_id, None)
        if future is not None and not future.done():
            future.cancel()
            _LOGGER.debug("Session #%d cancelled", session_id)

    def active_sessions(self) -> int:
        return len(self._callbacks)

    # Background thread ----------------------------------------------------

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    async def _run_session(self, session_id: int, url: str) -> None:
        try:
            async with websockets.connect(url, open_timeout=self._open_timeout) as socket:
                self.opened.emit(session_id)
                async for frame in socket:
                    if isinstance(frame, bytes):
                        try:
                            frame = frame.decode("utf-8")
                        except UnicodeDecodeError as exc:
                            _LOGGER.warning("Failed to decode binary frame from relay: %s", exc)
                            continue
                    self.message.emit(session_id, frame)
            self.closed.emit(session_id, "closed by relay")
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as exc:
            self.closed.emit(session_id, str(exc) or "connection closed")
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            _LOGGER.debug("Session #%d failed: %s", session_id, exc)
            self.failed.emit(session_id, str(exc) or exc.__class__.__name__)

    # Qt thread slots --------------------------------------------------------

    def _on_opened(self, session_id: int) -> None:
        callbacks = self._callbacks.get(session_id)
        if callbacks is not None:
            callbacks.on_open()

    def _on_message(self, session_id: int, text: str) -> None:
        callbacks = self._callbacks.get(session_id)
        if callbacks is not None:
            callbacks.on_message(text)

    def _on_failed(self, session_id: int, reason: str) -> None:
        self._futures.pop(session_id, None)
        callbacks = self._callbacks.pop(session_id, None)
        if callbacks is not None:
            callbacks.on_error(reason)

    def _on_closed(self, session_id: int, reason: str) -> None:
        self._futures.pop(session_id, None)
        callbacks = self._callbacks.pop(session_id, None)
        if callbacks is not None:
            callbacks.on_close(reason)

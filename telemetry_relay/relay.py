"""Registry of connected map viewers and the fan-out used for every accepted update."""
from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Protocol, Set, Tuple

from starlette.websockets import WebSocket, WebSocketState

_LOGGER = logging.getLogger("LiveMap.Relay.Broadcast")


class ViewerConnection(Protocol):
    """Minimal surface the relay needs from a connected viewer."""

    def is_open(self) -> bool:
        ...

    async def send_text(self, message: str) -> None:
        ...

    async def close(self) -> None:
        ...


class WebSocketViewer:
    """Adapts a FastAPI/Starlette WebSocket to the viewer protocol."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        client = websocket.client
        self.peer = f"{client.host}:{client.port}" if client is not None else "unknown"

    def is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, message: str) -> None:
        await self._websocket.send_text(message)

    async def close(self) -> None:
        if self._websocket.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self._websocket.close()
        except RuntimeError as exc:
            _LOGGER.debug("Viewer %s already closed: %s", self.peer, exc)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"WebSocketViewer({self.peer})"


@dataclass(frozen=True)
class BroadcastResult:
    delivered: int = 0
    evicted: int = 0


@dataclass
class BroadcastRelay:
    """Fans JSON payloads out to every registered viewer.

    Viewers that report themselves closed, whose send fails, or whose send does
    not finish within ``send_timeout`` seconds are dropped from the registry.
    A failing viewer never prevents delivery to the others.
    """

    send_timeout: float = 5.0
    _viewers: Set[ViewerConnection] = field(default_factory=set, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)
    _pending: Set["asyncio.Task[BroadcastResult]"] = field(default_factory=set, init=False)

    def add(self, viewer: ViewerConnection) -> None:
        with self._lock:
            self._viewers.add(viewer)
            count = len(self._viewers)
        _LOGGER.info("Viewer connected (%d active)", count)

    def remove(self, viewer: ViewerConnection) -> bool:
        with self._lock:
            if viewer not in self._viewers:
                return False
            self._viewers.discard(viewer)
            count = len(self._viewers)
        _LOGGER.info("Viewer disconnected (%d active)", count)
        return True

    def viewers(self) -> Tuple[ViewerConnection, ...]:
        with self._lock:
            return tuple(self._viewers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._viewers)

    def publish(self, payload: Mapping[str, Any]) -> "asyncio.Task[BroadcastResult]":
        """Start a broadcast in the background and return without waiting on viewers.

        Must be called from the running event loop. The task is kept until it
        finishes so it cannot be garbage collected mid-send.
        """
        task = asyncio.get_running_loop().create_task(self.broadcast(payload))
        self._pending.add(task)
        task.add_done_callback(self._on_published)
        return task

    @property
    def pending_broadcasts(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every broadcast started by ``publish`` to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def broadcast(self, payload: Mapping[str, Any]) -> BroadcastResult:
        try:
            message = json.dumps(payload)
        except (TypeError, ValueError) as exc:
            _LOGGER.warning("Failed to encode broadcast payload to JSON: %s", exc)
            return BroadcastResult()

        targets = self.viewers()
        if not targets:
            return BroadcastResult()

        stale: List[ViewerConnection] = []
        sendable: List[ViewerConnection] = []
        for viewer in targets:
            if viewer.is_open():
                sendable.append(viewer)
            else:
                stale.append(viewer)

        outcomes = await asyncio.gather(*(self._send(viewer, message) for viewer in sendable))
        delivered = 0
        for viewer, ok in zip(sendable, outcomes):
            if ok:
                delivered += 1
            else:
                stale.append(viewer)

        evicted = 0
        for viewer in stale:
            if self.remove(viewer):
                evicted += 1
            await self._close_quietly(viewer)
        if evicted:
            _LOGGER.debug("Broadcast delivered to %d viewer(s); evicted %d", delivered, evicted)
        return BroadcastResult(delivered=delivered, evicted=evicted)

    async def close_all(self) -> None:
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        with self._lock:
            viewers = list(self._viewers)
            self._viewers.clear()
        for viewer in viewers:
            await self._close_quietly(viewer)

    # Internal helpers -----------------------------------------------------

    def _on_published(self, task: "asyncio.Task[BroadcastResult]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            _LOGGER.debug("Broadcast cancelled before completion")
            return
        exc = task.exception()
        if exc is not None:
            _LOGGER.warning("Broadcast failed: %s", exc)
            return
        result = task.result()
        _LOGGER.debug("Broadcast finished: delivered=%d evicted=%d", result.delivered, result.evicted)

    async def _send(self, viewer: ViewerConnection, message: str) -> bool:
        try:
            await asyncio.wait_for(viewer.send_text(message), timeout=self.send_timeout)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            _LOGGER.debug("Send to %r timed out after %.1fs", viewer, self.send_timeout)
            return False
        except Exception as exc:
            _LOGGER.debug("Send to %r failed: %s", viewer, exc)
            return False
        return True

    @staticmethod
    async def _close_quietly(viewer: ViewerConnection, timeout: Optional[float] = 1.0) -> None:
        try:
            await asyncio.wait_for(viewer.close(), timeout=timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            _LOGGER.debug("Closing %r failed: %s", viewer, exc)

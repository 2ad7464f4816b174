"""Reconnecting WebSocket session state machine for the map viewer."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

from .timers import ViewerTimers

_LOGGER = logging.getLogger("LiveMap.Client.Connection")


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED_RETRYING = "closed_retrying"
    CLOSED_GIVEN_UP = "closed_given_up"


@dataclass(frozen=True)
class ReconnectPolicy:
    """Bounded exponential backoff between reconnect attempts."""

    max_attempts: int = 3
    base_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must not be negative")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")
        if self.factor < 1.0:
            raise ValueError("factor must be at least 1")

    def delay_for(self, attempts: int) -> float:
        """Seconds to wait before the retry that follows ``attempts`` failed retries."""
        return min(self.max_delay, self.base_delay * (self.factor ** max(0, attempts)))


@dataclass(frozen=True)
class ConnectionStatus:
    state: ConnectionState
    attempts: int
    max_attempts: int
    retry_in: Optional[float] = None
    reason: Optional[str] = None

    @property
    def recovering(self) -> bool:
        """True once a connection has failed and not yet been re-established."""
        return self.reason is not None


@dataclass(frozen=True)
class TransportCallbacks:
    """Hooks a transport invokes; each set is bound to one connection attempt."""

    on_open: Callable[[], None]
    on_message: Callable[[str], None]
    on_error: Callable[[str], None]
    on_close: Callable[[str], None]


class Transport(Protocol):
    def close(self) -> None:
        ...


TransportFactory = Callable[[str, TransportCallbacks], Transport]


class ConnectionManager:
    """Keeps a single viewer socket open, retrying with backoff after failures.

    ``Connecting -> Open`` on open; ``Open/Connecting -> ClosedRetrying`` on a
    close or error while retries remain, otherwise ``ClosedGivenUp``. Every
    transport gets a generation number and events from older generations are
    dropped, so an error followed by a close is counted once.
    """

    def __init__(
        self,
        url: str,
        transport_factory: TransportFactory,
        timers: ViewerTimers,
        policy: Optional[ReconnectPolicy] = None,
        *,
        on_message: Callable[[Dict[str, Any]], Any],
        on_state_changed: Optional[Callable[[ConnectionStatus], None]] = None,
        on_sweep: Optional[Callable[[], None]] = None,
        sweep_interval: float = 5.0,
    ) -> None:
        self._url = url
        self._transport_factory = transport_factory
        self._timers = timers
        self._policy = policy or ReconnectPolicy()
        self._on_message = on_message
        self._on_state_changed = on_state_changed
        self._on_sweep = on_sweep
        self._sweep_interval_ms = int(max(0.05, sweep_interval) * 1000)

        self._state = ConnectionState.IDLE
        self._attempts = 0
        self._generation = 0
        self._transport: Optional[Transport] = None
        self._retry_in: Optional[float] = None
        self._last_reason: Optional[str] = None

    # Properties ---------------------------------------------------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def policy(self) -> ReconnectPolicy:
        return self._policy

    @property
    def generation(self) -> int:
        return self._generation

    def status(self) -> ConnectionStatus:
        return ConnectionStatus(
            state=self._state,
            attempts=self._attempts,
            max_attempts=self._policy.max_attempts,
            retry_in=self._retry_in,
            reason=self._last_reason,
        )

    # Public API ---------------------------------------------------------

    def start(self) -> None:
        if self._state is not ConnectionState.IDLE:
            return
        self._attempts = 0
        self._last_reason = None
        self._connect()

    def reconnect(self) -> None:
        """Manual reconnect: reset the counter and connect now unless already open."""
        self._timers.cancel_reconnect()
        self._attempts = 0
        self._retry_in = None
        if self._state is ConnectionState.OPEN:
            _LOGGER.debug("Reconnect requested while open; counter reset")
            return
        self._connect()

    def stop(self) -> None:
        self._timers.cancel_all()
        self._retire_transport()
        self._retry_in = None
        self._set_state(ConnectionState.IDLE)

    # Internal helpers -----------------------------------------------------

    def _connect(self) -> None:
        self._retire_transport()
        self._generation += 1
        generation = self._generation
        self._retry_in = None
        self._set_state(ConnectionState.CONNECTING)
        callbacks = TransportCallbacks(
            on_open=lambda: self._handle_open(generation),
            on_message=lambda text: self._handle_message(generation, text),
            on_error=lambda reason: self._handle_failure(generation, f"error: {reason}"),
            on_close=lambda reason: self._handle_failure(generation, f"closed: {reason}"),
        )
        _LOGGER.info("Connecting to %s (attempt %d/%d)", self._url, self._attempts, self._policy.max_attempts)
        try:
            transport = self._transport_factory(self._url, callbacks)
        except (OSError, ValueError, RuntimeError) as exc:
            _LOGGER.warning("Could not open transport to %s: %s", self._url, exc)
            self._handle_failure(generation, f"error: {exc}")
            return
        if generation == self._generation and self._state is not ConnectionState.IDLE:
            self._transport = transport
        else:
            transport.close()

    def _retire_transport(self) -> None:
        transport = self._transport
        self._transport = None
        self._generation += 1
        if transport is None:
            return
        try:
            transport.close()
        except (OSError, RuntimeError) as exc:
            _LOGGER.debug("Error closing transport: %s", exc)

    def _is_current(self, generation: int, event: str) -> bool:
        if generation != self._generation:
            _LOGGER.debug("Ignoring %s from superseded transport #%d (current #%d)", event, generation, self._generation)
            return False
        return True

    def _handle_open(self, generation: int) -> None:
        if not self._is_current(generation, "open") or self._state is not ConnectionState.CONNECTING:
            return
        self._attempts = 0
        self._last_reason = None
        self._timers.cancel_reconnect()
        if self._on_sweep is not None:
            self._timers.start_sweep(self._sweep_interval_ms, self._on_sweep)
        _LOGGER.info("Connected to %s", self._url)
        self._set_state(ConnectionState.OPEN)

    def _handle_message(self, generation: int, text: str) -> None:
        if not self._is_current(generation, "message") or self._state is not ConnectionState.OPEN:
            return
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            _LOGGER.warning("Dropped invalid JSON frame from relay: %s", exc)
            return
        if not isinstance(payload, dict):
            _LOGGER.debug("Dropped non-object frame from relay: %r", payload)
            return
        try:
            self._on_message(payload)
        except ValueError as exc:
            _LOGGER.warning("Ignored malformed update: %s", exc)

    def _handle_failure(self, generation: int, reason: str) -> None:
        if not self._is_current(generation, reason):
            return
        if self._state not in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return
        self._last_reason = reason
        self._timers.stop_sweep()
        self._retire_transport()
        if self._attempts < self._policy.max_attempts:
            delay = self._policy.delay_for(self._attempts)
            self._retry_in = delay
            self._timers.schedule_reconnect(int(delay * 1000), self._retry)
            _LOGGER.warning(
                "Connection to %s lost (%s); retrying in %.1fs (%d/%d)",
                self._url,
                reason,
                delay,
                self._attempts + 1,
                self._policy.max_attempts,
            )
            self._set_state(ConnectionState.CLOSED_RETRYING)
            return
        self._retry_in = None
        self._timers.cancel_reconnect()
        _LOGGER.warning("Connection to %s lost (%s); giving up after %d attempt(s)", self._url, reason, self._attempts)
        self._set_state(ConnectionState.CLOSED_GIVEN_UP)

    def _retry(self) -> None:
        if self._state is not ConnectionState.CLOSED_RETRYING:
            return
        self._attempts += 1
        self._connect()

    def _set_state(self, state: ConnectionState) -> None:
        previous = self._state
        self._state = state
        if previous is not state:
            _LOGGER.debug("Connection state %s -> %s", previous.value, state.value)
        if self._on_state_changed is not None:
            self._on_state_changed(self.status())

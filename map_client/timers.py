from __future__ import annotations

from typing import Callable, Optional

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]
LoggerFn = Callable[..., None]


def _noop_log(message: str, *args: object) -> None:
    return None


class ViewerTimers:
    """Owns the one-shot reconnect timer and the repeating stale sweep."""

    def __init__(
        self,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        logger: Optional[LoggerFn] = None,
    ) -> None:
        self._after = after
        self._after_cancel = after_cancel
        self._logger = logger or _noop_log

        self._reconnect_handle: object | None = None
        self._sweep_handle: object | None = None
        self._sweep_callback: Callable[[], None] | None = None
        self._sweep_interval_ms: int = 5000

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def sweep_active(self) -> bool:
        return self._sweep_callback is not None

    def schedule_reconnect(self, delay_ms: int, callback: Callable[[], None]) -> object:
        self.cancel_reconnect()
        delay = max(0, int(delay_ms))

        def _fire() -> None:
            self._reconnect_handle = None
            callback()

        self._reconnect_handle = self._after(delay, _fire)
        self._log("Reconnect scheduled in %dms", delay)
        return self._reconnect_handle

    def cancel_reconnect(self) -> None:
        handle = self._reconnect_handle
        self._reconnect_handle = None
        if handle is not None:
            self._cancel(handle)

    def start_sweep(self, interval_ms: int, callback: Callable[[], None]) -> object:
        self.stop_sweep()
        self._sweep_interval_ms = max(50, int(interval_ms))
        self._sweep_callback = callback
        self._sweep_handle = self._after(self._sweep_interval_ms, self._run_sweep)
        return self._sweep_handle

    def stop_sweep(self) -> None:
        self._sweep_callback = None
        handle = self._sweep_handle
        self._sweep_handle = None
        if handle is not None:
            self._cancel(handle)

    def cancel_all(self) -> None:
        self.cancel_reconnect()
        self.stop_sweep()

    def _run_sweep(self) -> None:
        self._sweep_handle = None
        try:
            if self._sweep_callback is not None:
                self._sweep_callback()
        finally:
            if self._sweep_callback is not None and self._sweep_handle is None:
                self._sweep_handle = self._after(self._sweep_interval_ms, self._run_sweep)

    def _cancel(self, handle: object) -> None:
        try:
            self._after_cancel(handle)
        except (RuntimeError, ValueError) as exc:
            self._log("Timer cancel failed: %s", exc)

    def _log(self, message: str, *args: object) -> None:
        try:
            self._logger(message, *args)
        except TypeError:
            self._logger(message % args if args else message)

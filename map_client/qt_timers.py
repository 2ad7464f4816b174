"""Qt event-loop backend for the viewer timers."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from PyQt6.QtCore import QObject, QTimer

from .timers import ViewerTimers


class QtTimerBackend(QObject):
    """``after``/``after_cancel`` pair backed by single-shot ``QTimer`` objects."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._active: Dict[int, QTimer] = {}

    def after(self, delay_ms: int, callback: Callable[[], None]) -> QTimer:
        timer = QTimer(self)
        timer.setSingleShot(True)
        key = id(timer)

        def _fire() -> None:
            self._active.pop(key, None)
            timer.deleteLater()
            callback()

        timer.timeout.connect(_fire)
        self._active[key] = timer
        timer.start(max(0, int(delay_ms)))
        return timer

    def after_cancel(self, handle: object) -> None:
        if not isinstance(handle, QTimer):
            raise ValueError(f"not a timer handle: {handle!r}")
        timer = self._active.pop(id(handle), None)
        if timer is None:
            return
        timer.stop()
        timer.deleteLater()

    def pending(self) -> int:
        return len(self._active)


def build_qt_timers(parent: Optional[QObject] = None, logger: Optional[logging.Logger] = None) -> ViewerTimers:
    backend = QtTimerBackend(parent)
    return ViewerTimers(
        after=backend.after,
        after_cancel=backend.after_cancel,
        logger=logger.debug if logger is not None else None,
    )

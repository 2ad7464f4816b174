from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional

from .connection import ConnectionState, ConnectionStatus

RECONNECT_LABEL = "Reconnect"
CONNECTING_LABEL = "Connecting..."


@dataclass(frozen=True)
class BannerView:
    visible: bool
    message: str
    button_text: str
    button_enabled: bool


class ConnectionBanner:
    """Turns connection status changes into banner/button state for the window."""

    def __init__(
        self,
        *,
        apply_fn: Callable[[BannerView], None],
        log_fn: Optional[Callable[..., None]] = None,
    ) -> None:
        self._apply = apply_fn
        self._log = log_fn or (lambda *_args: None)
        self._view: BannerView = BannerView(False, "", RECONNECT_LABEL, True)

    @property
    def view(self) -> BannerView:
        return self._view

    def update(self, status: ConnectionStatus) -> BannerView:
        view = self.format_status(status)
        if view == self._view:
            return view
        self._view = view
        self._log("Connection banner updated: visible=%s text='%s'", view.visible, view.message)
        self._apply(view)
        return view

    @staticmethod
    def format_status(status: ConnectionStatus) -> BannerView:
        state = status.state
        if state is ConnectionState.OPEN or state is ConnectionState.IDLE:
            return BannerView(False, "", RECONNECT_LABEL, True)
        if state is ConnectionState.CONNECTING:
            if not status.recovering:
                return BannerView(False, "", CONNECTING_LABEL, False)
            if status.attempts == 0:
                return BannerView(True, "Reconnecting to live map...", CONNECTING_LABEL, False)
            return BannerView(
                True,
                f"Reconnecting to live map (attempt {status.attempts}/{status.max_attempts})...",
                CONNECTING_LABEL,
                False,
            )
        if state is ConnectionState.CLOSED_RETRYING:
            seconds = int(math.ceil(status.retry_in or 0.0))
            return BannerView(
                True,
                f"Connection lost. Reconnecting in {seconds}s "
                f"(attempt {status.attempts + 1}/{status.max_attempts})",
                RECONNECT_LABEL,
                True,
            )
        return BannerView(True, "Disconnected from live map.", RECONNECT_LABEL, True)

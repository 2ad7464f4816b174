"""Map canvas widget and the main viewer window."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from PyQt6.QtCore import QEvent, QPointF, Qt, pyqtSignal
from PyQt6.QtGui import QColor, QMouseEvent, QPainter, QPaintEvent, QResizeEvent, QWheelEvent
from PyQt6.QtWidgets import (
    QComboBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QToolTip,
    QVBoxLayout,
    QWidget,
)

from .client_config import ViewerSettings
from .paint_commands import BACKGROUND_COLOR, QtMapPainterAdapter, TilePixmapCache
from .scene import build_scene, describe_player, render_scene, server_options
from .status_presenter import BannerView
from .viewport import ViewportEngine
from .world_model import ALL_SERVERS, PlayerSnapshot, WorldModel, short_server_label

_LOGGER = logging.getLogger("LiveMap.Client.Window")

DEFAULT_SIZE: Tuple[int, int] = (1280, 720)


class MapCanvas(QWidget):
    """Draws the map scene and turns mouse, wheel and touch input into viewport changes."""

    hovered_changed = pyqtSignal(str)

    def __init__(
        self,
        model: WorldModel,
        settings: ViewerSettings,
        tiles: TilePixmapCache,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._model = model
        self._settings = settings
        self._tiles = tiles
        self._viewport = ViewportEngine(*DEFAULT_SIZE)
        self._viewport.center_on_world(*self._viewport.layout.world_center)
        self._centered = False
        self._server_filter = ALL_SERVERS
        self._hovered: Optional[PlayerSnapshot] = None
        self.setMouseTracking(True)
        self.setAttribute(Qt.WidgetAttribute.WA_AcceptTouchEvents, True)
        self.setMinimumSize(320, 240)

    @property
    def viewport(self) -> ViewportEngine:
        return self._viewport

    @property
    def server_filter(self) -> str:
        return self._server_filter

    @property
    def hovered(self) -> Optional[PlayerSnapshot]:
        return self._hovered

    def set_server_filter(self, server_filter: str) -> None:
        resolved = self._model.resolve_filter(server_filter)
        if resolved == self._server_filter:
            return
        self._server_filter = resolved
        self._set_hovered(None)
        self.update()

    def visible_players(self) -> Tuple[PlayerSnapshot, ...]:
        return self._model.all_players(self._server_filter)

    def hover_at(self, x: float, y: float) -> Optional[PlayerSnapshot]:
        player = self._viewport.player_at(x, y, self.visible_players())
        self._set_hovered(player)
        return player

    def tooltip_text(self) -> Optional[str]:
        player = self._hovered
        if player is None:
            return None
        label = None
        if self._server_filter == ALL_SERVERS:
            job_id = self._model.server_of(player)
            label = short_server_label(job_id) if job_id is not None else "Unknown"
        return describe_player(player, label)

    def refresh(self) -> None:
        self._server_filter = self._model.resolve_filter(self._server_filter)
        hovered = self._hovered
        if hovered is not None:
            # Rosters are replaced wholesale; follow the player to the new snapshot.
            current = next((p for p in self.visible_players() if p.username == hovered.username), None)
            if current is None:
                self._set_hovered(None)
            else:
                self._hovered = current
        self.update()

    # Qt events ----------------------------------------------------------

    def paintEvent(self, event: QPaintEvent) -> None:  # pragma: no cover - exercised via Qt
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), QColor(BACKGROUND_COLOR))
            hovered_name = self._hovered.username if self._hovered is not None else None
            scene = build_scene(
                self._viewport,
                self.visible_players(),
                hovered=hovered_name,
                tiles_available=self._tiles.available,
                label_zoom_range=(self._settings.label_min_zoom, self._settings.label_max_zoom),
            )
            render_scene(QtMapPainterAdapter(painter, self._tiles), scene)
        finally:
            painter.end()

    def resizeEvent(self, event: QResizeEvent) -> None:
        size = event.size()
        if size.width() > 0 and size.height() > 0:
            self._viewport.resize(size.width(), size.height())
            if not self._centered:
                self._viewport.center_on_world(*self._viewport.layout.world_center)
                self._centered = True
        super().resizeEvent(event)

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            self._viewport.begin_drag(pos.x(), pos.y())
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        pos = event.position()
        if self._viewport.dragging:
            self._viewport.drag_to(pos.x(), pos.y())
            self.update()
            return
        previous = self._hovered
        player = self.hover_at(pos.x(), pos.y())
        text = self.tooltip_text()
        if text:
            QToolTip.showText(event.globalPosition().toPoint(), text, self)
        elif previous is not None:
            QToolTip.hideText()
        if player is not previous:
            self.update()

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self._viewport.end_drag()
            self.unsetCursor()
            event.accept()
            return
        super().mouseReleaseEvent(event)

    def leaveEvent(self, event: QEvent) -> None:
        self._viewport.end_drag()
        if self._hovered is not None:
            self._set_hovered(None)
            QToolTip.hideText()
            self.update()
        super().leaveEvent(event)

    def wheelEvent(self, event: QWheelEvent) -> None:
        delta = event.angleDelta().y()
        if delta == 0:
            event.ignore()
            return
        pos = event.position()
        factor = ViewportEngine.wheel_factor(delta, self._settings.zoom_intensity)
        self._viewport.zoom_at(pos.x(), pos.y(), factor)
        self.update()
        event.accept()

    def event(self, event: QEvent) -> bool:
        kind = event.type()
        if kind in (QEvent.Type.TouchBegin, QEvent.Type.TouchUpdate, QEvent.Type.TouchEnd, QEvent.Type.TouchCancel):
            self._handle_touch(event)
            return True
        return super().event(event)

    # Internal helpers -----------------------------------------------------

    def _handle_touch(self, event: Any) -> None:  # pragma: no cover - needs touch hardware
        points = [point.position() for point in event.points()]
        kind = event.type()
        if kind in (QEvent.Type.TouchEnd, QEvent.Type.TouchCancel):
            self._viewport.end_pinch()
            self._viewport.end_drag()
            return
        if len(points) >= 2:
            first = (points[0].x(), points[0].y())
            second = (points[1].x(), points[1].y())
            if not self._viewport.pinching:
                self._viewport.begin_pinch(first, second)
            else:
                self._viewport.pinch_to(first, second)
                self.update()
            return
        if len(points) == 1:
            point: QPointF = points[0]
            if self._viewport.pinching:
                self._viewport.end_pinch()
            if not self._viewport.dragging:
                self._viewport.begin_drag(point.x(), point.y())
            else:
                self._viewport.drag_to(point.x(), point.y())
                self.update()

    def _set_hovered(self, player: Optional[PlayerSnapshot]) -> None:
        if player is self._hovered:
            return
        self._hovered = player
        self.hovered_changed.emit(player.username if player is not None else "")


class MapWindow(QMainWindow):
    """Main viewer window: server selector, player count, connection banner and canvas."""

    reconnect_requested = pyqtSignal()

    def __init__(
        self,
        model: WorldModel,
        settings: ViewerSettings,
        tiles: TilePixmapCache,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._model = model
        self.setWindowTitle("Live Map")
        self.resize(*DEFAULT_SIZE)

        self.server_select = QComboBox()
        self.server_select.currentIndexChanged.connect(self._on_server_selected)
        self.player_count = QLabel("Players: 0")

        toolbar = QHBoxLayout()
        toolbar.addWidget(self.server_select)
        toolbar.addWidget(self.player_count)
        toolbar.addStretch(1)

        self.banner = QFrame()
        self.banner.setObjectName("connectionBanner")
        self.banner.setStyleSheet("#connectionBanner { background-color: #8B1E1E; color: white; }")
        self.banner_label = QLabel("")
        self.reconnect_button = QPushButton("Reconnect")
        self.reconnect_button.clicked.connect(self.reconnect_requested)
        banner_layout = QHBoxLayout(self.banner)
        banner_layout.addWidget(self.banner_label, 1)
        banner_layout.addWidget(self.reconnect_button)
        self.banner.setVisible(False)

        self.canvas = MapCanvas(model, settings, tiles)

        root = QWidget()
        layout = QVBoxLayout(root)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addLayout(toolbar)
        layout.addWidget(self.banner)
        layout.addWidget(self.canvas, 1)
        self.setCentralWidget(root)
        self._refresh_servers()

    # Callbacks from the connection layer ----------------------------------

    def handle_message(self, payload: Dict[str, Any]) -> None:
        self._model.apply_message(payload)
        self.refresh()

    def handle_sweep(self) -> None:
        if self._model.prune_stale():
            self.refresh()

    def apply_banner(self, view: BannerView) -> None:
        self.banner_label.setText(view.message)
        self.banner.setVisible(view.visible)
        self.reconnect_button.setText(view.button_text)
        self.reconnect_button.setEnabled(view.button_enabled)

    def refresh(self) -> None:
        self._refresh_servers()
        self.canvas.refresh()

    # Internal helpers -----------------------------------------------------

    def _refresh_servers(self) -> None:
        selected = self._model.resolve_filter(self.canvas.server_filter)
        options = server_options(self._model)
        self.server_select.blockSignals(True)
        try:
            self.server_select.clear()
            for value, text in options:
                self.server_select.addItem(text, value)
            index = self.server_select.findData(selected)
            self.server_select.setCurrentIndex(max(0, index))
        finally:
            self.server_select.blockSignals(False)
        self.canvas.set_server_filter(selected)
        self.player_count.setText(f"Players: {len(self._model.all_players(selected))}")

    def _on_server_selected(self, index: int) -> None:
        value = self.server_select.itemData(index)
        if not isinstance(value, str):
            return
        _LOGGER.debug("Server filter changed to %s", value)
        self.canvas.set_server_filter(value)
        self.player_count.setText(f"Players: {len(self._model.all_players(self.canvas.server_filter))}")

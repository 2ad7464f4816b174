"""Qt painter adapter and tile cache used to replay map scenes."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Set, Tuple

from PyQt6.QtCore import QPointF, QRectF, Qt
from PyQt6.QtGui import QBrush, QColor, QFont, QFontMetricsF, QPainter, QPen, QPixmap, QTransform

from .scene import MapPainterAdapter
from .transform import Transform
from .world_layout import DEFAULT_LAYOUT, MapLayout

_LOGGER = logging.getLogger("LiveMap.Client.Paint")

BACKGROUND_COLOR = "#0E1116"


class TilePixmapCache:
    """Loads ``row-R-column-C.png`` tiles on first use and remembers misses."""

    def __init__(self, tiles_dir: Optional[Path], layout: MapLayout = DEFAULT_LAYOUT) -> None:
        self._tiles_dir = tiles_dir
        self._layout = layout
        self._pixmaps: Dict[Tuple[int, int], QPixmap] = {}
        self._missing: Set[Tuple[int, int]] = set()

    @property
    def tiles_dir(self) -> Optional[Path]:
        return self._tiles_dir

    def get(self, row: int, col: int) -> Optional[QPixmap]:
        key = (row, col)
        cached = self._pixmaps.get(key)
        if cached is not None:
            return cached
        if key in self._missing or self._tiles_dir is None:
            return None
        path = self._tiles_dir / self._layout.tile_filename(row, col)
        pixmap = QPixmap(str(path))
        if pixmap.isNull():
            self._missing.add(key)
            _LOGGER.warning("Failed to load map tile %s", path)
            return None
        self._pixmaps[key] = pixmap
        return pixmap

    def available(self, row: int, col: int) -> bool:
        return self.get(row, col) is not None

    def loaded_count(self) -> int:
        return len(self._pixmaps)


class QtMapPainterAdapter(MapPainterAdapter):
    def __init__(self, painter: QPainter, tiles: TilePixmapCache, *, font_family: str = "Inter") -> None:
        self._painter = painter
        self._tiles = tiles
        self._font_family = font_family
        self._painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)

    def set_transform(self, transform: Transform) -> None:
        self._painter.setTransform(QTransform(*transform.as_tuple()))

    def clear_rect(self, x: float, y: float, width: float, height: float) -> None:
        self._painter.fillRect(QRectF(x, y, width, height), QColor(BACKGROUND_COLOR))

    def draw_tile(self, row: int, col: int, x: float, y: float, width: float, height: float) -> None:
        pixmap = self._tiles.get(row, col)
        if pixmap is None:
            return
        self._painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, False)
        self._painter.drawPixmap(QRectF(x, y, width, height), pixmap, QRectF(pixmap.rect()))
        self._painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)

    def draw_marker(self, x: float, y: float, radius: float, fill: str, outline: str, outline_width: float) -> None:
        pen = QPen(QColor(outline))
        pen.setWidthF(outline_width)
        self._painter.setPen(pen)
        self._painter.setBrush(QBrush(QColor(fill)))
        self._painter.drawEllipse(QPointF(x, y), radius, radius)

    def draw_label(self, text: str, x: float, y: float, font_size: float, color: str) -> None:
        font = QFont(self._font_family)
        font.setPointSizeF(font_size)
        self._painter.setFont(font)
        self._painter.setPen(QColor(color))
        self._painter.setBrush(Qt.BrushStyle.NoBrush)
        width = QFontMetricsF(font).horizontalAdvance(text)
        self._painter.drawText(QPointF(x - width / 2.0, y), text)

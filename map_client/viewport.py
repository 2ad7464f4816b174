"""Helpers for mapping world coordinates onto the zoomable map canvas."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Tuple, TypeVar

from .transform import Transform
from .world_layout import DEFAULT_LAYOUT, MapLayout

Point = Tuple[float, float]


class Positioned(Protocol):
    x: float
    y: float


P = TypeVar("P", bound=Positioned)


def _normalise_dimensions(width: float, height: float) -> Tuple[float, float]:
    if width <= 0 or height <= 0:
        raise ValueError("canvas dimensions must be positive")
    return float(width), float(height)


@dataclass(frozen=True)
class BaseMapping:
    """Resolved fit of the map image into the canvas before any user zoom."""

    layout: MapLayout
    canvas_size: Tuple[float, float]
    scale: float
    offset: Tuple[float, float]
    scaled_size: Tuple[float, float]

    def world_to_canvas(self, world_x: float, world_y: float) -> Point:
        rel_x = (world_x - self.layout.world_left) / self.layout.world_width
        rel_y = (world_y - self.layout.world_top) / self.layout.world_height
        return (
            self.offset[0] + rel_x * self.scaled_size[0],
            self.offset[1] + rel_y * self.scaled_size[1],
        )

    def canvas_to_world(self, canvas_x: float, canvas_y: float) -> Point:
        rel_x = (canvas_x - self.offset[0]) / self.scaled_size[0]
        rel_y = (canvas_y - self.offset[1]) / self.scaled_size[1]
        return (
            self.layout.world_left + rel_x * self.layout.world_width,
            self.layout.world_top + rel_y * self.layout.world_height,
        )

    def tile_rect(self, row: int, col: int) -> Tuple[float, float, float, float]:
        tile_w = self.layout.tile_width * self.scale
        tile_h = self.layout.tile_height * self.scale
        return (self.offset[0] + col * tile_w, self.offset[1] + row * tile_h, tile_w, tile_h)


def compute_base_mapping(width: float, height: float, layout: MapLayout = DEFAULT_LAYOUT) -> BaseMapping:
    """Fit the whole map into the canvas, preserving its aspect ratio.

    The map is centred; the axis with spare room is letterboxed.
    """
    canvas_w, canvas_h = _normalise_dimensions(width, height)
    if layout.aspect_ratio > canvas_w / canvas_h:
        scale = canvas_w / layout.map_width
    else:
        scale = canvas_h / layout.map_height
    scaled_w = layout.map_width * scale
    scaled_h = layout.map_height * scale
    return BaseMapping(
        layout=layout,
        canvas_size=(canvas_w, canvas_h),
        scale=scale,
        offset=((canvas_w - scaled_w) / 2.0, (canvas_h - scaled_h) / 2.0),
        scaled_size=(scaled_w, scaled_h),
    )


class ViewportEngine:
    """Owns the user pan/zoom transform on top of the base map fit.

    Coordinates come in three spaces: world (game units), canvas (the base
    fit, before user zoom) and screen (widget pixels). ``transform`` maps
    canvas to screen.
    """

    def __init__(
        self,
        width: float,
        height: float,
        layout: MapLayout = DEFAULT_LAYOUT,
        *,
        min_zoom: float = 0.05,
        max_zoom: float = 5000.0,
    ) -> None:
        if not (0 < min_zoom <= 1.0 <= max_zoom):
            raise ValueError("zoom limits must satisfy 0 < min_zoom <= 1 <= max_zoom")
        self._layout = layout
        self._base = compute_base_mapping(width, height, layout)
        self._transform = Transform.identity()
        self._zoom = 1.0
        self._min_zoom = float(min_zoom)
        self._max_zoom = float(max_zoom)
        self._drag_anchor: Optional[Point] = None
        self._pinching = False
        self._pinch_distance: Optional[float] = None

    # Properties ---------------------------------------------------------

    @property
    def layout(self) -> MapLayout:
        return self._layout

    @property
    def base(self) -> BaseMapping:
        return self._base

    @property
    def transform(self) -> Transform:
        return self._transform

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def size(self) -> Tuple[float, float]:
        return self._base.canvas_size

    @property
    def dragging(self) -> bool:
        return self._drag_anchor is not None

    @property
    def pinching(self) -> bool:
        return self._pinching

    # Geometry -----------------------------------------------------------

    def resize(self, width: float, height: float) -> None:
        self._base = compute_base_mapping(width, height, self._layout)

    def center_on_world(self, world_x: float, world_y: float) -> None:
        """Reset the view so the world point sits in the middle of the canvas."""
        canvas_x, canvas_y = self._base.world_to_canvas(world_x, world_y)
        width, height = self._base.canvas_size
        self._transform = Transform.translation(width / 2.0 - canvas_x, height / 2.0 - canvas_y)
        self._zoom = 1.0

    def world_to_canvas(self, world_x: float, world_y: float) -> Point:
        return self._base.world_to_canvas(world_x, world_y)

    def canvas_to_world(self, canvas_x: float, canvas_y: float) -> Point:
        return self._base.canvas_to_world(canvas_x, canvas_y)

    def world_to_screen(self, world_x: float, world_y: float) -> Point:
        return self._transform.apply(*self._base.world_to_canvas(world_x, world_y))

    def screen_to_canvas(self, screen_x: float, screen_y: float) -> Point:
        return self._transform.inverse().apply(screen_x, screen_y)

    def screen_to_world(self, screen_x: float, screen_y: float) -> Point:
        return self._base.canvas_to_world(*self.screen_to_canvas(screen_x, screen_y))

    def visible_canvas_rect(self) -> Tuple[float, float, float, float]:
        """Canvas-space rectangle ``(x, y, w, h)`` currently covered by the widget."""
        width, height = self._base.canvas_size
        x0, y0 = self.screen_to_canvas(0.0, 0.0)
        x1, y1 = self.screen_to_canvas(width, height)
        return (x0, y0, x1 - x0, y1 - y0)

    # Zoom ---------------------------------------------------------------

    @staticmethod
    def wheel_factor(delta_y: float, intensity: float = 0.1) -> float:
        return 1.0 + intensity if delta_y < 0 else 1.0 - intensity

    def zoom_at(self, screen_x: float, screen_y: float, factor: float) -> float:
        """Scale about a screen point, keeping that point fixed on screen.

        Returns the factor actually applied once the zoom limits are honoured.
        """
        if not math.isfinite(factor) or factor <= 0:
            raise ValueError(f"zoom factor must be positive and finite, got {factor!r}")
        target = min(self._max_zoom, max(self._min_zoom, self._zoom * factor))
        applied = target / self._zoom
        if applied == 1.0:
            return 1.0
        px, py = self.screen_to_canvas(screen_x, screen_y)
        self._transform = self._transform.translate(px, py).scale(applied).translate(-px, -py)
        self._zoom = target
        return applied

    # Drag ---------------------------------------------------------------

    def begin_drag(self, screen_x: float, screen_y: float) -> None:
        self._drag_anchor = self.screen_to_canvas(screen_x, screen_y)

    def drag_to(self, screen_x: float, screen_y: float) -> bool:
        if self._drag_anchor is None:
            return False
        current_x, current_y = self.screen_to_canvas(screen_x, screen_y)
        anchor_x, anchor_y = self._drag_anchor
        self._transform = self._transform.translate(current_x - anchor_x, current_y - anchor_y)
        return True

    def end_drag(self) -> None:
        self._drag_anchor = None

    # Pinch --------------------------------------------------------------

    def begin_pinch(self, first: Point, second: Point) -> None:
        distance = math.hypot(first[0] - second[0], first[1] - second[1])
        self._drag_anchor = None
        self._pinching = True
        self._pinch_distance = distance if distance > 0 else None

    def pinch_to(self, first: Point, second: Point) -> float:
        distance = math.hypot(first[0] - second[0], first[1] - second[1])
        if not self._pinching or distance <= 0:
            return 1.0
        if self._pinch_distance is None:
            # Fingers started on the same spot; the first real spread becomes the reference.
            self._pinch_distance = distance
            return 1.0
        factor = distance / self._pinch_distance
        mid_x = (first[0] + second[0]) / 2.0
        mid_y = (first[1] + second[1]) / 2.0
        applied = self.zoom_at(mid_x, mid_y, factor)
        self._pinch_distance = distance
        return applied

    def end_pinch(self) -> None:
        self._pinching = False
        self._pinch_distance = None

    # Markers and hit-testing ---------------------------------------------

    def marker_scale(self) -> float:
        return max(0.3, self._zoom ** -0.4)

    def hit_radius(self) -> float:
        return 3.0 * self.marker_scale() * abs(self._transform.a)

    def player_at(self, screen_x: float, screen_y: float, players: Iterable[P]) -> Optional[P]:
        radius = self.hit_radius()
        for player in players:
            px, py = self.world_to_screen(player.x, player.y)
            if math.hypot(px - screen_x, py - screen_y) <= radius:
                return player
        return None

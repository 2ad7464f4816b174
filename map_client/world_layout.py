"""Fixed geometry of the world map: bounds, tile grid and named areas."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class MapLayout:
    """World-coordinate bounds and the pixel size/grid of the map image."""

    world_left: float = -23818.0
    world_top: float = -10426.0
    world_right: float = 20504.0
    world_bottom: float = 11377.0
    map_width: float = 28680.0
    map_height: float = 13724.0
    rows: int = 1
    cols: int = 16

    def __post_init__(self) -> None:
        if self.world_right <= self.world_left or self.world_bottom <= self.world_top:
            raise ValueError("world bounds must have positive extent")
        if self.map_width <= 0 or self.map_height <= 0:
            raise ValueError("map dimensions must be positive")
        if self.rows < 1 or self.cols < 1:
            raise ValueError("tile grid must have at least one row and column")

    @property
    def world_width(self) -> float:
        return self.world_right - self.world_left

    @property
    def world_height(self) -> float:
        return self.world_bottom - self.world_top

    @property
    def world_center(self) -> Tuple[float, float]:
        return (
            self.world_left + self.world_width / 2.0,
            self.world_top + self.world_height / 2.0,
        )

    @property
    def aspect_ratio(self) -> float:
        return self.map_width / self.map_height

    @property
    def tile_width(self) -> float:
        return self.map_width / self.cols

    @property
    def tile_height(self) -> float:
        return self.map_height / self.rows

    @staticmethod
    def tile_filename(row: int, col: int) -> str:
        """Image name for a zero-based grid cell (files are numbered from 1)."""
        return f"row-{row + 1}-column-{col + 1}.png"


DEFAULT_LAYOUT = MapLayout()

AreaMarker = Tuple[str, float, float]

AREA_MARKERS: Tuple[AreaMarker, ...] = (
    ("Gleethrop End", 1274.0, 3563.0),
    ("Groenewoud", -14658.0, -3762.0),
    ("Dovedale East", 1231.0, 534.0),
    ("Fanory Mill", -16821.0, -3954.0),
    ("Mazewood", -4650.0, 5798.0),
    ("Conby", -11688.0, -3270.0),
    ("Codsall Castle", 9991.0, 5236.0),
    ("Masonfield", 10667.0, -881.0),
    ("Benyhone Loop", -19532.0, -5201.0),
    ("Perthtyne", -490.0, 5268.0),
    ("Ashburn", -22012.0, -6729.0),
    ("Cosdale Harbour", 4325.0, -2518.0),
    ("Glassbury Junction", 11592.0, 8663.0),
    ("Dovedale Central", 3157.0, 805.0),
    ("Wington Mount", 2922.0, -2830.0),
    ("Marigot Crossing", 7692.0, 2205.0),
    ("Satus", -7485.0, -3055.0),
)

"""Scene building for the map: tiles, player markers and area labels."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from .colors import player_color
from .transform import Transform
from .viewport import ViewportEngine
from .world_layout import AREA_MARKERS, AreaMarker
from .world_model import ALL_SERVERS, TRAIN_DATA_DEFAULTS, PlayerSnapshot, WorldModel

DEFAULT_LABEL_ZOOM_RANGE: Tuple[float, float] = (0.75, 300.0)
HOVER_OUTLINE = "#FFFFFF"
MARKER_OUTLINE = "#000000"
LABEL_COLOR = "#FFFFFF"


@dataclass(frozen=True)
class ClearCommand:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class TileCommand:
    row: int
    col: int
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class MarkerCommand:
    username: str
    x: float
    y: float
    radius: float
    fill: str
    outline: str
    outline_width: float
    hovered: bool = False


@dataclass(frozen=True)
class LabelCommand:
    text: str
    x: float
    y: float
    font_size: float
    color: str = LABEL_COLOR


PaintCommand = Union[ClearCommand, TileCommand, MarkerCommand, LabelCommand]


@dataclass(frozen=True)
class Scene:
    """Commands in base-canvas coordinates plus the transform to draw them with."""

    transform: Transform
    commands: Tuple[PaintCommand, ...]

    def of_type(self, kind: type) -> List[PaintCommand]:
        return [command for command in self.commands if isinstance(command, kind)]


class MapPainterAdapter:
    def set_transform(self, transform: Transform) -> None: ...
    def clear_rect(self, x: float, y: float, width: float, height: float) -> None: ...
    def draw_tile(self, row: int, col: int, x: float, y: float, width: float, height: float) -> None: ...
    def draw_marker(self, x: float, y: float, radius: float, fill: str, outline: str, outline_width: float) -> None: ...
    def draw_label(self, text: str, x: float, y: float, font_size: float, color: str) -> None: ...


def build_scene(
    viewport: ViewportEngine,
    players: Iterable[PlayerSnapshot],
    *,
    hovered: Optional[str] = None,
    tiles_available: Optional[Callable[[int, int], bool]] = None,
    labels: Sequence[AreaMarker] = AREA_MARKERS,
    label_zoom_range: Tuple[float, float] = DEFAULT_LABEL_ZOOM_RANGE,
) -> Scene:
    commands: List[PaintCommand] = [ClearCommand(*viewport.visible_canvas_rect())]
    zoom = viewport.zoom
    base = viewport.base
    layout = viewport.layout

    overlap = max(0.5, 2.0 / zoom)
    for row in range(layout.rows):
        for col in range(layout.cols):
            if tiles_available is not None and not tiles_available(row, col):
                continue
            x, y, width, height = base.tile_rect(row, col)
            if col < layout.cols - 1:
                width += overlap
            if row < layout.rows - 1:
                height += overlap
            commands.append(TileCommand(row=row, col=col, x=x, y=y, width=width, height=height))

    marker_scale = viewport.marker_scale()
    for player in players:
        is_hovered = hovered is not None and player.username == hovered
        x, y = viewport.world_to_canvas(player.x, player.y)
        commands.append(
            MarkerCommand(
                username=player.username,
                x=x,
                y=y,
                radius=(2.5 if is_hovered else 2.0) * marker_scale,
                fill=player_color(player.username),
                outline=HOVER_OUTLINE if is_hovered else MARKER_OUTLINE,
                outline_width=max((0.7 if is_hovered else 0.4) * marker_scale, 0.05),
                hovered=is_hovered,
            )
        )

    label_min, label_max = label_zoom_range
    if label_min <= zoom <= label_max:
        font_size = max(0.2, 10.0 / zoom ** 0.3)
        for name, world_x, world_y in labels:
            x, y = viewport.world_to_canvas(world_x, world_y)
            commands.append(LabelCommand(text=name, x=x, y=y, font_size=font_size))

    return Scene(transform=viewport.transform, commands=tuple(commands))


def render_scene(adapter: MapPainterAdapter, scene: Scene) -> None:
    adapter.set_transform(scene.transform)
    for command in scene.commands:
        if isinstance(command, ClearCommand):
            adapter.clear_rect(command.x, command.y, command.width, command.height)
        elif isinstance(command, TileCommand):
            adapter.draw_tile(command.row, command.col, command.x, command.y, command.width, command.height)
        elif isinstance(command, MarkerCommand):
            adapter.draw_marker(
                command.x, command.y, command.radius, command.fill, command.outline, command.outline_width
            )
        elif isinstance(command, LabelCommand):
            adapter.draw_label(command.text, command.x, command.y, command.font_size, command.color)


def describe_player(player: PlayerSnapshot, server_label: Optional[str] = None) -> str:
    """Tooltip text for a hovered marker."""
    lines = [player.username or "Unknown"]
    if server_label is not None:
        lines.append(f"Server: {server_label}")
    if player.train_data is not None:
        destination, train_class, headcode, _headcode_class = player.train_data
        if destination and destination != TRAIN_DATA_DEFAULTS[0]:
            lines.append(f"Destination: {destination}")
        if train_class and train_class != TRAIN_DATA_DEFAULTS[1]:
            lines.append(f"Class: {train_class}")
        if headcode and headcode != TRAIN_DATA_DEFAULTS[2]:
            lines.append(f"Headcode: {headcode}")
    return "\n".join(lines)


def server_options(model: WorldModel) -> List[Tuple[str, str]]:
    """Selector entries ``(value, text)``: all servers first, then one per roster."""
    options = [(ALL_SERVERS, f"All Servers ({model.total_players()} players)")]
    for job_id, label, count in model.server_summaries():
        options.append((job_id, f"Server {label} ({count} players)"))
    return options

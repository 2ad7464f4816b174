import pytest

from map_client.colors import FALLBACK_COLOR, PLAYER_COLORS, player_color
from map_client.scene import (
    ClearCommand,
    LabelCommand,
    MarkerCommand,
    TileCommand,
    build_scene,
    describe_player,
    render_scene,
    server_options,
)
from map_client.viewport import ViewportEngine
from map_client.world_layout import AREA_MARKERS
from map_client.world_model import PlayerSnapshot, WorldModel


class RecordingAdapter:
    def __init__(self) -> None:
        self.calls = []

    def set_transform(self, transform):
        self.calls.append(("transform", transform))

    def clear_rect(self, x, y, width, height):
        self.calls.append(("clear", x, y, width, height))

    def draw_tile(self, row, col, x, y, width, height):
        self.calls.append(("tile", row, col))

    def draw_marker(self, x, y, radius, fill, outline, outline_width):
        self.calls.append(("marker", fill, outline))

    def draw_label(self, text, x, y, font_size, color):
        self.calls.append(("label", text))


PLAYERS = (
    PlayerSnapshot("alice", 1274.0, 3563.0),
    PlayerSnapshot("bob", -490.0, 5268.0, train_data=("Satus", "Class 43", "1A23", "express")),
)


def test_scene_orders_clear_tiles_markers_labels():
    engine = ViewportEngine(1280, 720)
    scene = build_scene(engine, PLAYERS)

    kinds = [type(command) for command in scene.commands]
    assert kinds[0] is ClearCommand
    first_marker = kinds.index(MarkerCommand)
    first_label = kinds.index(LabelCommand)
    assert all(kind is TileCommand for kind in kinds[1:first_marker])
    assert first_marker < first_label
    assert len(scene.of_type(TileCommand)) == 16
    assert len(scene.of_type(LabelCommand)) == len(AREA_MARKERS)
    assert scene.transform == engine.transform


def test_tiles_overlap_except_last_column():
    engine = ViewportEngine(1280, 720)
    tiles = build_scene(engine, ()).of_type(TileCommand)
    tile_width = engine.base.tile_rect(0, 0)[2]
    assert tiles[0].width == pytest.approx(tile_width + 2.0)
    assert tiles[-1].width == pytest.approx(tile_width)
    assert tiles[0].height == pytest.approx(engine.base.tile_rect(0, 0)[3])


def test_missing_tiles_are_skipped():
    engine = ViewportEngine(1280, 720)
    scene = build_scene(engine, (), tiles_available=lambda row, col: col % 2 == 0)
    assert [tile.col for tile in scene.of_type(TileCommand)] == list(range(0, 16, 2))


def test_marker_styling_follows_hover_and_zoom():
    engine = ViewportEngine(1280, 720)
    engine.zoom_at(0, 0, 4.0)
    scale = engine.marker_scale()
    markers = build_scene(engine, PLAYERS, hovered="bob").of_type(MarkerCommand)

    alice, bob = markers
    assert alice.radius == pytest.approx(2.0 * scale)
    assert alice.outline == "#000000"
    assert alice.outline_width == pytest.approx(0.4 * scale)
    assert bob.hovered is True
    assert bob.radius == pytest.approx(2.5 * scale)
    assert bob.outline == "#FFFFFF"
    assert bob.fill == player_color("bob")
    assert (alice.x, alice.y) == pytest.approx(engine.world_to_canvas(1274.0, 3563.0))


def test_labels_only_inside_zoom_range():
    engine = ViewportEngine(1280, 720)
    assert build_scene(engine, (), label_zoom_range=(1.5, 300.0)).of_type(LabelCommand) == []

    engine.zoom_at(0, 0, 400.0)
    assert build_scene(engine, ()).of_type(LabelCommand) == []

    engine = ViewportEngine(1280, 720)
    engine.zoom_at(0, 0, 8.0)
    labels = build_scene(engine, ()).of_type(LabelCommand)
    assert labels[0].font_size == pytest.approx(10.0 / 8.0 ** 0.3)


def test_render_scene_replays_commands_in_order():
    engine = ViewportEngine(1280, 720)
    adapter = RecordingAdapter()
    render_scene(adapter, build_scene(engine, PLAYERS[:1], labels=[("Satus", 0.0, 0.0)]))

    kinds = [call[0] for call in adapter.calls]
    assert kinds[:2] == ["transform", "clear"]
    assert kinds.count("tile") == 16
    assert kinds[-2:] == ["marker", "label"]


def test_player_color_is_stable_and_in_palette():
    assert player_color("") == FALLBACK_COLOR
    for name in ("alice", "bob", "Zé", "x" * 33):
        assert player_color(name) in PLAYER_COLORS
        assert player_color(name) == player_color(name)


def test_player_color_hash_values():
    # "ab": a at reverse index 2 subtracts, b at reverse index 1 adds.
    assert player_color("ab") == PLAYER_COLORS[(98 - 97) % 8]
    # "abc" (odd length): reverse indices 2, 1, 0 -> -97 + 98 + 99.
    assert player_color("abc") == PLAYER_COLORS[(-97 + 98 + 99) % 8]
    # "abcd": reverse indices 4, 3, 2, 1 -> +97 -98 -99 +100.
    assert player_color("abcd") == PLAYER_COLORS[(97 - 98 - 99 + 100) % 8]


def test_describe_player_shows_meaningful_train_fields():
    text = describe_player(PLAYERS[1], "123456")
    assert text.splitlines() == ["bob", "Server: 123456", "Destination: Satus", "Class: Class 43", "Headcode: 1A23"]

    quiet = PlayerSnapshot("carol", 0.0, 0.0, train_data=("Unknown", "Unknown", "----", ""))
    assert describe_player(quiet) == "carol"


def test_server_options_list_all_then_each_server():
    model = WorldModel(clock=lambda: 0.0)
    model.apply_update("job-abcdef", [{"username": "a", "x": 0, "y": 0}, {"username": "b", "x": 1, "y": 1}])
    model.apply_update("xyz", [{"username": "c", "x": 0, "y": 0}])

    assert server_options(model) == [
        ("all", "All Servers (3 players)"),
        ("job-abcdef", "Server abcdef (2 players)"),
        ("xyz", "Server xyz (1 players)"),
    ]

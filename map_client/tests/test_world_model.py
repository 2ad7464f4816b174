import math

import pytest

from map_client.world_model import (
    MalformedUpdate,
    PlayerSnapshot,
    WorldModel,
    normalize_player,
    normalize_train_data,
    short_server_label,
)


class Clock:
    def __init__(self, value: float = 1000.0) -> None:
        self.value = value

    def __call__(self) -> float:
        return self.value


def _player(name, x, y, **extra):
    record = {"username": name, "position": {"x": x, "y": y}}
    record.update(extra)
    return record


def test_latest_roster_wins():
    model = WorldModel(clock=Clock())
    model.apply_update("job-1", [_player("alice", 1, 2), _player("bob", 3, 4)])
    model.apply_update("job-1", [_player("carol", 5, 6)])

    players = model.all_players()
    assert [p.username for p in players] == ["carol"]
    assert (players[0].x, players[0].y) == (5.0, 6.0)


def test_rosters_are_kept_per_server_in_insertion_order():
    model = WorldModel(clock=Clock())
    model.apply_update("job-b", [_player("bob", 0, 0)])
    model.apply_update("job-a", [_player("alice", 0, 0), _player("ann", 1, 1)])
    model.apply_update("job-b", [_player("ben", 2, 2)])

    assert model.server_ids() == ("job-b", "job-a")
    assert [p.username for p in model.all_players()] == ["ben", "alice", "ann"]
    assert [p.username for p in model.all_players("job-a")] == ["alice", "ann"]
    assert model.all_players("job-missing") == ()
    assert model.total_players() == 3


def test_empty_shutdown_update_removes_server():
    model = WorldModel(clock=Clock())
    model.apply_update("job-1", [_player("alice", 1, 2)])

    assert model.apply_update("job-1", [], shutdown=True) is True
    assert "job-1" not in model
    assert model.all_players() == ()


def test_empty_update_without_shutdown_keeps_empty_roster():
    model = WorldModel(clock=Clock())
    model.apply_update("job-1", [_player("alice", 1, 2)])
    model.apply_update("job-1", [])

    assert "job-1" in model
    assert model.all_players() == ()


def test_shutdown_with_players_still_replaces():
    model = WorldModel(clock=Clock())
    model.apply_update("job-1", [_player("alice", 1, 2)], shutdown=True)
    assert [p.username for p in model.all_players()] == ["alice"]


def test_stale_sweep_after_31_seconds():
    clock = Clock(100.0)
    model = WorldModel(stale_after=30.0, clock=clock)
    model.apply_update("S1", [_player("alice", 1, 2)])

    clock.value = 130.0
    assert model.prune_stale() == []
    assert "S1" in model

    clock.value = 131.0
    assert model.prune_stale() == ["S1"]
    assert model.all_players() == ()


def test_prune_uses_explicit_now_and_keeps_fresh_servers():
    clock = Clock(0.0)
    model = WorldModel(stale_after=30.0, clock=clock)
    model.apply_update("old", [_player("a", 0, 0)])
    clock.value = 20.0
    model.apply_update("new", [_player("b", 0, 0)])

    assert model.prune_stale(now=40.0) == ["old"]
    assert model.server_ids() == ("new",)


def test_unplaceable_records_are_dropped():
    model = WorldModel(clock=Clock())
    model.apply_update(
        "job-1",
        [
            _player("ok", 1, 2),
            {"username": "nowhere"},
            {"username": "nan", "position": {"x": math.nan, "y": 0}},
            {"username": "text", "position": {"x": "1", "y": 2}},
            "garbage",
        ],
    )
    assert [p.username for p in model.all_players()] == ["ok"]


def test_apply_message_validates_shape():
    model = WorldModel(clock=Clock())
    with pytest.raises(MalformedUpdate):
        model.apply_message(["not", "a", "dict"])
    with pytest.raises(MalformedUpdate):
        model.apply_message({"players": []})
    with pytest.raises(MalformedUpdate):
        model.apply_message({"jobId": "x", "players": "alice"})
    assert issubclass(MalformedUpdate, ValueError)


def test_apply_message_handles_shutdown_and_missing_players():
    model = WorldModel(clock=Clock())
    model.apply_message({"jobId": "job-1", "players": [_player("alice", 1, 2)]})
    model.apply_message({"jobId": "job-2"})
    assert model.server_ids() == ("job-1", "job-2")

    model.apply_message({"jobId": "job-1", "players": [], "serverShutdown": True})
    assert model.server_ids() == ("job-2",)


@pytest.mark.parametrize(
    "record",
    [
        {"username": "alice", "position": {"x": 10, "y": -5}},
        {"username": "alice", "position": [10, -5]},
        {"username": "alice", "x": 10, "y": -5},
        ["alice", 10, -5],
    ],
)
def test_record_shapes_normalise_to_same_snapshot(record):
    snapshot = normalize_player(record)
    assert snapshot == PlayerSnapshot(username="alice", x=10.0, y=-5.0)


def test_extra_keys_are_kept_as_aux():
    snapshot = normalize_player(_player("alice", 1, 2, team="red", trainData=None))
    assert snapshot is not None
    assert snapshot.aux == {"team": "red"}
    assert snapshot.train_data is None


def test_numeric_id_is_used_as_name():
    snapshot = normalize_player({"id": 12345, "position": {"x": 0, "y": 0}})
    assert snapshot is not None
    assert snapshot.username == "12345"


def test_train_data_normalisation():
    assert normalize_train_data({"destination": "Satus", "headcode": "1A23"}) == ("Satus", "Unknown", "1A23", "")
    assert normalize_train_data(["Conby", "Class 158"]) == ("Conby", "Class 158", "----", "")
    assert normalize_train_data(["A", "B", "C", "D", "E"]) == ("A", "B", "C", "D")
    assert normalize_train_data("express") is None
    snapshot = normalize_player(["bob", 1, 2, {"class": "Class 43"}])
    assert snapshot is not None
    assert snapshot.train_data == ("Unknown", "Class 43", "----", "")


def test_server_helpers():
    model = WorldModel(clock=Clock())
    model.apply_update("abcdef123456", [_player("alice", 1, 2), _player("bob", 3, 4)])
    model.apply_update("short", [_player("carol", 0, 0)])

    bob = model.all_players()[1]
    assert model.server_of(bob) == "abcdef123456"
    assert model.server_of(PlayerSnapshot("bob", 3.0, 4.0)) is None
    assert model.server_summaries() == [("abcdef123456", "123456", 2), ("short", "short", 1)]
    assert short_server_label("abcdef123456") == "123456"
    assert model.resolve_filter("short") == "short"
    assert model.resolve_filter("gone") == "all"
    assert model.resolve_filter("all") == "all"
    roster = model.roster("short")
    assert roster is not None and roster.players[0].username == "carol"

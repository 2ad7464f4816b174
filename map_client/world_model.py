"""Latest known player positions per game server, with staleness eviction."""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

_LOGGER = logging.getLogger("LiveMap.Client.WorldModel")

ALL_SERVERS = "all"
TRAIN_DATA_DEFAULTS: Tuple[str, str, str, str] = ("Unknown", "Unknown", "----", "")
_NAME_KEYS = ("username", "name", "id")
_CONSUMED_KEYS = frozenset(_NAME_KEYS + ("position", "x", "y", "trainData", "train_data"))
_TRAIN_DATA_KEYS = ("destination", "class", "headcode", "headcodeClass")

TrainData = Tuple[str, str, str, str]


class MalformedUpdate(ValueError):
    """A broadcast message did not have the expected shape."""


@dataclass(frozen=True)
class PlayerSnapshot:
    username: str
    x: float
    y: float
    train_data: Optional[TrainData] = None
    aux: Mapping[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ServerRoster:
    players: Tuple[PlayerSnapshot, ...]
    last_update: float


def short_server_label(job_id: str) -> str:
    """Display label for a server: the last six characters of its id."""
    return job_id[-6:]


def _finite_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = float(value)
    return number if math.isfinite(number) else None


def _coerce_position(value: Any) -> Optional[Tuple[float, float]]:
    if isinstance(value, Mapping):
        x, y = value.get("x"), value.get("y")
    elif isinstance(value, (list, tuple)) and len(value) >= 2:
        x, y = value[0], value[1]
    else:
        return None
    fx, fy = _finite_number(x), _finite_number(y)
    if fx is None or fy is None:
        return None
    return fx, fy


def normalize_train_data(value: Any) -> Optional[TrainData]:
    """Coerce a train description to ``(destination, class, headcode, headcodeClass)``."""
    if isinstance(value, Mapping):
        items = [value.get(key) for key in _TRAIN_DATA_KEYS]
    elif isinstance(value, (list, tuple)):
        items = list(value[:4])
        items.extend([None] * (4 - len(items)))
    else:
        return None
    return tuple(
        str(item) if item not in (None, "") else default for item, default in zip(items, TRAIN_DATA_DEFAULTS)
    )  # type: ignore[return-value]


def _player_name(record: Mapping[str, Any]) -> str:
    for key in _NAME_KEYS:
        value = record.get(key)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
    return "Unknown"


def normalize_player(record: Any) -> Optional[PlayerSnapshot]:
    """Turn one wire record into a snapshot, or ``None`` when it cannot be placed."""
    if isinstance(record, Mapping):
        if "position" in record:
            position = _coerce_position(record.get("position"))
        else:
            position = _coerce_position(record)
        if position is None:
            return None
        train_value = record.get("trainData", record.get("train_data"))
        aux = {key: value for key, value in record.items() if key not in _CONSUMED_KEYS}
        return PlayerSnapshot(
            username=_player_name(record),
            x=position[0],
            y=position[1],
            train_data=normalize_train_data(train_value),
            aux=aux,
        )
    if isinstance(record, (list, tuple)) and len(record) >= 3:
        name = record[0]
        if not isinstance(name, str):
            return None
        position = _coerce_position(record[1:3])
        if position is None:
            return None
        train_data = normalize_train_data(record[3]) if len(record) > 3 else None
        return PlayerSnapshot(username=name or "Unknown", x=position[0], y=position[1], train_data=train_data)
    return None


class WorldModel:
    """Aggregates the most recent roster from each game server.

    Each ``jobId`` maps to the roster from its latest update; an update never
    merges with the one before it. Rosters older than ``stale_after`` seconds
    are dropped by ``prune_stale``.
    """

    def __init__(self, stale_after: float = 30.0, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._stale_after = float(stale_after)
        self._clock = clock
        self._rosters: Dict[str, ServerRoster] = {}

    @property
    def stale_after(self) -> float:
        return self._stale_after

    def apply_update(self, job_id: str, players: Sequence[Any], *, shutdown: bool = False) -> bool:
        if not players and shutdown:
            removed = self._rosters.pop(job_id, None) is not None
            _LOGGER.info("Server %s shut down (known=%s)", short_server_label(job_id), removed)
            return True
        snapshots: List[PlayerSnapshot] = []
        dropped = 0
        for record in players:
            snapshot = normalize_player(record)
            if snapshot is None:
                dropped += 1
                continue
            snapshots.append(snapshot)
        if dropped:
            _LOGGER.debug("Dropped %d unplaceable player record(s) from %s", dropped, job_id)
        self._rosters[job_id] = ServerRoster(players=tuple(snapshots), last_update=self._clock())
        return True

    def apply_message(self, payload: Any) -> bool:
        """Apply a relay message ``{jobId, players[, serverShutdown]}``."""
        if not isinstance(payload, Mapping):
            raise MalformedUpdate("message must be a JSON object")
        job_id = payload.get("jobId")
        if not isinstance(job_id, str) or not job_id:
            raise MalformedUpdate("message has no jobId")
        players = payload.get("players")
        if players is None:
            players = []
        if not isinstance(players, list):
            raise MalformedUpdate("players must be a list")
        return self.apply_update(job_id, players, shutdown=payload.get("serverShutdown") is True)

    def prune_stale(self, now: Optional[float] = None) -> List[str]:
        current = self._clock() if now is None else now
        expired = [
            job_id for job_id, roster in self._rosters.items() if current - roster.last_update > self._stale_after
        ]
        for job_id in expired:
            del self._rosters[job_id]
        if expired:
            _LOGGER.info("Evicted %d stale server(s): %s", len(expired), ", ".join(expired))
        return expired

    def all_players(self, server_filter: str = ALL_SERVERS) -> Tuple[PlayerSnapshot, ...]:
        if server_filter == ALL_SERVERS:
            return tuple(player for roster in self._rosters.values() for player in roster.players)
        roster = self._rosters.get(server_filter)
        return roster.players if roster is not None else ()

    def server_ids(self) -> Tuple[str, ...]:
        return tuple(self._rosters)

    def roster(self, job_id: str) -> Optional[ServerRoster]:
        return self._rosters.get(job_id)

    def total_players(self) -> int:
        return sum(len(roster.players) for roster in self._rosters.values())

    def server_of(self, player: PlayerSnapshot) -> Optional[str]:
        for job_id, roster in self._rosters.items():
            if any(candidate is player for candidate in roster.players):
                return job_id
        return None

    def server_summaries(self) -> List[Tuple[str, str, int]]:
        return [
            (job_id, short_server_label(job_id), len(roster.players)) for job_id, roster in self._rosters.items()
        ]

    def resolve_filter(self, selected: str) -> str:
        if selected != ALL_SERVERS and selected in self._rosters:
            return selected
        return ALL_SERVERS

    def clear(self) -> None:
        self._rosters.clear()

    def __len__(self) -> int:
        return len(self._rosters)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._rosters

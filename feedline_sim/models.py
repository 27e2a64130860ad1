from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import random
from typing import List, Optional, Tuple

from .config import DEFAULT_PATH_COUNT, SOURCE_X

NO_PATH = -1

# =========================
# Domain entities
# =========================


class SourceState(str, Enum):
    IDLE = "IDLE"
    RESTART = "RESTART"
    ACTIVE = "ACTIVE"
    BUFFER_STOP = "BUFFER_STOP"
    LOCKED = "LOCKED"


@dataclass
class Unit:
    position: float = SOURCE_X
    is_purge: bool = False
    is_moving: bool = False  # for renderers only


@dataclass
class Path:
    """One conveyor lane.

    ``units`` is ordered lead first (closest to the take point) to tail.
    Timer fields hold the sim time at which a condition began; 0 means unset.
    """

    path_id: int
    units: List[Unit] = field(default_factory=list)

    is_down: bool = False
    starvation_timer: float = 0.0
    last_take_time: float = 0.0

    min_active: bool = False
    max_active: bool = False
    min_sensor_timer: float = 0.0
    max_sensor_timer: float = 0.0

    request_material: bool = True
    request_start_time: float = 0.0

    processed_units: int = 0
    missed_units: int = 0
    units_sent: int = 0
    last_unit_sent_time: float = 0.0

    downtime_start: float = 0.0
    total_downtime: float = 0.0

    def lead(self) -> Optional[Unit]:
        return self.units[0] if self.units else None

    def is_starved(self, now: float) -> bool:
        return self.starvation_timer > now


@dataclass
class SimulationState:
    elapsed_sim_time: float = 0.0

    source_state: SourceState = SourceState.IDLE
    last_source_time: float = 0.0
    lock_start_time: float = 0.0
    restart_start_time: float = 0.0
    source_stops: int = 0

    active_target_id: int = NO_PATH
    last_distributed_id: int = NO_PATH
    pending_after_stop: int = 0
    last_active_path_id: int = 0
    units_since_restart: int = 0

    global_downtime: bool = False
    global_downtime_until: float = 0.0

    paths: List[Path] = field(default_factory=list)
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    # Notable events of the latest step, cleared at the start of every step.
    alarms: List[str] = field(default_factory=list)

    @staticmethod
    def fresh(path_count: int = DEFAULT_PATH_COUNT, seed: Optional[int] = 0) -> "SimulationState":
        return SimulationState(
            paths=[Path(path_id=i) for i in range(path_count)],
            rng=random.Random(seed),
        )

    def any_request(self) -> bool:
        return any(p.request_material for p in self.paths)

    def total_processed(self) -> int:
        return sum(p.processed_units for p in self.paths)

    def total_missed(self) -> int:
        return sum(p.missed_units for p in self.paths)

    def snapshot(self) -> "Snapshot":
        now = self.elapsed_sim_time
        return Snapshot(
            elapsed_sim_time=now,
            source_state=self.source_state,
            source_stops=self.source_stops,
            global_downtime=self.global_downtime,
            paths=tuple(
                PathView(
                    path_id=p.path_id,
                    units=tuple(UnitView(u.position, u.is_purge, u.is_moving) for u in p.units),
                    request_material=p.request_material,
                    min_active=p.min_active,
                    max_active=p.max_active,
                    processed_units=p.processed_units,
                    missed_units=p.missed_units,
                    units_sent=p.units_sent,
                    total_downtime=p.total_downtime,
                    starved=p.is_starved(now),
                    blocked=self.global_downtime or p.is_down,
                )
                for p in self.paths
            ),
            alarms=tuple(self.alarms),
        )


# =========================
# Snapshot views (renderers use)
# =========================


@dataclass(frozen=True)
class UnitView:
    position: float
    is_purge: bool
    is_moving: bool


@dataclass(frozen=True)
class PathView:
    path_id: int
    units: Tuple[UnitView, ...]
    request_material: bool
    min_active: bool
    max_active: bool
    processed_units: int
    missed_units: int
    units_sent: int
    total_downtime: float
    starved: bool
    blocked: bool


@dataclass(frozen=True)
class Snapshot:
    elapsed_sim_time: float
    source_state: SourceState
    source_stops: int
    global_downtime: bool
    paths: Tuple[PathView, ...]
    alarms: Tuple[str, ...]

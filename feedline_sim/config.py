from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional
import yaml

# =========================
# Line layout (pixels along a path) and timing (ms)
# =========================

UNIT_RADIUS = 4
UNIT_SPACING = UNIT_RADIUS * 2 + 3
SOURCE_X = 50.0
TAKE_X = 820.0

REFERENCE_TICK_MS = 16.67
MAX_SUB_STEP_MS = 16.67

SENSOR_TIMEOUT_MS = 500.0
SENSOR_WINDOW = UNIT_SPACING * 0.6

CYCLE_TIME_MS = 4700.0
LOCK_TIMEOUT_MS = 4000.0
RESTART_CONFIRM_MS = 2000.0

OUTAGE_DURATION_MS = 10000.0
OUTAGE_BASE_PROB = 0.0004

PURGE_RESERVE = 3
EMPTY_NEST_EVERY = 8

DEFAULT_PATH_COUNT = 3


class DistributionLogic(str, Enum):
    ROUND_ROBIN = "RoundRobin"
    BATCH = "Batch"


_LOGIC_ALIASES = {
    "rr": DistributionLogic.ROUND_ROBIN,
    "roundrobin": DistributionLogic.ROUND_ROBIN,
    "round_robin": DistributionLogic.ROUND_ROBIN,
    "batch": DistributionLogic.BATCH,
}


def parse_duration(text: str) -> float:
    """Parse an ``MM:SS`` duration into milliseconds."""
    parts = str(text).strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"Duration must look like MM:SS, got '{text}'")
    try:
        minutes, seconds = int(parts[0]), int(parts[1])
    except ValueError as e:
        raise ValueError(f"Duration must look like MM:SS, got '{text}'") from e
    if minutes < 0 or seconds < 0 or seconds >= 60:
        raise ValueError(f"Duration out of range: '{text}'")
    return (minutes * 60 + seconds) * 1000.0


def normalize_logic(name: Any) -> DistributionLogic:
    if isinstance(name, DistributionLogic):
        return name
    key = str(name).strip().lower()
    if key not in _LOGIC_ALIASES:
        raise ValueError(f"Unknown distribution logic '{name}' (expected RoundRobin/RR or Batch).")
    return _LOGIC_ALIASES[key]


@dataclass(frozen=True)
class LineConfig:
    """Configuration snapshot read by the step function.

    Captured once per tick by the caller and never mutated by the core.
    """

    logic: DistributionLogic = DistributionLogic.ROUND_ROBIN
    ppm: float = 55.0
    min_cap: float = 5.0
    max_cap: float = 10.0
    prob_global: float = 4.0
    path_speed: float = 3.0
    speed: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "logic", normalize_logic(self.logic))

    @property
    def ms_per_unit(self) -> float:
        return 60000.0 / self.ppm

    @property
    def min_x(self) -> float:
        return TAKE_X - (self.min_cap - 0.5) * UNIT_SPACING

    @property
    def max_x(self) -> float:
        return TAKE_X - (self.max_cap - 0.5) * UNIT_SPACING

    def validate(self) -> "LineConfig":
        if self.ppm <= 0:
            raise ValueError(f"ppm must be > 0, got {self.ppm}")
        if self.min_cap < 0:
            raise ValueError(f"min_cap must be >= 0, got {self.min_cap}")
        if self.max_cap < 0:
            raise ValueError(f"max_cap must be >= 0, got {self.max_cap}")
        if self.max_cap < self.min_cap:
            raise ValueError(f"max_cap ({self.max_cap}) must not be below min_cap ({self.min_cap})")
        if not 0 <= self.prob_global <= 100:
            raise ValueError(f"prob_global must be within 0..100, got {self.prob_global}")
        if self.path_speed < 0:
            raise ValueError(f"path_speed must be >= 0, got {self.path_speed}")
        if self.speed < 0:
            raise ValueError(f"speed must be >= 0, got {self.speed}")
        return self

    def with_speed(self, speed: float) -> "LineConfig":
        return replace(self, speed=speed)


@dataclass
class RunConfig:
    seed: int = 0
    path_count: int = DEFAULT_PATH_COUNT
    stats_duration_ms: float = 60 * 1000.0

    def validate(self) -> "RunConfig":
        if self.path_count < 1:
            raise ValueError(f"path_count must be >= 1, got {self.path_count}")
        if self.stats_duration_ms < 0:
            raise ValueError(f"stats_duration must be >= 0, got {self.stats_duration_ms}")
        return self


@dataclass
class Config:
    line: LineConfig = field(default_factory=LineConfig)
    run: RunConfig = field(default_factory=RunConfig)

    @staticmethod
    def from_dict(data: Optional[Dict[str, Any]]) -> "Config":
        data = data or {}
        line_data = data.get("line", {}) or {}

        def pick(*keys: str, default: Any) -> Any:
            for k in keys:
                if k in line_data and line_data[k] is not None:
                    return line_data[k]
            return default

        defaults = LineConfig()
        line = LineConfig(
            logic=normalize_logic(pick("logic", default=defaults.logic)),
            ppm=float(pick("ppm", default=defaults.ppm)),
            min_cap=float(pick("min_cap", "minCap", default=defaults.min_cap)),
            max_cap=float(pick("max_cap", "maxCap", default=defaults.max_cap)),
            prob_global=float(pick("prob_global", "probGlobal", default=defaults.prob_global)),
            path_speed=float(pick("path_speed", "pathSpeed", default=defaults.path_speed)),
            speed=float(pick("speed", default=defaults.speed)),
        ).validate()

        sim_data = data.get("simulation", {}) or {}
        if "stats_duration" in sim_data and "stats_duration_ms" in sim_data:
            raise ValueError("Give either stats_duration or stats_duration_ms, not both")
        if "stats_duration" in sim_data:
            duration = sim_data["stats_duration"]
            # YAML reads an unquoted 1:30 as the base-60 integer 90.
            if not isinstance(duration, str):
                raise ValueError(
                    f"stats_duration must be a quoted 'MM:SS' string, got {duration!r}; "
                    "use stats_duration_ms for milliseconds"
                )
            duration_ms = parse_duration(duration)
        else:
            duration_ms = float(sim_data.get("stats_duration_ms", RunConfig.stats_duration_ms))
        run = RunConfig(
            seed=int(sim_data.get("seed", 0)),
            path_count=int(sim_data.get("path_count", DEFAULT_PATH_COUNT)),
            stats_duration_ms=duration_ms,
        ).validate()

        return Config(line=line, run=run)

    @staticmethod
    def from_yaml(path: str) -> "Config":
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return Config.from_dict(data)

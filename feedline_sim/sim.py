from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List, Optional

from .config import Config, DEFAULT_PATH_COUNT, LineConfig, MAX_SUB_STEP_MS, REFERENCE_TICK_MS
from .downtime import update_global_downtime
from .models import SimulationState, Snapshot
from .paths import synchronized_take, update_path
from .source import emit, update_source_state

logger = logging.getLogger(__name__)

# Remainders below this are float noise from repeated subtraction.
_SUB_STEP_EPSILON = 1e-9


def advance(state: SimulationState, config: LineConfig, dt: float) -> None:
    """Advance the whole feed line by ``dt`` ms, mutating ``state`` in place.

    Tick sequence:
    1. Global downtime window (may start or clear an outage)
    2. Synchronized take across all paths, if a cycle is due
    3. Per path: unit motion, MIN/MAX sensors, request flag, downtime stats
    4. Source state machine on the aggregate request signal
    5. Emission slot (distribution policy picks the target path)

    ``config`` is assumed valid; see ``LineConfig.validate``.
    """
    state.alarms = []
    state.elapsed_sim_time += dt
    now = state.elapsed_sim_time

    update_global_downtime(state, config, dt)
    synchronized_take(state)

    for path in state.paths:
        update_path(path, config, dt, now)

    update_source_state(state, state.any_request())
    emit(state, config)


@dataclass
class FrameData:
    elapsed_sim_time: float
    sub_steps: int
    alarms: List[str]


class FeedLineSimulator:
    """Caller-side stepping loop around ``advance``.

    Scales each frame by ``config.speed`` and splits it into sub-ticks of at
    most MAX_SUB_STEP_MS so motion and sensor timing stay stable at high
    time-scale multipliers.
    """

    def __init__(
        self,
        config: Optional[LineConfig] = None,
        path_count: int = DEFAULT_PATH_COUNT,
        seed: Optional[int] = 0,
    ) -> None:
        self.config = (config or LineConfig()).validate()
        self.path_count = path_count
        self.seed = seed
        self.state = SimulationState.fresh(path_count, seed)

    # ---------------------------
    # Construction
    # ---------------------------

    @staticmethod
    def from_yaml(path: str) -> "FeedLineSimulator":
        cfg = Config.from_yaml(path)
        return FeedLineSimulator(cfg.line, path_count=cfg.run.path_count, seed=cfg.run.seed)

    # ---------------------------
    # Public API
    # ---------------------------

    def reset(self) -> None:
        self.state = SimulationState.fresh(self.path_count, self.seed)

    def set_config(self, config: LineConfig) -> None:
        self.config = config.validate()

    def snapshot(self) -> Snapshot:
        return self.state.snapshot()

    def step(self, frame_ms: float = REFERENCE_TICK_MS) -> FrameData:
        remaining = frame_ms * self.config.speed
        alarms: List[str] = []
        sub_steps = 0
        while remaining > _SUB_STEP_EPSILON:
            dt = min(remaining, MAX_SUB_STEP_MS)
            advance(self.state, self.config, dt)
            alarms.extend(self.state.alarms)
            remaining -= dt
            sub_steps += 1
        for msg in alarms:
            logger.info(msg)
        return FrameData(elapsed_sim_time=self.state.elapsed_sim_time, sub_steps=sub_steps, alarms=alarms)

    def run(self, duration_ms: float, frame_ms: float = REFERENCE_TICK_MS) -> int:
        """Step frames until ``duration_ms`` of sim time has passed. Returns frame count."""
        if frame_ms <= 0 or self.config.speed <= 0:
            raise ValueError("run() needs a positive frame_ms and speed")
        target = self.state.elapsed_sim_time + duration_ms
        frames = 0
        while self.state.elapsed_sim_time < target - _SUB_STEP_EPSILON:
            self.step(frame_ms)
            frames += 1
        return frames

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Optional

from .config import DEFAULT_PATH_COUNT, DistributionLogic, LineConfig, REFERENCE_TICK_MS
from .models import SimulationState
from .sim import advance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatsRow:
    duration_ms: float
    duration_text: str
    source_stops: int
    total_processed: int
    total_missed: int
    total_downtime_ms: float

    logic: DistributionLogic
    ppm: float
    min_cap: float
    max_cap: float
    prob_global: float
    path_speed: float


def format_duration(duration_ms: float) -> str:
    """Render a duration as ``HH:MM`` (whole minutes)."""
    total_minutes = int(duration_ms // 60000)
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def compute_stats(
    config: LineConfig,
    duration_ms: float,
    dt: float = REFERENCE_TICK_MS,
    path_count: int = DEFAULT_PATH_COUNT,
    seed: Optional[int] = 0,
) -> StatsRow:
    """Run a fresh scratch line for ``ceil(duration_ms / dt)`` ticks.

    The line runs at time scale 1 regardless of ``config.speed``.
    """
    if dt <= 0:
        raise ValueError(f"dt must be > 0, got {dt}")
    calc_config = config.with_speed(1.0).validate()
    state = SimulationState.fresh(path_count, seed)

    steps = math.ceil(duration_ms / dt)
    for _ in range(steps):
        advance(state, calc_config, dt)

    row = StatsRow(
        duration_ms=duration_ms,
        duration_text=format_duration(duration_ms),
        source_stops=state.source_stops,
        total_processed=state.total_processed(),
        total_missed=state.total_missed(),
        total_downtime_ms=sum(p.total_downtime for p in state.paths),
        logic=calc_config.logic,
        ppm=calc_config.ppm,
        min_cap=calc_config.min_cap,
        max_cap=calc_config.max_cap,
        prob_global=calc_config.prob_global,
        path_speed=calc_config.path_speed,
    )
    logger.debug("Stats over %d steps: ok=%d miss=%d stops=%d", steps, row.total_processed, row.total_missed, row.source_stops)
    return row

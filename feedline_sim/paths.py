from __future__ import annotations

from enum import Enum
import logging
from typing import List, Optional, Tuple

from .config import (
    CYCLE_TIME_MS,
    LineConfig,
    REFERENCE_TICK_MS,
    SENSOR_TIMEOUT_MS,
    SENSOR_WINDOW,
    TAKE_X,
    UNIT_SPACING,
)
from .models import Path, SimulationState, Unit

logger = logging.getLogger(__name__)


class TakeOutcome(str, Enum):
    TAKEN = "taken"
    MISSED = "missed"
    DOWN = "down"


# ---------------------------
# Motion
# ---------------------------


def advance_units(path: Path, config: LineConfig, dt: float) -> None:
    """Move every unit toward its target without overshooting.

    The lead unit targets the take point; each following unit targets one
    spacing behind the (already moved) unit ahead of it.
    """
    step = config.path_speed * (dt / REFERENCE_TICK_MS)
    units = path.units
    for idx, u in enumerate(units):
        target = TAKE_X if idx == 0 else units[idx - 1].position - UNIT_SPACING
        if u.position < target:
            u.position += step
            u.is_moving = True
            if u.position >= target:
                u.position = target
                u.is_moving = False
        else:
            u.is_moving = False


# ---------------------------
# Sensors + request flag
# ---------------------------


def is_occupied(units: List[Unit], sensor_x: float) -> bool:
    return any(abs(u.position - sensor_x) < SENSOR_WINDOW for u in units)


def debounce(occupied: bool, timer: float, active: bool, now: float) -> Tuple[float, bool]:
    """Return the new ``(timer, active)`` pair for one sensor.

    Activation needs continuous presence longer than SENSOR_TIMEOUT_MS;
    losing presence resets immediately.
    """
    if not occupied:
        return 0.0, False
    if timer == 0:
        timer = now
    if now - timer > SENSOR_TIMEOUT_MS:
        active = True
    return timer, active


def update_sensors(path: Path, config: LineConfig, now: float) -> None:
    path.min_sensor_timer, path.min_active = debounce(
        is_occupied(path.units, config.min_x), path.min_sensor_timer, path.min_active, now
    )
    path.max_sensor_timer, path.max_active = debounce(
        is_occupied(path.units, config.max_x), path.max_sensor_timer, path.max_active, now
    )

    was_requesting = path.request_material
    if not path.min_active:
        path.request_material = True
    if path.max_active:
        path.request_material = False
    if path.request_material and not was_requesting:
        path.request_start_time = now
    if not path.request_material:
        path.request_start_time = 0.0


def track_downtime(path: Path, now: float) -> None:
    if path.is_down and path.downtime_start == 0:
        path.downtime_start = now
    if not path.is_down and path.downtime_start != 0:
        path.total_downtime += now - path.downtime_start
        path.downtime_start = 0.0


def update_path(path: Path, config: LineConfig, dt: float, now: float) -> None:
    advance_units(path, config, dt)
    update_sensors(path, config, now)
    track_downtime(path, now)


# ---------------------------
# Synchronized take
# ---------------------------


def is_ready(path: Path) -> bool:
    lead = path.lead()
    return lead is not None and lead.position >= TAKE_X


def synchronized_take(state: SimulationState) -> Optional[TakeOutcome]:
    """Evaluate one take cycle for all paths at once, if one is due.

    Either every path takes its lead unit, or every path records a miss.
    During global downtime all paths are marked down and no counter moves.
    """
    now = state.elapsed_sim_time
    if not any(now - p.last_take_time > CYCLE_TIME_MS for p in state.paths):
        return None

    if state.global_downtime:
        outcome = TakeOutcome.DOWN
    elif all(is_ready(p) for p in state.paths):
        outcome = TakeOutcome.TAKEN
    else:
        outcome = TakeOutcome.MISSED

    for p in state.paths:
        if outcome is TakeOutcome.TAKEN:
            p.units.pop(0)
            p.processed_units += 1
            p.is_down = False
            p.starvation_timer = 0.0
        elif outcome is TakeOutcome.MISSED:
            p.missed_units += 1
            p.starvation_timer = now + CYCLE_TIME_MS / 2
        else:
            p.is_down = True
            p.starvation_timer = 0.0
        p.last_take_time = now

    if outcome is TakeOutcome.MISSED:
        not_ready = [p.path_id for p in state.paths if not is_ready(p)]
        state.alarms.append(f"[{now:.0f} ms] Take cycle missed; not ready: {not_ready}")
        logger.debug("Take cycle missed at %.0f ms (not ready: %s)", now, not_ready)
    return outcome

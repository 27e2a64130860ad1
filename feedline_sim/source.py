"""Source (emitter) controller.

The emitter cycles IDLE -> RESTART -> ACTIVE -> BUFFER_STOP -> LOCKED -> IDLE,
driven by whether any path requests material. Each state has exactly one
transition rule in ``TRANSITIONS``; ``update_source_state`` applies them until
the state settles for the current tick.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from .config import (
    EMPTY_NEST_EVERY,
    LOCK_TIMEOUT_MS,
    DistributionLogic,
    LineConfig,
    PURGE_RESERVE,
    RESTART_CONFIRM_MS,
)
from .distribution import policy_for
from .models import NO_PATH, SimulationState, SourceState, Unit

logger = logging.getLogger(__name__)

TransitionRule = Callable[[SimulationState, bool, float], SourceState]


def _from_idle(state: SimulationState, any_req: bool, now: float) -> SourceState:
    return SourceState.RESTART if any_req else SourceState.IDLE


def _from_restart(state: SimulationState, any_req: bool, now: float) -> SourceState:
    if now - state.restart_start_time > RESTART_CONFIRM_MS:
        return SourceState.ACTIVE if any_req else SourceState.IDLE
    return SourceState.RESTART


def _from_active(state: SimulationState, any_req: bool, now: float) -> SourceState:
    return SourceState.ACTIVE if any_req else SourceState.BUFFER_STOP


def _from_buffer_stop(state: SimulationState, any_req: bool, now: float) -> SourceState:
    return SourceState.LOCKED if state.pending_after_stop <= 0 else SourceState.BUFFER_STOP


def _from_locked(state: SimulationState, any_req: bool, now: float) -> SourceState:
    return SourceState.IDLE if now - state.lock_start_time > LOCK_TIMEOUT_MS else SourceState.LOCKED


TRANSITIONS: Dict[SourceState, TransitionRule] = {
    SourceState.IDLE: _from_idle,
    SourceState.RESTART: _from_restart,
    SourceState.ACTIVE: _from_active,
    SourceState.BUFFER_STOP: _from_buffer_stop,
    SourceState.LOCKED: _from_locked,
}


def next_source_state(state: SimulationState, any_req: bool, now: float) -> SourceState:
    try:
        rule = TRANSITIONS[state.source_state]
    except KeyError as e:
        raise ValueError(f"Unknown source state {state.source_state!r}") from e
    return rule(state, any_req, now)


def _enter(state: SimulationState, new_state: SourceState, now: float) -> None:
    if new_state is SourceState.BUFFER_STOP:
        state.pending_after_stop = PURGE_RESERVE
    elif new_state is SourceState.LOCKED:
        state.lock_start_time = now
        state.source_stops += 1
        state.alarms.append(f"[{now:.0f} ms] Source stop #{state.source_stops}")
    elif new_state is SourceState.RESTART:
        state.restart_start_time = now
        state.units_since_restart = 0


def update_source_state(state: SimulationState, any_req: bool) -> SourceState:
    now = state.elapsed_sim_time
    # One pass per state at most, e.g. LOCKED -> IDLE -> RESTART in a single tick.
    for _ in range(len(TRANSITIONS)):
        new_state = next_source_state(state, any_req, now)
        if new_state is state.source_state:
            break
        logger.debug("Source %s -> %s at %.0f ms", state.source_state.value, new_state.value, now)
        _enter(state, new_state, now)
        state.source_state = new_state
    return state.source_state


# ---------------------------
# Emission
# ---------------------------


def _push_unit(state: SimulationState, path_id: int, is_purge: bool) -> None:
    path = state.paths[path_id]
    path.units.append(Unit(is_purge=is_purge))
    path.units_sent += 1
    path.last_unit_sent_time = state.elapsed_sim_time


def emit(state: SimulationState, config: LineConfig) -> Optional[int]:
    """Run one emission slot if it is due.

    Returns the id of the path that received a unit, or None.
    """
    now = state.elapsed_sim_time
    if now - state.last_source_time <= config.ms_per_unit:
        return None

    target = policy_for(config.logic).choose(state)

    if state.source_state is SourceState.ACTIVE and target != NO_PATH:
        state.units_since_restart += 1
        state.last_source_time = now
        if state.units_since_restart % EMPTY_NEST_EVERY == 0:
            logger.debug("Empty nest at %.0f ms (slot %d skipped)", now, state.units_since_restart)
            return None
        _push_unit(state, target, is_purge=False)
        state.last_distributed_id = target
        state.last_active_path_id = target
        if config.logic is DistributionLogic.ROUND_ROBIN:
            state.active_target_id = NO_PATH
        return target

    if state.source_state is SourceState.BUFFER_STOP and state.pending_after_stop > 0:
        target = state.last_active_path_id
        _push_unit(state, target, is_purge=True)
        state.pending_after_stop -= 1
        state.last_source_time = now
        return target

    return None

from __future__ import annotations

import logging

from .config import LineConfig, OUTAGE_BASE_PROB, OUTAGE_DURATION_MS, REFERENCE_TICK_MS
from .models import SimulationState

logger = logging.getLogger(__name__)


def outage_probability(config: LineConfig, dt: float) -> float:
    """Chance that a line-wide outage starts during a tick of ``dt`` ms."""
    return OUTAGE_BASE_PROB * (dt / REFERENCE_TICK_MS) * (config.prob_global / 20.0)


def update_global_downtime(state: SimulationState, config: LineConfig, dt: float) -> None:
    now = state.elapsed_sim_time
    if not state.global_downtime and config.prob_global > 0:
        if state.rng.random() < outage_probability(config, dt):
            state.global_downtime = True
            state.global_downtime_until = now + OUTAGE_DURATION_MS
            state.alarms.append(f"[{now:.0f} ms] Global downtime until {state.global_downtime_until:.0f} ms")
            logger.debug("Global downtime started at %.0f ms", now)
    elif state.global_downtime and now > state.global_downtime_until:
        state.global_downtime = False
        state.alarms.append(f"[{now:.0f} ms] Global downtime cleared")
        logger.debug("Global downtime cleared at %.0f ms", now)

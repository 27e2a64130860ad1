from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Protocol

from .config import DistributionLogic
from .models import NO_PATH, SimulationState


class DistributionPolicy(Protocol):
    def choose(self, state: SimulationState) -> int: ...


@dataclass
class RoundRobinPolicy:
    """Feed requesting paths in rotation.

    Scans the paths starting after ``last_distributed_id`` and picks the first
    one that requests material. Reads the state only; a stale Batch lock is
    cleared by the emitter once a Round-Robin unit is actually pushed.
    """

    def choose(self, state: SimulationState) -> int:
        n = len(state.paths)
        for i in range(1, n + 1):
            candidate = (state.last_distributed_id + i) % n
            if state.paths[candidate].request_material:
                return candidate
        return NO_PATH


@dataclass
class BatchPolicy:
    """Lock onto one requesting path and feed it until it stops requesting.

    A new lock goes to the path with the oldest request stamp (ties: lowest
    id). If no requesting path carries a stamp, the first requesting path wins.
    """

    def choose(self, state: SimulationState) -> int:
        paths = state.paths
        if state.active_target_id != NO_PATH and not paths[state.active_target_id].request_material:
            state.active_target_id = NO_PATH

        if state.active_target_id == NO_PATH and state.any_request():
            stamped = [p for p in paths if p.request_material and p.request_start_time > 0]
            if stamped:
                stamped.sort(key=lambda p: p.request_start_time)
                state.active_target_id = stamped[0].path_id
            else:
                state.active_target_id = next(p.path_id for p in paths if p.request_material)

        return state.active_target_id


_POLICIES: Dict[DistributionLogic, DistributionPolicy] = {
    DistributionLogic.ROUND_ROBIN: RoundRobinPolicy(),
    DistributionLogic.BATCH: BatchPolicy(),
}


def policy_for(logic: DistributionLogic) -> DistributionPolicy:
    return _POLICIES[logic]

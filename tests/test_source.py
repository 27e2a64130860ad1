"""Tests for the source state machine and emission slots."""

from __future__ import annotations

import itertools

import pytest

from feedline_sim.config import (
    EMPTY_NEST_EVERY,
    LOCK_TIMEOUT_MS,
    LineConfig,
    PURGE_RESERVE,
    RESTART_CONFIRM_MS,
    SOURCE_X,
)
from feedline_sim.models import SimulationState, SourceState
from feedline_sim.source import TRANSITIONS, emit, next_source_state, update_source_state


def make_state(source_state: SourceState, now: float = 10000.0) -> SimulationState:
    state = SimulationState.fresh(seed=0)
    state.source_state = source_state
    state.elapsed_sim_time = now
    return state


class TestTransitionTable:
    """Totality of the transition rules."""

    def test_every_state_has_a_rule(self):
        assert set(TRANSITIONS) == set(SourceState)

    @pytest.mark.parametrize(
        "source_state,any_req,pending,elapsed",
        list(itertools.product(SourceState, [True, False], [0, 2], [0.0, 1000.0, 5000.0])),
    )
    def test_every_input_yields_a_state(self, source_state, any_req, pending, elapsed):
        state = make_state(source_state)
        state.pending_after_stop = pending
        state.lock_start_time = state.elapsed_sim_time - elapsed
        state.restart_start_time = state.elapsed_sim_time - elapsed

        result = next_source_state(state, any_req, state.elapsed_sim_time)

        assert isinstance(result, SourceState)

    def test_random_request_sequences_stay_defined(self):
        state = SimulationState.fresh(seed=3)
        for _ in range(5000):
            state.elapsed_sim_time += 16.67
            any_req = state.rng.random() < 0.5
            if state.source_state is SourceState.BUFFER_STOP and state.rng.random() < 0.1:
                state.pending_after_stop = 0
            assert update_source_state(state, any_req) in set(SourceState)


class TestTransitions:
    def test_active_without_demand_enters_buffer_stop(self):
        state = make_state(SourceState.ACTIVE)

        update_source_state(state, any_req=False)

        assert state.source_state is SourceState.BUFFER_STOP
        assert state.pending_after_stop == PURGE_RESERVE

    def test_active_with_demand_stays(self):
        state = make_state(SourceState.ACTIVE)
        assert update_source_state(state, any_req=True) is SourceState.ACTIVE

    def test_buffer_stop_waits_for_purge_units(self):
        state = make_state(SourceState.BUFFER_STOP)
        state.pending_after_stop = 1

        assert update_source_state(state, any_req=False) is SourceState.BUFFER_STOP

    def test_buffer_stop_locks_when_reserve_spent(self):
        state = make_state(SourceState.BUFFER_STOP)
        state.pending_after_stop = 0

        update_source_state(state, any_req=True)

        assert state.source_state is SourceState.LOCKED
        assert state.lock_start_time == state.elapsed_sim_time
        assert state.source_stops == 1

    def test_locked_holds_until_timeout(self):
        state = make_state(SourceState.LOCKED)
        state.lock_start_time = state.elapsed_sim_time - LOCK_TIMEOUT_MS

        assert update_source_state(state, any_req=False) is SourceState.LOCKED

    def test_locked_times_out_to_idle(self):
        state = make_state(SourceState.LOCKED)
        state.lock_start_time = state.elapsed_sim_time - LOCK_TIMEOUT_MS - 1

        assert update_source_state(state, any_req=False) is SourceState.IDLE

    def test_locked_timeout_with_demand_restarts_same_tick(self):
        state = make_state(SourceState.LOCKED)
        state.lock_start_time = state.elapsed_sim_time - LOCK_TIMEOUT_MS - 1
        state.units_since_restart = 5

        update_source_state(state, any_req=True)

        assert state.source_state is SourceState.RESTART
        assert state.restart_start_time == state.elapsed_sim_time
        assert state.units_since_restart == 0

    def test_idle_without_demand_stays(self):
        state = make_state(SourceState.IDLE)
        assert update_source_state(state, any_req=False) is SourceState.IDLE

    def test_restart_confirms_to_active(self):
        state = make_state(SourceState.RESTART)
        state.restart_start_time = state.elapsed_sim_time - RESTART_CONFIRM_MS - 1

        assert update_source_state(state, any_req=True) is SourceState.ACTIVE

    def test_restart_falls_back_to_idle(self):
        state = make_state(SourceState.RESTART)
        state.restart_start_time = state.elapsed_sim_time - RESTART_CONFIRM_MS - 1

        assert update_source_state(state, any_req=False) is SourceState.IDLE

    def test_restart_waits_for_confirmation(self):
        state = make_state(SourceState.RESTART)
        state.restart_start_time = state.elapsed_sim_time - 100

        assert update_source_state(state, any_req=False) is SourceState.RESTART


class TestEmission:
    """Tests for emit()."""

    def test_not_due_emits_nothing(self):
        config = LineConfig(ppm=60)
        state = make_state(SourceState.ACTIVE, now=1000.0)

        assert emit(state, config) is None
        assert state.last_source_time == 0

    def test_idle_slot_does_not_advance_clock(self):
        config = LineConfig(ppm=60)
        state = make_state(SourceState.IDLE, now=2000.0)

        assert emit(state, config) is None
        assert state.last_source_time == 0
        assert all(not p.units for p in state.paths)

    def test_active_pushes_normal_unit(self):
        config = LineConfig(ppm=60)
        state = make_state(SourceState.ACTIVE, now=2000.0)

        target = emit(state, config)

        assert target == 0
        unit = state.paths[0].units[0]
        assert unit.position == SOURCE_X
        assert not unit.is_purge
        assert state.last_distributed_id == 0
        assert state.last_active_path_id == 0
        assert state.paths[0].units_sent == 1
        assert state.last_source_time == 2000.0
        assert state.units_since_restart == 1

    def test_empty_nest_skips_slot(self):
        config = LineConfig(ppm=60)
        state = make_state(SourceState.ACTIVE, now=2000.0)
        state.units_since_restart = EMPTY_NEST_EVERY - 1

        assert emit(state, config) is None

        assert state.units_since_restart == EMPTY_NEST_EVERY
        assert state.last_source_time == 2000.0
        assert all(not p.units for p in state.paths)

    def test_empty_nest_repeats_every_block(self):
        config = LineConfig(ppm=60)
        state = make_state(SourceState.ACTIVE, now=0.0)

        pushed = 0
        for _ in range(EMPTY_NEST_EVERY * 3):
            state.elapsed_sim_time += 1001.0
            if emit(state, config) is not None:
                pushed += 1

        assert state.units_since_restart == EMPTY_NEST_EVERY * 3
        assert pushed == (EMPTY_NEST_EVERY - 1) * 3

    def test_buffer_stop_pushes_purge_to_last_active_path(self):
        config = LineConfig(ppm=60, logic="Batch")
        state = make_state(SourceState.BUFFER_STOP, now=2000.0)
        state.pending_after_stop = PURGE_RESERVE
        state.last_active_path_id = 2
        for p in state.paths:
            p.request_material = False

        assert emit(state, config) == 2

        assert state.paths[2].units[0].is_purge
        assert state.pending_after_stop == PURGE_RESERVE - 1
        assert state.last_source_time == 2000.0
        assert state.units_since_restart == 0

    def test_buffer_stop_with_empty_reserve_emits_nothing(self):
        config = LineConfig(ppm=60)
        state = make_state(SourceState.BUFFER_STOP, now=2000.0)
        state.pending_after_stop = 0

        assert emit(state, config) is None

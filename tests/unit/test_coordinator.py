"""
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

from ringbarrier.config import connect_conflicts
from ringbarrier.core import (
    Controller,
    ControllerMode,
    CoordinationMode,
    Detector,
    Phase,
    PhaseState,
    PhaseTransition,
    TimingParameters,
)
from ringbarrier.core.coordinator import pack_table, unpack_table
from ringbarrier.core.phase import Termination


def _coordinated(timing: TimingParameters, phases: list[Phase]) -> Controller:
    detectors = [Detector(detector_id=1, assigned_phase=1, max_extension=10_000)]
    return Controller(
        phases, ring_count=1, detectors=detectors, timing=timing, mode=ControllerMode.COORDINATED
    )


def _run(c: Controller, end: int, calls: dict[int, int] | None = None) -> list[PhaseTransition]:
    out: list[PhaseTransition] = []
    for t in range(end + 1):
        if calls and t in calls:
            c.place_call(calls[t], now=t)
        out.extend(c.tick(t, 0.0 if t == 0 else 0.1, {1: True}))
    return out


def _yellow_at(transitions: list[PhaseTransition], phase: int) -> list[int]:
    return [t.time for t in transitions if t.phase == phase and t.to_state == PhaseState.YELLOW]


def test_split_stored_as_percent_and_rescaled_with_cycle() -> None:
    timing = TimingParameters(cycle_length=1000)
    timing.set_phase_split(2, 300)
    assert timing.split_table[1] == 30
    assert timing.phase_split(2) == 300
    timing.cycle_length = 2000
    assert timing.phase_split(2) == 600


def test_table_entries_capped_and_bounds_checked() -> None:
    timing = TimingParameters(cycle_length=1000)
    timing.set_phase_force_off(1, 5000)
    assert timing.force_off_table[0] == 100
    timing.set_phase_force_off(9, 100)
    assert timing.phase_force_off(9) == 0
    assert not timing.has_force_off(9)


def test_packed_table_layout() -> None:
    table = [10, 20, 30, 40, 0, 0, 0, 100]
    packed = pack_table(table)
    assert packed & 0xFF == 10
    assert (packed >> 56) & 0xFF == 100
    assert unpack_table(packed) == table


def test_yield_windows_divide_cycle_in_sixteen() -> None:
    timing = TimingParameters(cycle_length=1600, yield_points=1 << 2)
    assert not timing.is_in_yield_point(199)
    assert timing.is_in_yield_point(200)
    assert timing.is_in_yield_point(299)
    assert not timing.is_in_yield_point(300)
    assert timing.is_in_yield_point(1800)


def test_auto_splits_share_spare_time() -> None:
    phases = [Phase(number=1, minimum_green=100), Phase(number=3, minimum_green=100)]
    timing = TimingParameters(cycle_length=1000)
    timing.calculate_auto_splits(phases)
    assert timing.split_table[:4] == [50, 0, 50, 0]
    assert timing.cycle_position(250) == 0.25


def test_force_off_ends_green_at_cycle_point() -> None:
    timing = TimingParameters(cycle_length=1000, use_force_off=True)
    timing.set_phase_force_off(1, 200)
    c = _coordinated(timing, [Phase(number=1)])
    transitions = _run(c, 250)
    assert _yellow_at(transitions, 1)[0] == 200
    assert c.phase(1).termination == Termination.FORCE_OFF


def test_force_off_respects_minimum_green() -> None:
    timing = TimingParameters(cycle_length=1000, use_force_off=True)
    timing.set_phase_force_off(1, 50)
    c = _coordinated(timing, [Phase(number=1, minimum_green=100)])
    transitions = _run(c, 150)
    assert _yellow_at(transitions, 1) == [100]
    assert c.phase(1).termination == Termination.FORCE_OFF


def test_force_off_ignored_when_free_running() -> None:
    timing = TimingParameters(cycle_length=1000, use_force_off=True)
    timing.set_phase_force_off(1, 200)
    c = _coordinated(timing, [Phase(number=1)])
    c.set_mode(ControllerMode.ACTUATED, now=0)
    assert timing.mode == CoordinationMode.FREE
    transitions = _run(c, 300)
    assert _yellow_at(transitions, 1) == []


def test_yield_point_releases_green_to_waiting_demand() -> None:
    timing = TimingParameters(cycle_length=1600, yield_points=1 << 2, coordination_enabled=True)
    phases = [Phase(number=1), Phase(number=3)]
    connect_conflicts(phases, [(1, 3)])
    c = _coordinated(timing, phases)
    transitions = _run(c, 260, calls={10: 3})
    assert _yellow_at(transitions, 1) == [200]
    assert c.phase(1).termination == Termination.YIELD


def test_non_omittable_phase_holds_through_yield_point() -> None:
    timing = TimingParameters(cycle_length=1600, yield_points=1 << 2, coordination_enabled=True)
    phases = [Phase(number=1, omittable=False), Phase(number=3)]
    connect_conflicts(phases, [(1, 3)])
    c = _coordinated(timing, phases)
    transitions = _run(c, 400, calls={10: 3})
    assert _yellow_at(transitions, 1) == []


def test_entering_coordination_syncs_cycle_timer_to_offset() -> None:
    timing = TimingParameters(cycle_length=1200, offset=300)
    c = Controller([Phase(number=1)], ring_count=1, timing=timing)
    c.set_mode(ControllerMode.COORDINATED, now=500)
    assert c.cycle_timer == 200
    assert timing.mode == CoordinationMode.COORDINATED
    c.set_mode(ControllerMode.COORDINATED, now=900)
    assert c.cycle_timer == 200


def test_force_off_follows_cycle_length_change() -> None:
    timing = TimingParameters(cycle_length=1000, use_force_off=True)
    timing.set_phase_force_off(1, 500)
    c = _coordinated(timing, [Phase(number=1, maximum_green=3000)])
    transitions = _run(c, 10)
    timing.cycle_length = 2000
    assert c.cycle_length == 2000
    for t in range(11, 1050):
        transitions.extend(c.tick(t, 0.1, {1: True}))
    assert _yellow_at(transitions, 1) == [1000]
    assert c.phase(1).termination == Termination.FORCE_OFF


def test_cycle_timer_only_runs_when_coordinated() -> None:
    timing = TimingParameters(cycle_length=1000, offset=100)
    c = Controller([Phase(number=1)], ring_count=1, timing=timing)
    for t in range(50):
        c.tick(t, 0.0 if t == 0 else 0.1)
    assert c.cycle_timer == 0
    c.set_mode(ControllerMode.COORDINATED, now=50)
    assert c.cycle_timer == 950
    c.tick(51, 0.1)
    assert c.cycle_timer == 951

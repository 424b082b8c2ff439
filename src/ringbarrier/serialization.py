"""Field-by-field snapshot of controller state, schema versioned.
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .core.calls import Call, CallPriority, CallStatus, CallType
from .core.controller import Controller, ControllerMode, ControllerState
from .core.coordinator import CoordinationMode, TimingParameters, pack_table, unpack_table
from .core.detector import Detector, DetectorState, DetectorType
from .core.phase import Phase, PhaseState, PhaseType, Termination

SCHEMA_VERSION = 2
_V1_GREEN = {PhaseState.MINIMUM_GREEN.value, PhaseState.PASSAGE_TIME.value, PhaseState.MAXIMUM_GREEN.value}


def detector_to_dict(d: Detector) -> dict[str, Any]:
    return {
        "detector_id": d.detector_id,
        "assigned_phase": d.assigned_phase,
        "type": d.type.value,
        "state": d.state.value,
        "position": d.position,
        "length": d.length,
        "sensitivity": d.sensitivity,
        "extension_time": d.extension_time,
        "max_extension": d.max_extension,
        "occupancy_time": d.occupancy_time,
        "call_placed_time": d.call_placed_time,
        "can_place_calls": d.can_place_calls,
        "provides_extension": d.provides_extension,
        "enabled": d.enabled,
        "vehicle_count": d.vehicle_count,
        "average_speed": d.average_speed,
    }


def detector_from_dict(obj: dict[str, Any]) -> Detector:
    return Detector(
        detector_id=int(obj["detector_id"]),
        assigned_phase=int(obj["assigned_phase"]),
        type=DetectorType(obj["type"]),
        state=DetectorState(obj["state"]),
        position=float(obj["position"]),
        length=float(obj["length"]),
        sensitivity=float(obj["sensitivity"]),
        extension_time=int(obj["extension_time"]),
        max_extension=int(obj["max_extension"]),
        occupancy_time=int(obj["occupancy_time"]),
        call_placed_time=int(obj["call_placed_time"]),
        can_place_calls=bool(obj["can_place_calls"]),
        provides_extension=bool(obj["provides_extension"]),
        enabled=bool(obj["enabled"]),
        vehicle_count=int(obj["vehicle_count"]),
        average_speed=int(obj["average_speed"]),
    )


def call_to_dict(c: Call) -> dict[str, Any]:
    return {
        "call_id": c.call_id,
        "phase": c.phase,
        "type": c.type.value,
        "priority": c.priority.value,
        "status": c.status.value,
        "detector_id": c.detector_id,
        "placed_time": c.placed_time,
        "served_time": c.served_time,
        "cleared_time": c.cleared_time,
        "timeout_duration": c.timeout_duration,
        "extendable": c.extendable,
        "persistent": c.persistent,
        "requires_min_green": c.requires_min_green,
    }


def call_from_dict(obj: dict[str, Any]) -> Call:
    return Call(
        call_id=int(obj["call_id"]),
        phase=int(obj["phase"]),
        type=CallType(obj["type"]),
        priority=CallPriority(int(obj["priority"])),
        status=CallStatus(obj["status"]),
        detector_id=int(obj["detector_id"]),
        placed_time=int(obj["placed_time"]),
        served_time=int(obj["served_time"]),
        cleared_time=int(obj["cleared_time"]),
        timeout_duration=int(obj["timeout_duration"]),
        extendable=bool(obj["extendable"]),
        persistent=bool(obj["persistent"]),
        requires_min_green=bool(obj["requires_min_green"]),
    )


def phase_to_dict(p: Phase) -> dict[str, Any]:
    return {
        "number": p.number,
        "ring": p.ring,
        "type": p.type.value,
        "state": p.state.value,
        "minimum_green": p.minimum_green,
        "passage_time": p.passage_time,
        "maximum_green": p.maximum_green,
        "yellow_time": p.yellow_time,
        "all_red_time": p.all_red_time,
        "timer": p.timer,
        "conflicting_phases": p.conflicting_phases,
        "compatible_overlaps": p.compatible_overlaps,
        "lane_assignments": list(p.lane_assignments),
        "detector_mask": p.detector_mask,
        "has_calls": p.has_calls,
        "enabled": p.enabled,
        "omittable": p.omittable,
        "has_pedestrian": p.has_pedestrian,
        "green_elapsed": p.green_elapsed,
        "extension_mark": p.extension_mark,
        "termination": p.termination.value if p.termination else None,
    }


def phase_from_dict(obj: dict[str, Any]) -> Phase:
    lanes = obj["lane_assignments"]
    termination = obj.get("termination")
    return Phase(
        number=int(obj["number"]),
        ring=int(obj["ring"]),
        type=PhaseType(obj["type"]),
        state=PhaseState(obj["state"]),
        minimum_green=int(obj["minimum_green"]),
        passage_time=int(obj["passage_time"]),
        maximum_green=int(obj["maximum_green"]),
        yellow_time=int(obj["yellow_time"]),
        all_red_time=int(obj["all_red_time"]),
        timer=int(obj["timer"]),
        conflicting_phases=int(obj["conflicting_phases"]),
        compatible_overlaps=int(obj["compatible_overlaps"]),
        lane_assignments=(int(lanes[0]), int(lanes[1])),
        detector_mask=int(obj["detector_mask"]),
        has_calls=bool(obj["has_calls"]),
        enabled=bool(obj["enabled"]),
        omittable=bool(obj["omittable"]),
        has_pedestrian=bool(obj["has_pedestrian"]),
        green_elapsed=int(obj["green_elapsed"]),
        extension_mark=int(obj["extension_mark"]),
        termination=Termination(termination) if termination else None,
    )


def timing_to_dict(t: TimingParameters) -> dict[str, Any]:
    return {
        "mode": t.mode.value,
        "cycle_length": t.cycle_length,
        "natural_cycle": t.natural_cycle,
        "offset": t.offset,
        "split_table": pack_table(t.split_table),
        "force_off_table": pack_table(t.force_off_table),
        "yield_points": t.yield_points,
        "permissive_periods": t.permissive_periods,
        "coordination_priority": t.coordination_priority,
        "max_hold_time": t.max_hold_time,
        "min_extend_time": t.min_extend_time,
        "coordination_enabled": t.coordination_enabled,
        "use_force_off": t.use_force_off,
        "allow_early_return": t.allow_early_return,
    }


def timing_from_dict(obj: dict[str, Any]) -> TimingParameters:
    return TimingParameters(
        mode=CoordinationMode(obj["mode"]),
        cycle_length=int(obj["cycle_length"]),
        natural_cycle=int(obj["natural_cycle"]),
        offset=int(obj["offset"]),
        split_table=unpack_table(int(obj["split_table"])),
        force_off_table=unpack_table(int(obj["force_off_table"])),
        yield_points=int(obj["yield_points"]),
        permissive_periods=int(obj["permissive_periods"]),
        coordination_priority=int(obj["coordination_priority"]),
        max_hold_time=int(obj["max_hold_time"]),
        min_extend_time=int(obj["min_extend_time"]),
        coordination_enabled=bool(obj["coordination_enabled"]),
        use_force_off=bool(obj["use_force_off"]),
        allow_early_return=bool(obj["allow_early_return"]),
    )


def controller_to_dict(c: Controller) -> dict[str, Any]:
    return {
        "mode": c.mode.value,
        "state": c.state.value,
        "ring_count": c.ring_count,
        "active_phases": c.active_phases,
        "barrier_groups": list(c.barrier_groups),
        "cycle_length": c.cycle_length,
        "offset": c.offset,
        "cycle_timer": c.cycle_timer,
        "force_off_table": c.force_off_table,
        "pedestrian_clearance": c.pedestrian_clearance,
        "all_red_clearance": c.all_red_clearance,
        "now": c.now,
        "clock_remainder": c.clock.remainder,
        "next_call_id": c.next_call_id,
        "current_barrier": c.current_barrier,
        "served_mask": c.served_mask,
        "preempt_phase": c.preempt_phase,
        "phases": [phase_to_dict(p) for p in c.phases],
        "calls": [call_to_dict(x) for x in c.calls],
        "detectors": [detector_to_dict(d) for d in c.detectors],
        "timing": timing_to_dict(c.timing) if c.timing is not None else None,
    }


def controller_from_dict(obj: dict[str, Any], logger: Optional[logging.Logger] = None) -> Controller:
    timing = timing_from_dict(obj["timing"]) if obj.get("timing") else None
    c = Controller(
        phases=[phase_from_dict(x) for x in obj["phases"]],
        barrier_groups=[int(m) for m in obj["barrier_groups"]],
        ring_count=int(obj["ring_count"]),
        detectors=[detector_from_dict(x) for x in obj["detectors"]],
        timing=timing,
        mode=ControllerMode(obj["mode"]),
        cycle_length=int(obj["cycle_length"]),
        offset=int(obj["offset"]),
        pedestrian_clearance=int(obj["pedestrian_clearance"]),
        all_red_clearance=int(obj["all_red_clearance"]),
        logger=logger,
    )
    # force_off_table is derived from timing and not restored on its own
    c.state = ControllerState(obj["state"])
    c.cycle_length = int(obj["cycle_length"])
    c.offset = int(obj["offset"])
    c.cycle_timer = int(obj["cycle_timer"])
    c.now = int(obj["now"])
    c.clock.remainder = float(obj["clock_remainder"])
    c.next_call_id = int(obj["next_call_id"])
    current = obj.get("current_barrier")
    c.current_barrier = int(current) if current is not None else None
    c.served_mask = int(obj["served_mask"])
    preempt = obj.get("preempt_phase")
    c.preempt_phase = int(preempt) if preempt is not None else None
    c.calls = [call_from_dict(x) for x in obj["calls"]]
    active = int(obj["active_phases"])
    for n in range(active.bit_length()):
        if active & (1 << n):
            c.set_phase_active(n, True)
    return c


def _upgrade_v1(payload: dict[str, Any]) -> dict[str, Any]:
    """v1 kept tables in tenths of a percent and no phase green bookkeeping."""
    ctl = payload["controller"]
    for p in ctl["phases"]:
        p.setdefault("green_elapsed", p["timer"] if p["state"] in _V1_GREEN else 0)
        p.setdefault("extension_mark", 0)
        p.setdefault("termination", None)
    ctl.setdefault("now", 0)
    ctl.setdefault("clock_remainder", 0.0)
    ctl.setdefault("next_call_id", max((x["call_id"] for x in ctl["calls"]), default=0) + 1)
    ctl.setdefault("current_barrier", None)
    ctl.setdefault("served_mask", 0)
    ctl.setdefault("preempt_phase", None)
    timing = ctl.get("timing")
    if timing:
        for name in ("split_table", "force_off_table"):
            tenths = unpack_table(int(timing[name]))
            timing[name] = pack_table(v // 10 for v in tenths)
    payload["schema_version"] = 2
    return payload

MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {1: _upgrade_v1}


def upgrade_snapshot(payload: dict[str, Any]) -> dict[str, Any]:
    version = int(payload.get("schema_version", 0))
    if version > SCHEMA_VERSION:
        raise ValueError(f"snapshot schema {version} is newer than supported {SCHEMA_VERSION}")
    while version < SCHEMA_VERSION:
        migrate = MIGRATIONS.get(version)
        if migrate is None:
            raise ValueError(f"no upgrade path from snapshot schema {version}")
        payload = migrate(payload)
        version = int(payload["schema_version"])
    return payload


def dump_snapshot(c: Controller) -> dict[str, Any]:
    return {"schema_version": SCHEMA_VERSION, "controller": controller_to_dict(c)}


def load_snapshot(payload: dict[str, Any], logger: Optional[logging.Logger] = None) -> Controller:
    try:
        upgraded = upgrade_snapshot(payload)
        return controller_from_dict(upgraded["controller"], logger)
    except (KeyError, TypeError, IndexError) as exc:
        raise ValueError(f"malformed snapshot: {exc!r}") from exc

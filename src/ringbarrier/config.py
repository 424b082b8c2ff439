"""Controller configuration: JSON plans, the standard NEMA plan and validation.
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from .core.controller import Controller, ControllerMode
from .core.coordinator import TABLE_PHASES, CoordinationMode, TimingParameters
from .core.detector import Detector, DetectorType
from .core.phase import Phase, PhaseType

MAX_PHASE_NUMBER = 31

STANDARD_PHASE_TYPES: tuple[tuple[int, int, PhaseType], ...] = (
    (1, 0, PhaseType.VEHICULAR),  # EB/WB through
    (2, 0, PhaseType.PROTECTED_TURN),  # EB/WB left
    (3, 0, PhaseType.VEHICULAR),  # NB/SB through
    (4, 0, PhaseType.PROTECTED_TURN),  # NB/SB left
    (5, 1, PhaseType.PEDESTRIAN),
    (6, 1, PhaseType.PEDESTRIAN),
    (7, 1, PhaseType.PEDESTRIAN),
    (8, 1, PhaseType.PEDESTRIAN),
)
STANDARD_BARRIERS: tuple[tuple[int, ...], ...] = ((1, 2, 5, 6), (3, 4, 7, 8))


@dataclass
class ControllerConfig:
    phases: list[Phase]
    barrier_groups: list[int] = field(default_factory=list)
    ring_count: int = 2
    detectors: list[Detector] = field(default_factory=list)
    timing: Optional[TimingParameters] = None
    mode: ControllerMode = ControllerMode.ACTUATED
    pedestrian_clearance: int = 70
    all_red_clearance: int = 30

    def build(self, logger: Optional[logging.Logger] = None) -> Controller:
        return Controller(
            phases=self.phases,
            barrier_groups=self.barrier_groups,
            ring_count=self.ring_count,
            detectors=self.detectors,
            timing=self.timing,
            mode=self.mode,
            pedestrian_clearance=self.pedestrian_clearance,
            all_red_clearance=self.all_red_clearance,
            logger=logger,
        )


def phase_mask(numbers: Iterable[int]) -> int:
    """Bit n set for every n given; also used for yield windows."""
    mask = 0
    for n in numbers:
        mask |= 1 << int(n)
    return mask


def mask_phases(mask: int) -> list[int]:
    return [n for n in range(MAX_PHASE_NUMBER + 1) if mask & (1 << n)]


def connect_conflicts(phases: Iterable[Phase], pairs: Iterable[tuple[int, int]]) -> None:
    """Records each conflicting pair on both phases."""
    by_number = {p.number: p for p in phases}
    for a, b in pairs:
        if a in by_number and b in by_number:
            by_number[a].set_conflict(b, True)
            by_number[b].set_conflict(a, True)


def standard_dual_ring() -> ControllerConfig:
    """Eight phases in two rings of four, one barrier between 2|3 and 6|7."""
    phases = [Phase.from_type(number, ring, t) for number, ring, t in STANDARD_PHASE_TYPES]
    barriers = [phase_mask(group) for group in STANDARD_BARRIERS]
    group_of = {n: i for i, group in enumerate(STANDARD_BARRIERS) for n in group}
    pairs = [
        (a.number, b.number)
        for a in phases
        for b in phases
        if a.number < b.number and (a.ring == b.ring or group_of[a.number] != group_of[b.number])
    ]
    connect_conflicts(phases, pairs)
    detectors = [
        Detector(detector_id=p.number, assigned_phase=p.number)
        for p in phases
        if p.type in (PhaseType.VEHICULAR, PhaseType.PROTECTED_TURN)
    ]
    for p in phases:
        p.detector_mask = phase_mask(d.detector_id for d in detectors if d.assigned_phase == p.number)
    return ControllerConfig(phases=phases, barrier_groups=barriers, detectors=detectors)


def _parse_phase(obj: dict[str, Any]) -> Phase:
    phase_type = PhaseType(str(obj.get("type", PhaseType.VEHICULAR.value)))
    p = Phase.from_type(int(obj["number"]), int(obj.get("ring", 0)), phase_type)
    for name in ("minimum_green", "passage_time", "maximum_green", "yellow_time", "all_red_time"):
        if name in obj:
            setattr(p, name, int(obj[name]))
    p.conflicting_phases = phase_mask(obj.get("conflicts", []))
    p.compatible_overlaps = phase_mask(obj.get("overlaps", []))
    p.detector_mask = phase_mask(obj.get("detectors", []))
    lanes = obj.get("lanes", [-1, -1])
    p.lane_assignments = (int(lanes[0]), int(lanes[1]))
    p.enabled = bool(obj.get("enabled", True))
    p.omittable = bool(obj.get("omittable", True))
    p.has_pedestrian = bool(obj.get("has_pedestrian", p.has_pedestrian))
    return p


def _parse_detector(obj: dict[str, Any]) -> Detector:
    return Detector(
        detector_id=int(obj["detector_id"]),
        assigned_phase=int(obj["assigned_phase"]),
        type=DetectorType(str(obj.get("type", DetectorType.PRESENCE.value))),
        position=float(obj.get("position", 0.9)),
        length=float(obj.get("length", 0.1)),
        sensitivity=float(obj.get("sensitivity", 0.8)),
        extension_time=int(obj.get("extension_time", 30)),
        max_extension=int(obj.get("max_extension", 50)),
        can_place_calls=bool(obj.get("can_place_calls", True)),
        provides_extension=bool(obj.get("provides_extension", True)),
        enabled=bool(obj.get("enabled", True)),
    )


def _parse_table(timing: TimingParameters, raw: dict[str, Any], setter: str) -> None:
    for phase, value in raw.items():
        getattr(timing, setter)(int(phase), int(value))


def _parse_percent(table: list[int], raw: dict[str, Any]) -> None:
    for phase, value in raw.items():
        index = int(phase) - 1
        if 0 <= index < TABLE_PHASES:
            table[index] = int(value)


def _parse_timing(obj: dict[str, Any]) -> TimingParameters:
    timing = TimingParameters(
        mode=CoordinationMode(str(obj.get("mode", CoordinationMode.FREE.value))),
        cycle_length=int(obj.get("cycle_length", 1200)),
        natural_cycle=int(obj.get("natural_cycle", 1000)),
        offset=int(obj.get("offset", 0)),
        yield_points=phase_mask(obj.get("yield_windows", [])),
        permissive_periods=int(obj.get("permissive_periods", 0)),
        coordination_priority=int(obj.get("coordination_priority", 128)),
        max_hold_time=int(obj.get("max_hold_time", 100)),
        min_extend_time=int(obj.get("min_extend_time", 50)),
        coordination_enabled=bool(obj.get("coordination_enabled", False)),
        use_force_off=bool(obj.get("use_force_off", False)),
        allow_early_return=bool(obj.get("allow_early_return", True)),
    )
    # "splits" and "force_offs" are deciseconds; the *_percent forms are stored as given
    _parse_table(timing, obj.get("splits", {}), "set_phase_split")
    _parse_table(timing, obj.get("force_offs", {}), "set_phase_force_off")
    _parse_percent(timing.split_table, obj.get("split_percent", {}))
    _parse_percent(timing.force_off_table, obj.get("force_off_percent", {}))
    return timing


def parse_configuration(obj: dict[str, Any]) -> ControllerConfig:
    try:
        phases = [_parse_phase(x) for x in obj["phases"]]
        detectors = [_parse_detector(x) for x in obj.get("detectors", [])]
        barriers = [phase_mask(group) for group in obj.get("barrier_groups", [])]
        timing = _parse_timing(obj["timing"]) if obj.get("timing") else None
        return ControllerConfig(
            phases=phases,
            barrier_groups=barriers,
            ring_count=int(obj.get("ring_count", 2)),
            detectors=detectors,
            timing=timing,
            mode=ControllerMode(str(obj.get("mode", ControllerMode.ACTUATED.value))),
            pedestrian_clearance=int(obj.get("pedestrian_clearance", 70)),
            all_red_clearance=int(obj.get("all_red_clearance", 30)),
        )
    except (KeyError, TypeError, IndexError) as exc:
        raise ValueError(f"malformed configuration: {exc!r}") from exc


def load_configuration(path: Path) -> ControllerConfig:
    obj = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(obj, dict):
        raise ValueError("configuration root must be an object")
    return parse_configuration(obj)


def config_to_dict(cfg: ControllerConfig) -> dict[str, Any]:
    out: dict[str, Any] = {
        "ring_count": cfg.ring_count,
        "mode": cfg.mode.value,
        "pedestrian_clearance": cfg.pedestrian_clearance,
        "all_red_clearance": cfg.all_red_clearance,
        "barrier_groups": [mask_phases(m) for m in cfg.barrier_groups],
        "phases": [
            {
                "number": p.number,
                "ring": p.ring,
                "type": p.type.value,
                "minimum_green": p.minimum_green,
                "passage_time": p.passage_time,
                "maximum_green": p.maximum_green,
                "yellow_time": p.yellow_time,
                "all_red_time": p.all_red_time,
                "conflicts": mask_phases(p.conflicting_phases),
                "overlaps": mask_phases(p.compatible_overlaps),
                "detectors": mask_phases(p.detector_mask),
                "lanes": list(p.lane_assignments),
                "enabled": p.enabled,
                "omittable": p.omittable,
                "has_pedestrian": p.has_pedestrian,
            }
            for p in cfg.phases
        ],
        "detectors": [
            {
                "detector_id": d.detector_id,
                "assigned_phase": d.assigned_phase,
                "type": d.type.value,
                "position": d.position,
                "length": d.length,
                "sensitivity": d.sensitivity,
                "extension_time": d.extension_time,
                "max_extension": d.max_extension,
                "can_place_calls": d.can_place_calls,
                "provides_extension": d.provides_extension,
                "enabled": d.enabled,
            }
            for d in cfg.detectors
        ],
    }
    t = cfg.timing
    if t is not None:
        out["timing"] = {
            "mode": t.mode.value,
            "cycle_length": t.cycle_length,
            "natural_cycle": t.natural_cycle,
            "offset": t.offset,
            "split_percent": {str(n): v for n, v in enumerate(t.split_table, start=1) if v},
            "force_off_percent": {str(n): v for n, v in enumerate(t.force_off_table, start=1) if v},
            "yield_windows": mask_phases(t.yield_points),
            "permissive_periods": t.permissive_periods,
            "coordination_priority": t.coordination_priority,
            "max_hold_time": t.max_hold_time,
            "min_extend_time": t.min_extend_time,
            "coordination_enabled": t.coordination_enabled,
            "use_force_off": t.use_force_off,
            "allow_early_return": t.allow_early_return,
        }
    return out


def validate_configuration(cfg: ControllerConfig) -> list[str]:
    """Lists every problem that would break the controller's assumptions.

    The controller never checks its plan at runtime; callers reject any plan
    for which this returns a non-empty list.
    """
    problems: list[str] = []
    by_number: dict[int, Phase] = {}
    for p in cfg.phases:
        if p.number in by_number:
            problems.append(f"phase {p.number}: duplicate phase number")
        by_number[p.number] = p
        if not 1 <= p.number <= MAX_PHASE_NUMBER:
            problems.append(f"phase {p.number}: number outside 1..{MAX_PHASE_NUMBER}")
        if not 0 <= p.ring < cfg.ring_count:
            problems.append(f"phase {p.number}: ring {p.ring} outside 0..{cfg.ring_count - 1}")
        if p.minimum_green <= 0:
            problems.append(f"phase {p.number}: minimum green must be positive")
        if p.maximum_green < p.minimum_green:
            problems.append(f"phase {p.number}: maximum green below minimum green")
        if p.passage_time < 0 or p.yellow_time < 0 or p.all_red_time < 0:
            problems.append(f"phase {p.number}: negative timing")
        if p.clearance_time() <= 0:
            problems.append(f"phase {p.number}: clearance (yellow + all-red) is zero")

    for p in by_number.values():
        for other in mask_phases(p.conflicting_phases):
            if other == p.number:
                problems.append(f"phase {p.number}: conflicts with itself")
            elif other not in by_number:
                problems.append(f"phase {p.number}: conflicts with unknown phase {other}")
            elif not by_number[other].conflicts_with(p.number):
                problems.append(f"phase {p.number}/{other}: conflict recorded on one side only")

    seen = 0
    for index, mask in enumerate(cfg.barrier_groups):
        if mask & seen:
            problems.append(f"barrier group {index}: overlaps an earlier group {mask_phases(mask & seen)}")
        seen |= mask
        for n in mask_phases(mask):
            if n not in by_number:
                problems.append(f"barrier group {index}: unknown phase {n}")

    for d in cfg.detectors:
        if d.assigned_phase not in by_number:
            problems.append(f"detector {d.detector_id}: assigned to unknown phase {d.assigned_phase}")

    t = cfg.timing
    if t is not None:
        if t.cycle_length <= 0:
            problems.append("timing: cycle length must be positive")
        if any(v > 100 for v in t.split_table + t.force_off_table):
            problems.append("timing: table entry above 100 percent of cycle")
    return problems

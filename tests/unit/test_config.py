"""
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ringbarrier.config import (
    config_to_dict,
    load_configuration,
    mask_phases,
    parse_configuration,
    phase_mask,
    standard_dual_ring,
    validate_configuration,
)
from ringbarrier.core import ControllerMode, CoordinationMode, PhaseType


def _two_phase_plan() -> dict:
    return {
        "ring_count": 1,
        "mode": "coordinated",
        "phases": [
            {"number": 1, "ring": 0, "minimum_green": 100, "conflicts": [3], "detectors": [1]},
            {"number": 3, "ring": 0, "type": "protected_turn", "conflicts": [1]},
        ],
        "detectors": [{"detector_id": 1, "assigned_phase": 1}],
        "barrier_groups": [[1], [3]],
        "timing": {
            "mode": "coordinated",
            "cycle_length": 1000,
            "splits": {"1": 600, "3": 400},
            "force_offs": {"1": 550},
            "yield_windows": [2, 3],
            "use_force_off": True,
        },
    }


def test_standard_plan_is_valid_and_symmetric() -> None:
    cfg = standard_dual_ring()
    assert validate_configuration(cfg) == []
    by_number = {p.number: p for p in cfg.phases}
    assert mask_phases(by_number[1].conflicting_phases) == [2, 3, 4, 7, 8]
    assert mask_phases(by_number[6].conflicting_phases) == [3, 4, 5, 7, 8]
    for p in cfg.phases:
        for other in mask_phases(p.conflicting_phases):
            assert by_number[other].conflicts_with(p.number)
    assert [p.type for p in cfg.phases[4:]] == [PhaseType.PEDESTRIAN] * 4
    assert [d.assigned_phase for d in cfg.detectors] == [1, 2, 3, 4]


def test_parse_plan_converts_tables_to_percent() -> None:
    cfg = parse_configuration(_two_phase_plan())
    assert cfg.mode == ControllerMode.COORDINATED
    assert cfg.timing is not None
    assert cfg.timing.mode == CoordinationMode.COORDINATED
    assert cfg.timing.split_table[:3] == [60, 0, 40]
    assert cfg.timing.force_off_table[0] == 55
    assert cfg.timing.yield_points == phase_mask([2, 3])
    assert cfg.phases[1].minimum_green == 70
    assert validate_configuration(cfg) == []


def test_dumped_plan_parses_back() -> None:
    cfg = parse_configuration(_two_phase_plan())
    again = parse_configuration(json.loads(json.dumps(config_to_dict(cfg))))
    assert [p.conflicting_phases for p in again.phases] == [p.conflicting_phases for p in cfg.phases]
    assert again.barrier_groups == cfg.barrier_groups
    assert again.timing.split_table == cfg.timing.split_table
    assert again.timing.force_off_table == cfg.timing.force_off_table


def test_validator_reports_each_problem() -> None:
    plan = _two_phase_plan()
    plan["phases"][1]["conflicts"] = []
    plan["phases"][0]["maximum_green"] = 50
    plan["barrier_groups"] = [[1, 3], [3]]
    plan["detectors"].append({"detector_id": 2, "assigned_phase": 9})
    problems = validate_configuration(parse_configuration(plan))
    assert any("one side only" in p for p in problems)
    assert any("maximum green below minimum" in p for p in problems)
    assert any("overlaps" in p for p in problems)
    assert any("detector 2" in p for p in problems)


def test_validator_flags_duplicates_and_zero_clearance() -> None:
    cfg = standard_dual_ring()
    cfg.phases[1].number = 1
    cfg.phases[2].yellow_time = 0
    cfg.phases[2].all_red_time = 0
    problems = validate_configuration(cfg)
    assert any("duplicate" in p for p in problems)
    assert any("clearance" in p for p in problems)


def test_malformed_plan_raises_value_error() -> None:
    with pytest.raises(ValueError):
        parse_configuration({"detectors": []})
    with pytest.raises(ValueError):
        parse_configuration({"phases": [{"number": 1, "type": "tram"}]})


def test_load_configuration_from_file(tmp_path: Path) -> None:
    path = tmp_path / "plan.json"
    path.write_text(json.dumps(_two_phase_plan()), encoding="utf-8")
    cfg = load_configuration(path)
    assert [p.number for p in cfg.phases] == [1, 3]
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_configuration(path)


def test_dump_keeps_table_percentages_for_odd_cycle() -> None:
    plan = _two_phase_plan()
    plan["timing"]["cycle_length"] = 1150
    plan["timing"]["force_offs"] = {"1": 380}
    cfg = parse_configuration(plan)
    assert cfg.timing.force_off_table[0] == 33
    dumped = config_to_dict(cfg)
    assert dumped["timing"]["force_off_percent"] == {"1": 33}
    again = parse_configuration(json.loads(json.dumps(dumped)))
    assert again.timing.force_off_table == cfg.timing.force_off_table
    assert again.timing.split_table == cfg.timing.split_table

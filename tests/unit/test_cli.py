"""
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

from ringbarrier import cli
from ringbarrier.config import standard_dual_ring
from ringbarrier.core import CallType, ControllerMode
from ringbarrier.storage.db import connect, load_snapshot


def test_parse_event_reads_all_fields() -> None:
    event = cli.parse_event(
        '{"t": 12, "dt": 0.2, "presence": {"1": true}, "faults": {"3": true}, '
        '"calls": [{"phase": 6, "type": "pedestrian"}], "clear_calls": [{"phase": 1, "type": "emergency"}], '
        '"mode": "manual"}'
    )
    assert event.time == 12
    assert event.delta_seconds == 0.2
    assert event.presence == {1: True}
    assert event.faults == {3: True}
    assert event.calls == (cli.CallRequest(6, CallType.PEDESTRIAN),)
    assert event.clear_calls == (cli.CallRequest(1, CallType.EMERGENCY),)
    assert event.mode == ControllerMode.MANUAL


def test_parse_event_defaults_and_errors() -> None:
    event = cli.parse_event('{"t": 3}', default_step=0.5)
    assert event.delta_seconds == 0.5
    assert event.calls == ()
    with pytest.raises(KeyError):
        cli.parse_event('{"dt": 0.1}')
    with pytest.raises(ValueError):
        cli.parse_event('{"t": 1, "mode": "disco"}')
    with pytest.raises(ValueError):
        cli.parse_event("[1]")


def test_process_stream_skips_bad_lines(capsys: pytest.CaptureFixture[str], caplog: pytest.LogCaptureFixture) -> None:
    controller = standard_dual_ring().build()
    lines = [
        json.dumps({"t": 0, "dt": 0.0, "calls": [{"phase": 1}]}),
        "not json",
        json.dumps({"t": 1, "presence": {"2": True}}),
    ]
    with caplog.at_level(logging.ERROR, logger="ringbarrier"):
        assert cli.process_stream(lines, controller, 0.1, logging.getLogger("ringbarrier")) == 0
    rows = [json.loads(x) for x in capsys.readouterr().out.splitlines()]
    assert {"phase": 1, "to": "minimum_green"}.items() <= rows[1].items()
    assert rows[0]["to"] == "calls_present"
    assert "invalid event" in caplog.text


def test_apply_event_sets_faults_and_mode() -> None:
    controller = standard_dual_ring().build()
    event = cli.parse_event('{"t": 0, "dt": 0, "faults": {"1": true}, "presence": {"1": true}, "mode": "flash"}')
    assert cli.apply_event(controller, event) == []
    assert controller.detectors[0].is_faulted
    assert controller.mode == ControllerMode.FLASH


def _main(monkeypatch: pytest.MonkeyPatch, *args: str) -> int:
    monkeypatch.setattr(sys, "argv", ["ringbarrier", *args])
    return cli.main()


def test_version(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    assert _main(monkeypatch, "--version") == 0
    assert capsys.readouterr().out.strip() == "ringbarrier 0.1.0"


def test_validate_and_dump_config(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    assert _main(monkeypatch, "--validate-config") == 0
    assert json.loads(capsys.readouterr().out)["valid"] is True

    bad = tmp_path / "bad.json"
    bad.write_text(
        json.dumps({"phases": [{"number": 1, "conflicts": [2]}, {"number": 2}]}), encoding="utf-8"
    )
    assert _main(monkeypatch, "--config", str(bad), "--validate-config") == 1
    assert json.loads(capsys.readouterr().out)["valid"] is False

    assert _main(monkeypatch, "--dump-config") == 0
    dumped = json.loads(capsys.readouterr().out)
    assert len(dumped["phases"]) == 8
    assert dumped["barrier_groups"] == [[1, 2, 5, 6], [3, 4, 7, 8]]


def test_missing_input_is_an_error(monkeypatch: pytest.MonkeyPatch) -> None:
    assert _main(monkeypatch) == 2


def test_input_file_run_saves_and_resumes_snapshot(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    events = tmp_path / "ticks.jsonl"
    events.write_text(
        "\n".join(json.dumps({"t": t, "dt": 0.0 if t == 0 else 0.1, "presence": {"1": t < 5}}) for t in range(50)),
        encoding="utf-8",
    )
    db_path = tmp_path / "ctl.db"
    assert _main(monkeypatch, "--input", str(events), "--db", str(db_path), "--intersection-id", "x1") == 0
    stored = load_snapshot(connect(str(db_path)), "x1")
    assert stored is not None
    assert stored["controller"]["now"] == 49

    more = tmp_path / "more.jsonl"
    more.write_text(json.dumps({"t": 50, "dt": 0.1}), encoding="utf-8")
    assert _main(monkeypatch, "--input", str(more), "--db", str(db_path), "--intersection-id", "x1", "--resume") == 0
    assert load_snapshot(connect(str(db_path)), "x1")["controller"]["now"] == 50


def test_demo_mode_runs(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    assert _main(monkeypatch, "--demo-mode", "--ticks", "400") == 0
    rows = [json.loads(x) for x in capsys.readouterr().out.splitlines()]
    assert any(r["to"] == "minimum_green" for r in rows)


def test_prune_requires_db(monkeypatch: pytest.MonkeyPatch) -> None:
    assert _main(monkeypatch, "--prune-snapshots") == 2


def test_non_object_presence_is_rejected_without_stopping_stream(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(ValueError):
        cli.parse_event('{"t": 1, "presence": [1, 2]}')
    with pytest.raises(ValueError):
        cli.parse_event('{"t": 1, "faults": "all"}')
    controller = standard_dual_ring().build()
    lines = [
        json.dumps({"t": 0, "dt": 0.0, "presence": [True]}),
        json.dumps({"t": 1, "calls": [{"phase": 1}]}),
    ]
    assert cli.process_stream(lines, controller, 0.1, logging.getLogger("ringbarrier")) == 0
    rows = [json.loads(x) for x in capsys.readouterr().out.splitlines()]
    assert rows[-1]["to"] == "minimum_green"
    assert controller.now == 1

#!/usr/bin/env python3
"""
Ring & barrier controller runner
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import APP_NAME, SEMVER
from .config import ControllerConfig, config_to_dict, load_configuration, standard_dual_ring, validate_configuration
from .core.calls import CallType
from .core.controller import Controller, ControllerMode, PhaseTransition
from .serialization import dump_snapshot, load_snapshot
from .storage.db import DB, connect, retention_cleanup
from .storage.db import load_snapshot as db_load_snapshot
from .storage.db import save_snapshot as db_save_snapshot


@dataclass(frozen=True)
class CallRequest:
    phase: int
    type: CallType


@dataclass(frozen=True)
class TickEvent:
    time: int
    delta_seconds: float
    presence: dict[int, bool] = field(default_factory=dict)
    faults: dict[int, bool] = field(default_factory=dict)
    calls: tuple[CallRequest, ...] = ()
    clear_calls: tuple[CallRequest, ...] = ()
    mode: Optional[ControllerMode] = None


def _parse_requests(raw: object) -> tuple[CallRequest, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(
        CallRequest(int(x["phase"]), CallType(str(x.get("type", CallType.VEHICULAR.value))))
        for x in raw
    )


def _parse_flags(raw: object, name: str) -> dict[int, bool]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"{name} must be an object of detector id to bool")
    return {int(k): bool(v) for k, v in raw.items()}


def parse_event(raw: str, default_step: float = 0.1) -> TickEvent:
    obj = json.loads(raw)
    if not isinstance(obj, dict):
        raise ValueError("event must be a JSON object")
    mode = obj.get("mode")
    return TickEvent(
        time=int(obj["t"]),
        delta_seconds=float(obj.get("dt", default_step)),
        presence=_parse_flags(obj.get("presence"), "presence"),
        faults=_parse_flags(obj.get("faults"), "faults"),
        calls=_parse_requests(obj.get("calls")),
        clear_calls=_parse_requests(obj.get("clear_calls")),
        mode=ControllerMode(str(mode)) if mode else None,
    )


def apply_event(controller: Controller, event: TickEvent) -> list[PhaseTransition]:
    if event.mode is not None:
        controller.set_mode(event.mode, event.time)
    for det in controller.detectors:
        if det.detector_id in event.faults:
            det.set_fault(event.faults[det.detector_id])
    for req in event.clear_calls:
        controller.clear_phase_calls(req.phase, req.type, event.time)
    for req in event.calls:
        controller.place_call(req.phase, req.type, event.time)
    return controller.tick(event.time, event.delta_seconds, event.presence)


def transition_payload(t: PhaseTransition, controller: Controller) -> dict[str, object]:
    return {
        "t": t.time,
        "phase": t.phase,
        "from": t.from_state.value,
        "to": t.to_state.value,
        "timer": t.timer,
        "active_phases": controller.active_phases,
        "controller_state": controller.state.value,
    }


def iter_lines(path: Path) -> Iterator[str]:
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            row = line.strip()
            if row:
                yield row


def process_stream(
    lines: Iterable[str], controller: Controller, step: float, logger: logging.Logger
) -> int:
    processed = 0
    for line in lines:
        try:
            event = parse_event(line, step)
        except (json.JSONDecodeError, KeyError, ValueError) as exc:
            logger.error("invalid event: %s", exc)
            continue
        for t in apply_event(controller, event):
            print(json.dumps(transition_payload(t, controller), ensure_ascii=False))
        processed += 1
    logger.info("processed %d ticks, final status %s", processed, controller.status())
    return 0


def demo_events(ticks: int, step: float) -> Iterator[str]:
    """Deterministic traffic on the standard plan: through and turn arrivals,
    a pedestrian push, and an emergency run on phase 3."""
    for i in range(ticks):
        t = int(round(i * step * 10))
        presence = {
            1: i % 240 < 15,
            2: i % 600 in range(300, 310),
            3: i % 300 in range(120, 140),
            4: i % 900 in range(450, 455),
        }
        event: dict[str, object] = {"t": t, "dt": step if i else 0.0, "presence": presence}
        if i == 500:
            event["calls"] = [{"phase": 6, "type": CallType.PEDESTRIAN.value}]
        if i == 1500:
            event["calls"] = [{"phase": 3, "type": CallType.EMERGENCY.value}]
        if i == 1800:
            event["clear_calls"] = [{"phase": 3, "type": CallType.EMERGENCY.value}]
        yield json.dumps(event)


def configure_logger(debug: bool, log_file: Path | None) -> logging.Logger:
    logger = logging.getLogger(APP_NAME)
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    stream_h = logging.StreamHandler(sys.stderr)
    stream_h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(stream_h)
    if log_file:
        file_h = logging.FileHandler(log_file, encoding="utf-8")
        file_h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        logger.addHandler(file_h)
    return logger


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description=f"Ring & barrier signal controller v{SEMVER}")
    p.add_argument("--version", action="store_true")
    p.add_argument("--config", type=Path, help="JSON controller plan (default: standard dual ring)")
    p.add_argument("--validate-config", action="store_true")
    p.add_argument("--dump-config", action="store_true")
    p.add_argument("--input", type=Path, help="JSONL tick events")
    p.add_argument("--demo-mode", action="store_true")
    p.add_argument("--ticks", type=int, default=3000)
    p.add_argument("--step", type=float, default=0.1, help="seconds per tick")
    p.add_argument("--db", type=Path)
    p.add_argument("--intersection-id", default="default")
    p.add_argument("--resume", action="store_true", help="restore the stored snapshot first")
    p.add_argument("--prune-snapshots", action="store_true")
    p.add_argument("--retention-days", type=int, default=30)
    p.add_argument("--debug", action="store_true")
    p.add_argument("--log-file", type=Path)
    return p


def _build_controller(
    cfg: ControllerConfig, db: DB | None, args: argparse.Namespace, logger: logging.Logger
) -> Controller:
    if args.resume and db is not None:
        stored = db_load_snapshot(db, args.intersection_id)
        if stored is not None:
            logger.info("resuming intersection %s from snapshot", args.intersection_id)
            return load_snapshot(stored, logger)
        logger.warning("no snapshot for %s, starting fresh", args.intersection_id)
    return cfg.build(logger)


def main() -> int:
    args = build_parser().parse_args()
    logger = configure_logger(args.debug, args.log_file)

    if args.version:
        print(f"{APP_NAME} {SEMVER}")
        return 0

    try:
        cfg = load_configuration(args.config) if args.config else standard_dual_ring()
    except (OSError, ValueError) as exc:
        logger.error("cannot load configuration: %s", exc)
        return 2

    problems = validate_configuration(cfg)
    if args.validate_config:
        print(json.dumps({"valid": not problems, "problems": problems}, ensure_ascii=False, indent=2))
        return 0 if not problems else 1
    if problems:
        for problem in problems:
            logger.error("configuration: %s", problem)
        return 1
    if args.dump_config:
        print(json.dumps(config_to_dict(cfg), ensure_ascii=False, indent=2))
        return 0

    db = connect(str(args.db)) if args.db else None
    if args.prune_snapshots:
        if db is None:
            print("Error: --prune-snapshots requires --db.", file=sys.stderr)
            return 2
        print(json.dumps({"removed": retention_cleanup(db, args.retention_days)}))
        return 0

    try:
        controller = _build_controller(cfg, db, args, logger)
    except ValueError as exc:
        logger.error("cannot restore snapshot: %s", exc)
        return 2

    if args.demo_mode:
        lines: Iterable[str] = demo_events(args.ticks, args.step)
    elif args.input is not None:
        lines = iter_lines(args.input)
    else:
        print("Error: --input is required unless --demo-mode is used.", file=sys.stderr)
        return 2

    rc = process_stream(lines, controller, args.step, logger)
    if db is not None:
        db_save_snapshot(db, args.intersection_id, dump_snapshot(controller))
        logger.info("snapshot saved for %s", args.intersection_id)
    return rc


if __name__ == "__main__":
    raise SystemExit(main())

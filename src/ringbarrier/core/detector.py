"""
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DetectorType(str, Enum):
    PRESENCE = "presence"
    PULSE = "pulse"
    SPEED = "speed"
    QUEUE = "queue"


class DetectorState(str, Enum):
    CLEAR = "clear"
    OCCUPIED = "occupied"
    RECENTLY_CLEAR = "recently_clear"
    FAULT = "fault"


@dataclass
class Detector:
    """Lane detection zone feeding calls and extensions to one phase.

    Presence is supplied by the host; the detector only keeps the small state
    machine that turns that boolean into call and extension decisions.
    """

    detector_id: int
    assigned_phase: int
    type: DetectorType = DetectorType.PRESENCE
    state: DetectorState = DetectorState.CLEAR
    position: float = 0.9
    length: float = 0.1
    sensitivity: float = 0.8
    extension_time: int = 30
    max_extension: int = 50
    occupancy_time: int = 0
    call_placed_time: int = 0
    can_place_calls: bool = True
    provides_extension: bool = True
    enabled: bool = True
    vehicle_count: int = 0
    average_speed: int = 500

    def update_state(self, vehicle_present: bool, now: int) -> None:
        if self.state == DetectorState.FAULT:
            return
        if vehicle_present:
            if self.state in (DetectorState.CLEAR, DetectorState.RECENTLY_CLEAR):
                self.state = DetectorState.OCCUPIED
                self.occupancy_time = 0
                self.vehicle_count += 1
            elif self.state == DetectorState.OCCUPIED:
                self.occupancy_time += 1
        elif self.state == DetectorState.OCCUPIED:
            if self.type == DetectorType.PULSE:
                self.state = DetectorState.RECENTLY_CLEAR
            else:
                self.state = DetectorState.CLEAR
            self.occupancy_time = 0
        elif self.state == DetectorState.RECENTLY_CLEAR:
            self.state = DetectorState.CLEAR

    def set_fault(self, faulted: bool) -> None:
        if faulted:
            self.state = DetectorState.FAULT
            self.occupancy_time = 0
        elif self.state == DetectorState.FAULT:
            self.state = DetectorState.CLEAR

    @property
    def is_faulted(self) -> bool:
        return self.state == DetectorState.FAULT

    def should_place_call(self) -> bool:
        if not (self.enabled and self.can_place_calls):
            return False
        if self.state == DetectorState.OCCUPIED:
            return True
        return self.type == DetectorType.PULSE and self.state == DetectorState.RECENTLY_CLEAR

    def should_provide_extension(self) -> bool:
        return (
            self.enabled
            and self.provides_extension
            and self.state == DetectorState.OCCUPIED
            and self.occupancy_time <= self.max_extension
        )

    def detection_zone(self) -> tuple[float, float]:
        start = max(0.0, self.position - self.length * 0.5)
        end = min(1.0, self.position + self.length * 0.5)
        return start, end

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
from typing import Optional


class PhaseState(str, Enum):
    REST = "rest"
    CALLS_PRESENT = "calls_present"
    MINIMUM_GREEN = "minimum_green"
    PASSAGE_TIME = "passage_time"
    MAXIMUM_GREEN = "maximum_green"
    YELLOW = "yellow"
    ALL_RED = "all_red"


class PhaseType(str, Enum):
    VEHICULAR = "vehicular"
    PEDESTRIAN = "pedestrian"
    OVERLAP = "overlap"
    PROTECTED_TURN = "protected_turn"


class Termination(str, Enum):
    GAP_OUT = "gap_out"
    MAX_OUT = "max_out"
    FORCE_OFF = "force_off"
    YIELD = "yield"
    PREEMPTED = "preempted"
    FLASH = "flash"


GREEN_STATES = frozenset(
    {PhaseState.MINIMUM_GREEN, PhaseState.PASSAGE_TIME, PhaseState.MAXIMUM_GREEN}
)
CLEARING_STATES = frozenset({PhaseState.YELLOW, PhaseState.ALL_RED})
ACTIVE_STATES = GREEN_STATES | CLEARING_STATES


@dataclass(frozen=True)
class PhaseTiming:
    minimum_green: int
    passage_time: int
    maximum_green: int
    yellow_time: int
    all_red_time: int


PHASE_TIMING_DEFAULTS: dict[PhaseType, PhaseTiming] = {
    PhaseType.VEHICULAR: PhaseTiming(100, 30, 600, 40, 20),
    PhaseType.PROTECTED_TURN: PhaseTiming(70, 25, 300, 35, 15),
    PhaseType.PEDESTRIAN: PhaseTiming(150, 0, 300, 40, 20),
    PhaseType.OVERLAP: PhaseTiming(70, 30, 600, 40, 20),
}


@dataclass
class Phase:
    """One movement's definition plus its live green/clearance timing.

    All durations are integer deciseconds. ``timer`` restarts at every state
    change; ``green_elapsed`` runs from the start of MinimumGreen and is what
    the maximum-green ceiling and coordination force-offs measure.
    """

    number: int
    ring: int = 0
    type: PhaseType = PhaseType.VEHICULAR
    state: PhaseState = PhaseState.REST
    minimum_green: int = 70
    passage_time: int = 30
    maximum_green: int = 600
    yellow_time: int = 40
    all_red_time: int = 20
    timer: int = 0
    conflicting_phases: int = 0
    compatible_overlaps: int = 0
    lane_assignments: tuple[int, int] = (-1, -1)
    detector_mask: int = 0
    has_calls: bool = False
    enabled: bool = True
    omittable: bool = True
    has_pedestrian: bool = False
    green_elapsed: int = 0
    extension_mark: int = 0
    termination: Optional[Termination] = None

    @classmethod
    def from_type(cls, number: int, ring: int, phase_type: PhaseType) -> Phase:
        timing = PHASE_TIMING_DEFAULTS[phase_type]
        return cls(
            number=number,
            ring=ring,
            type=phase_type,
            minimum_green=timing.minimum_green,
            passage_time=timing.passage_time,
            maximum_green=timing.maximum_green,
            yellow_time=timing.yellow_time,
            all_red_time=timing.all_red_time,
            has_pedestrian=phase_type == PhaseType.PEDESTRIAN,
        )

    @property
    def bit(self) -> int:
        return 1 << self.number

    def conflicts_with(self, phase_number: int) -> bool:
        return (self.conflicting_phases & (1 << phase_number)) != 0

    def set_conflict(self, phase_number: int, conflicts: bool) -> None:
        if conflicts:
            self.conflicting_phases |= 1 << phase_number
        else:
            self.conflicting_phases &= ~(1 << phase_number)

    def clearance_time(self) -> int:
        return self.yellow_time + self.all_red_time

    def is_green(self) -> bool:
        return self.state in GREEN_STATES

    def is_clearing(self) -> bool:
        return self.state in CLEARING_STATES

    def is_active_state(self) -> bool:
        return self.state in ACTIVE_STATES

    def minimum_green_served(self) -> bool:
        return self.green_elapsed >= self.minimum_green

    def refresh_demand(self) -> list[tuple[PhaseState, PhaseState, int]]:
        """Rest/CallsPresent bookkeeping for a phase that is not running."""
        if self.state == PhaseState.REST and self.has_calls:
            return [self._move(PhaseState.CALLS_PRESENT)]
        if self.state == PhaseState.CALLS_PRESENT and not self.has_calls:
            return [self._move(PhaseState.REST)]
        return []

    def start(self, now: int) -> list[tuple[PhaseState, PhaseState, int]]:
        moved = self._move(PhaseState.MINIMUM_GREEN)
        self.green_elapsed = 0
        self.extension_mark = now
        self.termination = None
        return [moved]

    def terminate(self, reason: Termination) -> list[tuple[PhaseState, PhaseState, int]]:
        if not self.is_green():
            return []
        self.termination = reason
        return [self._move(PhaseState.YELLOW)]

    def advance(
        self, steps: int, extension: bool, now: int, force: Optional[Termination] = None
    ) -> list[tuple[PhaseState, PhaseState, int]]:
        """Runs one tick of the green/clearance timers.

        ``extension`` reports whether a fresh actuation arrived this tick;
        ``force`` asks the phase to end green once minimum green is served.
        Each returned tuple is ``(from_state, to_state, timer_at_exit)``.
        """
        self.timer += steps
        if self.is_green():
            self.green_elapsed += steps

        if self.state == PhaseState.MAXIMUM_GREEN:
            self.termination = Termination.MAX_OUT
            return [self._move(PhaseState.YELLOW)]

        if self.is_green():
            floor_met = self.state != PhaseState.MINIMUM_GREEN or self.timer >= self.minimum_green
            if force is not None and floor_met:
                return self.terminate(force)
            if self.green_elapsed >= self.maximum_green and floor_met:
                moves = [self._move(PhaseState.MAXIMUM_GREEN)]
                self.termination = Termination.MAX_OUT
                moves.append(self._move(PhaseState.YELLOW))
                return moves

        if self.state == PhaseState.MINIMUM_GREEN:
            if self.timer >= self.minimum_green:
                if extension:
                    self.extension_mark = now
                    return [self._move(PhaseState.PASSAGE_TIME)]
                self.termination = Termination.GAP_OUT
                return [self._move(PhaseState.YELLOW)]
        elif self.state == PhaseState.PASSAGE_TIME:
            if extension:
                # gap reset
                self.timer = 0
                self.extension_mark = now
            elif self.timer >= self.passage_time:
                self.termination = Termination.GAP_OUT
                return [self._move(PhaseState.YELLOW)]
        elif self.state == PhaseState.YELLOW:
            if self.timer >= self.yellow_time:
                return [self._move(PhaseState.ALL_RED)]
        elif self.state == PhaseState.ALL_RED:
            if self.timer >= self.all_red_time:
                return [self._move(PhaseState.REST)]
        return []

    def reset(self) -> None:
        self.state = PhaseState.REST
        self.timer = 0
        self.has_calls = False
        self.green_elapsed = 0
        self.extension_mark = 0
        self.termination = None

    def _move(self, target: PhaseState) -> tuple[PhaseState, PhaseState, int]:
        moved = (self.state, target, self.timer)
        self.state = target
        self.timer = 0
        return moved

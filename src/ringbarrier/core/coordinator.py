"""
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from .phase import Phase

TABLE_PHASES = 8
YIELD_WINDOWS = 16


class CoordinationMode(str, Enum):
    FREE = "free"
    COORDINATED = "coordinated"
    MANUAL = "manual"


def _empty_table() -> list[int]:
    return [0] * TABLE_PHASES


def pack_table(table: Iterable[int]) -> int:
    """Packs eight percent-of-cycle bytes, phase 1 in the lowest byte."""
    packed = 0
    for index, value in enumerate(table):
        packed |= (int(value) & 0xFF) << (index * 8)
    return packed


def unpack_table(packed: int) -> list[int]:
    return [(packed >> (index * 8)) & 0xFF for index in range(TABLE_PHASES)]


@dataclass
class TimingParameters:
    """Coordinated-cycle overlay.

    Splits and force-offs are stored as whole percent of ``cycle_length`` per
    phase. Absolute times are derived on every read, so changing the cycle
    length rescales them without touching the stored table.
    """

    mode: CoordinationMode = CoordinationMode.FREE
    cycle_length: int = 1200
    natural_cycle: int = 1000
    offset: int = 0
    split_table: list[int] = field(default_factory=_empty_table)
    force_off_table: list[int] = field(default_factory=_empty_table)
    yield_points: int = 0
    permissive_periods: int = 0
    coordination_priority: int = 128
    max_hold_time: int = 100
    min_extend_time: int = 50
    coordination_enabled: bool = False
    use_force_off: bool = False
    allow_early_return: bool = True

    def phase_split(self, phase: int) -> int:
        if not 1 <= phase <= TABLE_PHASES:
            return 0
        return self.cycle_length * self.split_table[phase - 1] // 100

    def set_phase_split(self, phase: int, split_time: int) -> None:
        if not 1 <= phase <= TABLE_PHASES or self.cycle_length <= 0:
            return
        self.split_table[phase - 1] = min(100, split_time * 100 // self.cycle_length)

    def phase_force_off(self, phase: int) -> int:
        if not 1 <= phase <= TABLE_PHASES:
            return 0
        return self.cycle_length * self.force_off_table[phase - 1] // 100

    def set_phase_force_off(self, phase: int, force_off_time: int) -> None:
        if not 1 <= phase <= TABLE_PHASES or self.cycle_length <= 0:
            return
        self.force_off_table[phase - 1] = min(100, force_off_time * 100 // self.cycle_length)

    def has_force_off(self, phase: int) -> bool:
        return 1 <= phase <= TABLE_PHASES and self.force_off_table[phase - 1] > 0

    def cycle_position(self, cycle_timer: int) -> float:
        if self.cycle_length <= 0:
            return 0.0
        return cycle_timer / self.cycle_length

    def is_in_yield_point(self, cycle_timer: int) -> bool:
        if self.cycle_length <= 0:
            return False
        window = (cycle_timer % self.cycle_length) * YIELD_WINDOWS // self.cycle_length
        return (self.yield_points & (1 << window)) != 0

    def calculate_auto_splits(self, phases: Iterable[Phase]) -> None:
        enabled = [p for p in phases if p.enabled and 1 <= p.number <= TABLE_PHASES]
        if not enabled:
            return
        minimums = {p.number: p.minimum_green + p.clearance_time() for p in enabled}
        remaining = max(0, self.cycle_length - sum(minimums.values()))
        share = remaining // len(enabled)
        for number, minimum in minimums.items():
            self.set_phase_split(number, minimum + share)

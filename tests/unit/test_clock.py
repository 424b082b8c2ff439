"""
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

from ringbarrier.core.clock import DecisecondClock


def test_whole_tenths_map_to_single_steps() -> None:
    clock = DecisecondClock()
    assert [clock.advance(0.1) for _ in range(5)] == [1, 1, 1, 1, 1]


def test_fractional_remainder_is_carried() -> None:
    clock = DecisecondClock()
    steps = sum(clock.advance(1 / 60) for _ in range(60))
    assert steps == 10


def test_zero_and_negative_deltas_do_not_advance() -> None:
    clock = DecisecondClock()
    assert clock.advance(0.0) == 0
    assert clock.advance(-1.0) == 0
    assert clock.remainder == 0.0


def test_reset_drops_remainder() -> None:
    clock = DecisecondClock()
    clock.advance(0.05)
    assert clock.remainder > 0
    clock.reset()
    assert clock.remainder == 0.0

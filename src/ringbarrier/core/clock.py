"""
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

DECISECONDS_PER_SECOND = 10


class DecisecondClock:
    """Turns host tick lengths (seconds) into whole decisecond steps.

    The fractional part of every tick is carried into the next one, so a host
    running at 60 Hz still yields exactly 10 steps per simulated second.
    """

    def __init__(self, remainder: float = 0.0) -> None:
        self.remainder = remainder

    def advance(self, delta_seconds: float) -> int:
        total = max(0.0, delta_seconds) * DECISECONDS_PER_SECOND + self.remainder
        steps = int(total + 1e-9)
        self.remainder = max(0.0, total - steps)
        return steps

    def reset(self) -> None:
        self.remainder = 0.0

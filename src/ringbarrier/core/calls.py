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


class CallType(str, Enum):
    VEHICULAR = "vehicular"
    PEDESTRIAN = "pedestrian"
    EMERGENCY = "emergency"
    RAILROAD = "railroad"
    TRANSIT = "transit"
    COORDINATION = "coordination"


class CallPriority(int, Enum):
    NORMAL = 0
    HIGH = 1
    MAXIMUM = 2


class CallStatus(str, Enum):
    ACTIVE = "active"
    SERVED = "served"
    CLEARED = "cleared"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class CallProfile:
    priority: CallPriority
    timeout_duration: int
    persistent: bool


CALL_PROFILES: dict[CallType, CallProfile] = {
    CallType.VEHICULAR: CallProfile(CallPriority.NORMAL, 0, False),
    CallType.PEDESTRIAN: CallProfile(CallPriority.NORMAL, 1800, True),
    CallType.EMERGENCY: CallProfile(CallPriority.MAXIMUM, 0, True),
    CallType.RAILROAD: CallProfile(CallPriority.MAXIMUM, 0, True),
    CallType.TRANSIT: CallProfile(CallPriority.HIGH, 600, False),
    CallType.COORDINATION: CallProfile(CallPriority.NORMAL, 0, False),
}

PREEMPTION_TYPES = frozenset({CallType.EMERGENCY, CallType.RAILROAD})


@dataclass
class Call:
    call_id: int
    phase: int
    type: CallType = CallType.VEHICULAR
    priority: CallPriority = CallPriority.NORMAL
    status: CallStatus = CallStatus.ACTIVE
    detector_id: int = 0
    placed_time: int = 0
    served_time: int = 0
    cleared_time: int = 0
    timeout_duration: int = 0
    extendable: bool = True
    persistent: bool = False
    requires_min_green: bool = True

    @classmethod
    def create(
        cls, call_id: int, phase: int, call_type: CallType, detector_id: int, now: int
    ) -> Call:
        profile = CALL_PROFILES[call_type]
        return cls(
            call_id=call_id,
            phase=phase,
            type=call_type,
            priority=profile.priority,
            detector_id=detector_id,
            placed_time=now,
            timeout_duration=profile.timeout_duration,
            persistent=profile.persistent,
        )

    def serve(self, now: int) -> None:
        if self.status == CallStatus.ACTIVE:
            self.status = CallStatus.SERVED
            self.served_time = now

    def clear(self, now: int) -> None:
        self.status = CallStatus.CLEARED
        self.cleared_time = now

    def check_timeout(self, now: int) -> bool:
        """Marks the call timed out once it has waited ``timeout_duration``.

        Only unserved calls time out; a call being served is owned by its phase.
        """
        if self.timeout_duration > 0 and self.status == CallStatus.ACTIVE:
            if now - self.placed_time >= self.timeout_duration:
                self.status = CallStatus.TIMED_OUT
                return True
        return False

    def age(self, now: int) -> int:
        return now - self.placed_time

    def is_active(self) -> bool:
        return self.status in (CallStatus.ACTIVE, CallStatus.SERVED)

    @property
    def is_preemption(self) -> bool:
        return self.type in PREEMPTION_TYPES

    def priority_weight(self, now: int) -> float:
        return float(self.priority) + self.age(now) * 0.001

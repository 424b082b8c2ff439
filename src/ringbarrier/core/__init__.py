"""Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

from .calls import Call, CallPriority, CallStatus, CallType
from .clock import DecisecondClock
from .controller import Controller, ControllerMode, ControllerState, PhaseTransition
from .coordinator import CoordinationMode, TimingParameters
from .detector import Detector, DetectorState, DetectorType
from .phase import Phase, PhaseState, PhaseType

__all__ = [
    "Call",
    "CallPriority",
    "CallStatus",
    "CallType",
    "Controller",
    "ControllerMode",
    "ControllerState",
    "CoordinationMode",
    "DecisecondClock",
    "Detector",
    "DetectorState",
    "DetectorType",
    "Phase",
    "PhaseState",
    "PhaseTransition",
    "PhaseType",
    "TimingParameters",
]

"""
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional

from .. import APP_NAME
from .calls import Call, CallStatus, CallType
from .clock import DecisecondClock
from .coordinator import CoordinationMode, TimingParameters, pack_table
from .detector import Detector
from .phase import Phase, PhaseState, Termination

PREEMPT_CLEARANCE_RATE = 2


class ControllerMode(str, Enum):
    ACTUATED = "actuated"
    COORDINATED = "coordinated"
    MANUAL = "manual"
    FLASH = "flash"


class ControllerState(str, Enum):
    NORMAL = "normal"
    EMERGENCY_PREEMPTION = "emergency_preemption"
    RAILROAD_PREEMPTION = "railroad_preemption"
    MAINTENANCE = "maintenance"


PREEMPTION_STATES = frozenset(
    {ControllerState.EMERGENCY_PREEMPTION, ControllerState.RAILROAD_PREEMPTION}
)

_COORDINATION_MODES = {
    ControllerMode.COORDINATED: CoordinationMode.COORDINATED,
    ControllerMode.MANUAL: CoordinationMode.MANUAL,
}


@dataclass(frozen=True)
class PhaseTransition:
    time: int
    phase: int
    from_state: PhaseState
    to_state: PhaseState
    timer: int


class Controller:
    """Ring and barrier arbitration for one intersection.

    ``tick`` is the only entry point that moves time. It senses detectors and
    then runs four passes in a fixed order: demand recompute, phase timers,
    ring/barrier arbitration, call expiry. Later passes read what earlier
    passes wrote in the same tick, so the order is part of the contract.

    The configuration (phase timings, a symmetric conflict matrix, disjoint
    barrier groups) is trusted as given; see ``ringbarrier.config`` for the
    validator that should run before a plan reaches the controller.
    """

    def __init__(
        self,
        phases: Iterable[Phase],
        barrier_groups: Iterable[int] = (),
        ring_count: int = 2,
        detectors: Iterable[Detector] = (),
        timing: Optional[TimingParameters] = None,
        mode: ControllerMode = ControllerMode.ACTUATED,
        cycle_length: int = 1200,
        offset: int = 0,
        pedestrian_clearance: int = 70,
        all_red_clearance: int = 30,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.phases: list[Phase] = sorted(phases, key=lambda p: p.number)
        self._by_number = {p.number: p for p in self.phases}
        self.barrier_groups: tuple[int, ...] = tuple(barrier_groups)
        self.ring_count = ring_count
        self.detectors: list[Detector] = list(detectors)
        self.calls: list[Call] = []
        self.mode = mode
        self.state = ControllerState.NORMAL
        self.timing: Optional[TimingParameters] = None
        self._cycle_length = cycle_length
        self._offset = offset
        self.cycle_timer = 0
        self.pedestrian_clearance = pedestrian_clearance
        self.all_red_clearance = all_red_clearance
        self.clock = DecisecondClock()
        self.now = 0
        self.next_call_id = 1
        self.current_barrier: Optional[int] = None
        self.served_mask = 0
        self.preempt_phase: Optional[int] = None
        self.logger = logger or logging.getLogger(APP_NAME)
        self._active_phases = 0
        self._transitions: list[PhaseTransition] = []
        if timing is not None:
            self.apply_timing(timing)

    # -- active phase bitmask ------------------------------------------------

    @property
    def active_phases(self) -> int:
        return self._active_phases

    def is_phase_active(self, phase_number: int) -> bool:
        return (self._active_phases & (1 << phase_number)) != 0

    def set_phase_active(self, phase_number: int, active: bool) -> None:
        if active:
            self._active_phases |= 1 << phase_number
        else:
            self._active_phases &= ~(1 << phase_number)

    # -- configuration -------------------------------------------------------

    @property
    def cycle_length(self) -> int:
        """Live cycle length; a timing plan, once applied, owns it."""
        return self.timing.cycle_length if self.timing is not None else self._cycle_length

    @cycle_length.setter
    def cycle_length(self, value: int) -> None:
        self._cycle_length = value
        if self.timing is not None:
            self.timing.cycle_length = value

    @property
    def offset(self) -> int:
        return self.timing.offset if self.timing is not None else self._offset

    @offset.setter
    def offset(self, value: int) -> None:
        self._offset = value
        if self.timing is not None:
            self.timing.offset = value

    def phase(self, phase_number: int) -> Optional[Phase]:
        return self._by_number.get(phase_number)

    def barrier_group_of(self, phase_number: int) -> Optional[int]:
        for index, mask in enumerate(self.barrier_groups):
            if mask & (1 << phase_number):
                return index
        return None

    @property
    def force_off_table(self) -> int:
        if self.timing is None:
            return 0
        return pack_table(self.timing.force_off_table)

    def apply_timing(self, timing: TimingParameters) -> None:
        self.timing = timing
        if self.cycle_length > 0:
            self.cycle_timer %= self.cycle_length

    def configure_detectors(self, detectors: Iterable[Detector]) -> None:
        self.detectors = list(detectors)
        self.logger.info("detector set configured: %d detectors", len(self.detectors))

    def teardown(self) -> None:
        """Drops all live state, as when the ring-barrier pattern is deselected."""
        self.calls.clear()
        self.detectors.clear()
        for p in self.phases:
            p.reset()
        self._active_phases = 0
        self.state = ControllerState.NORMAL
        self.current_barrier = None
        self.served_mask = 0
        self.preempt_phase = None
        self.cycle_timer = 0
        self.clock.reset()
        self.logger.info("controller torn down")

    def set_mode(self, mode: ControllerMode, now: Optional[int] = None) -> None:
        now = self.now if now is None else now
        if mode == self.mode:
            return
        self.logger.info("mode %s -> %s at %d", self.mode.value, mode.value, now)
        self.mode = mode
        if self.timing is not None:
            self.timing.mode = _COORDINATION_MODES.get(mode, CoordinationMode.FREE)
        if mode == ControllerMode.COORDINATED and self.cycle_length > 0:
            self.cycle_timer = (now - self.offset) % self.cycle_length

    def set_maintenance(self, enabled: bool) -> None:
        if enabled:
            self.state = ControllerState.MAINTENANCE
        elif self.state == ControllerState.MAINTENANCE:
            self.state = ControllerState.NORMAL
        self.logger.info("maintenance %s", "on" if enabled else "off")

    # -- calls ---------------------------------------------------------------

    def place_call(
        self,
        phase_number: int,
        call_type: CallType = CallType.VEHICULAR,
        now: Optional[int] = None,
        detector_id: int = 0,
    ) -> Optional[Call]:
        """Places demand for a phase.

        A second call for the same detector, phase and type while the first
        is still active or served returns the existing call.
        """
        now = self.now if now is None else now
        if phase_number not in self._by_number:
            self.logger.warning("call for unknown phase %d ignored", phase_number)
            return None
        for call in self.calls:
            if (
                call.detector_id == detector_id
                and call.phase == phase_number
                and call.type == call_type
                and call.is_active()
            ):
                return call
        call = Call.create(self.next_call_id, phase_number, call_type, detector_id, now)
        self.next_call_id += 1
        self.calls.append(call)
        self.logger.debug(
            "call %d placed: phase=%d type=%s detector=%d at %d",
            call.call_id,
            phase_number,
            call_type.value,
            detector_id,
            now,
        )
        return call

    def press_pedestrian_button(self, phase_number: int, now: Optional[int] = None) -> Optional[Call]:
        return self.place_call(phase_number, CallType.PEDESTRIAN, now)

    def place_preemption_call(
        self, phase_number: int, railroad: bool = False, now: Optional[int] = None
    ) -> Optional[Call]:
        call_type = CallType.RAILROAD if railroad else CallType.EMERGENCY
        return self.place_call(phase_number, call_type, now)

    def clear_call(self, call_id: int, now: Optional[int] = None) -> bool:
        now = self.now if now is None else now
        for call in self.calls:
            if call.call_id == call_id and call.is_active():
                call.clear(now)
                return True
        return False

    def clear_phase_calls(
        self, phase_number: int, call_type: Optional[CallType] = None, now: Optional[int] = None
    ) -> int:
        now = self.now if now is None else now
        cleared = 0
        for call in self.calls:
            if call.phase != phase_number or not call.is_active():
                continue
            if call_type is not None and call.type != call_type:
                continue
            call.clear(now)
            cleared += 1
        return cleared

    def active_calls(self, phase_number: Optional[int] = None) -> list[Call]:
        return [
            c
            for c in self.calls
            if c.is_active() and (phase_number is None or c.phase == phase_number)
        ]

    def primary_call(self, phase_number: int, now: Optional[int] = None) -> Optional[Call]:
        now = self.now if now is None else now
        calls = self.active_calls(phase_number)
        if not calls:
            return None
        return max(calls, key=lambda c: (c.priority_weight(now), -c.call_id))

    # -- tick ----------------------------------------------------------------

    def tick(
        self,
        now: int,
        delta_seconds: float,
        presence: Optional[Mapping[int, bool]] = None,
    ) -> list[PhaseTransition]:
        self.now = now
        self._transitions = []
        steps = self.clock.advance(delta_seconds)
        self._sense(presence or {}, now)
        if self.mode == ControllerMode.COORDINATED and self.cycle_length > 0:
            self.cycle_timer = (self.cycle_timer + steps) % self.cycle_length
        self._update_demand(now)
        self._advance_phases(steps, now)
        self._arbitrate(now)
        self._cleanup_calls(now)
        return self._transitions

    def manual_start(self, phase_number: int, now: Optional[int] = None) -> bool:
        """Starts a phase by hand; only honoured in manual mode when safe."""
        now = self.now if now is None else now
        p = self.phase(phase_number)
        if self.mode != ControllerMode.MANUAL or p is None or not p.enabled:
            return False
        if self.is_phase_active(phase_number) or self._ring_active(p.ring):
            return False
        if not self._clear_of_conflicts(p):
            return False
        self._start(p, now)
        return True

    def status(self) -> dict[str, object]:
        return {
            "time": self.now,
            "mode": self.mode.value,
            "state": self.state.value,
            "active_phases": self._active_phases,
            "cycle_timer": self.cycle_timer,
            "phases": {str(p.number): p.state.value for p in self.phases},
            "calls": len(self.calls),
        }

    # -- detector sensing ----------------------------------------------------

    def _sense(self, presence: Mapping[int, bool], now: int) -> None:
        for det in self.detectors:
            if not det.enabled:
                continue
            if det.detector_id in presence:
                det.update_state(bool(presence[det.detector_id]), now)
            if det.should_place_call():
                before = self.next_call_id
                self.place_call(det.assigned_phase, CallType.VEHICULAR, now, det.detector_id)
                if self.next_call_id != before:
                    det.call_placed_time = now

    # -- pass 1: demand ------------------------------------------------------

    def _update_demand(self, now: int) -> None:
        for p in self.phases:
            p.has_calls = False
        for call in self.calls:
            if not call.is_active():
                continue
            p = self.phase(call.phase)
            if p is None:
                continue
            p.has_calls = True
            if p.is_green():
                call.serve(now)
        self._update_preemption(now)

    def _update_preemption(self, now: int) -> None:
        candidates = [
            c
            for c in self.calls
            if c.is_active()
            and c.is_preemption
            and self.phase(c.phase) is not None
            and self.phase(c.phase).enabled
        ]
        if self.state == ControllerState.MAINTENANCE:
            return
        if not candidates:
            if self.state in PREEMPTION_STATES:
                self.logger.info("preemption of phase %s released at %d", self.preempt_phase, now)
            self.state = ControllerState.NORMAL
            self.preempt_phase = None
            return
        # lowest phase number wins between simultaneous preemptors
        winner = min(candidates, key=lambda c: (c.phase, c.call_id))
        state = (
            ControllerState.RAILROAD_PREEMPTION
            if winner.type == CallType.RAILROAD
            else ControllerState.EMERGENCY_PREEMPTION
        )
        if state != self.state or winner.phase != self.preempt_phase:
            self.logger.info(
                "%s for phase %d (call %d) at %d", state.value, winner.phase, winner.call_id, now
            )
        self.state = state
        self.preempt_phase = winner.phase

    # -- pass 2: phase timers ------------------------------------------------

    def _advance_phases(self, steps: int, now: int) -> None:
        target = self.preempt_phase if self.mode != ControllerMode.FLASH else None
        for p in self.phases:
            if not p.enabled:
                continue
            if not self.is_phase_active(p.number):
                if p.number != target:
                    self._apply(p, p.refresh_demand(), now)
                continue
            forced = target is not None and p.number != target and self._yields_to(p, target)
            if self.mode == ControllerMode.FLASH and p.is_green():
                self._apply(p, p.terminate(Termination.FLASH), now)
                continue
            if forced and p.is_green():
                self._apply(p, p.terminate(Termination.PREEMPTED), now)
                continue
            rate = PREEMPT_CLEARANCE_RATE if forced else 1
            if p.number == target:
                extension, force = True, None
            else:
                extension = self._has_extension(p, now)
                force = self._coordination_force(p, steps)
            self._apply(p, p.advance(steps * rate, extension, now, force), now)

    def _has_extension(self, p: Phase, now: int) -> bool:
        for det in self.detectors:
            if det.assigned_phase == p.number and det.should_provide_extension():
                return True
        return any(
            c.phase == p.number and c.is_active() and c.extendable and c.placed_time > p.extension_mark
            for c in self.calls
        )

    def _coordination_force(self, p: Phase, steps: int) -> Optional[Termination]:
        timing = self.timing
        if self.mode != ControllerMode.COORDINATED or timing is None or not p.is_green():
            return None
        if timing.use_force_off and timing.has_force_off(p.number) and self.cycle_length > 0:
            elapsed = p.green_elapsed + steps
            started_at = (self.cycle_timer - elapsed) % self.cycle_length
            until_force_off = (timing.phase_force_off(p.number) - started_at) % self.cycle_length
            if elapsed >= until_force_off:
                return Termination.FORCE_OFF
        if (
            timing.coordination_enabled
            and timing.allow_early_return
            and p.omittable
            and timing.is_in_yield_point(self.cycle_timer)
            and self._conflicting_demand(p)
        ):
            return Termination.YIELD
        return None

    def _conflicting_demand(self, p: Phase) -> bool:
        return any(
            other.enabled
            and other.has_calls
            and other.state == PhaseState.CALLS_PRESENT
            and self._conflict(other, p)
            for other in self.phases
        )

    # -- pass 3: arbitration -------------------------------------------------

    def _arbitrate(self, now: int) -> None:
        if self.mode == ControllerMode.FLASH or self.state == ControllerState.MAINTENANCE:
            return
        if self.preempt_phase is not None:
            self._start_preemption(now)
            return
        if self.mode == ControllerMode.MANUAL:
            return
        for ring in range(self.ring_count):
            if self._ring_active(ring):
                continue
            candidate = self._next_phase_for_ring(ring)
            if candidate is not None:
                self._start(candidate, now)

    def _next_phase_for_ring(self, ring: int) -> Optional[Phase]:
        waiting = self._unserved_demand_waiting()
        for p in self.phases:
            if p.ring != ring or not p.enabled or not p.has_calls:
                continue
            if p.state != PhaseState.CALLS_PRESENT:
                continue
            if self._clear_of_conflicts(p) and self._barrier_allows(p, waiting):
                return p
        return None

    def _barrier_allows(self, p: Phase, unserved_waiting: bool) -> bool:
        group = self.barrier_group_of(p.number)
        if group is None or self.current_barrier is None:
            return True
        if group != self.current_barrier:
            return not self._group_active(self.current_barrier)
        # a phase served in this barrier visit waits its turn behind fresh demand
        return not (unserved_waiting and self.served_mask & p.bit)

    def _unserved_demand_waiting(self) -> bool:
        if self.current_barrier is None:
            return False
        for p in self.phases:
            if not (p.enabled and p.has_calls and p.state == PhaseState.CALLS_PRESENT):
                continue
            group = self.barrier_group_of(p.number)
            if group is None:
                continue
            if group != self.current_barrier or not self.served_mask & p.bit:
                return True
        return False

    def _group_active(self, group: int) -> bool:
        return (self._active_phases & self.barrier_groups[group]) != 0

    def _ring_active(self, ring: int) -> bool:
        return any(p.ring == ring and self.is_phase_active(p.number) for p in self.phases)

    def _conflict(self, a: Phase, b: Phase) -> bool:
        return a.conflicts_with(b.number) or b.conflicts_with(a.number)

    def _clear_of_conflicts(self, p: Phase) -> bool:
        return not any(
            self.is_phase_active(other.number) and self._conflict(other, p)
            for other in self.phases
            if other is not p
        )

    def _yields_to(self, p: Phase, target_number: int) -> bool:
        target = self.phase(target_number)
        if target is None:
            return False
        return p.ring == target.ring or self._conflict(p, target)

    def _start_preemption(self, now: int) -> None:
        target = self.phase(self.preempt_phase) if self.preempt_phase is not None else None
        if target is None or self.is_phase_active(target.number):
            return
        for other in self.phases:
            if other is target or not self.is_phase_active(other.number):
                continue
            if self._yields_to(other, target.number):
                return
        self._start(target, now)

    def _start(self, p: Phase, now: int) -> None:
        group = self.barrier_group_of(p.number)
        if group is not None and group != self.current_barrier:
            self.current_barrier = group
            self.served_mask = 0
        self.served_mask |= p.bit
        primary = self.primary_call(p.number, now)
        self._apply(p, p.start(now), now)
        if primary is not None:
            self.logger.debug(
                "phase %d serving call %d (%s)", p.number, primary.call_id, primary.type.value
            )

    # -- pass 4: call expiry -------------------------------------------------

    def _cleanup_calls(self, now: int) -> None:
        kept: list[Call] = []
        for call in self.calls:
            if call.check_timeout(now):
                self.logger.debug("call %d for phase %d timed out at %d", call.call_id, call.phase, now)
                continue
            if call.status == CallStatus.CLEARED:
                continue
            kept.append(call)
        self.calls = kept

    # -- transition side effects ---------------------------------------------

    def _apply(self, p: Phase, moves: list[tuple[PhaseState, PhaseState, int]], now: int) -> None:
        for from_state, to_state, timer in moves:
            self._transitions.append(PhaseTransition(now, p.number, from_state, to_state, timer))
            self.logger.debug(
                "phase %d %s -> %s at %d (timer=%d)",
                p.number,
                from_state.value,
                to_state.value,
                now,
                timer,
            )
            if to_state == PhaseState.MINIMUM_GREEN:
                self.set_phase_active(p.number, True)
                for call in self.calls:
                    if call.phase == p.number:
                        call.serve(now)
            elif to_state == PhaseState.YELLOW:
                for call in self.calls:
                    if call.phase == p.number and call.status == CallStatus.SERVED and not call.persistent:
                        call.clear(now)
            elif to_state == PhaseState.REST and from_state == PhaseState.ALL_RED:
                self.set_phase_active(p.number, False)
                if p.green_elapsed >= self.pedestrian_clearance:
                    for call in self.calls:
                        if (
                            call.phase == p.number
                            and call.type == CallType.PEDESTRIAN
                            and call.status == CallStatus.SERVED
                        ):
                            call.clear(now)

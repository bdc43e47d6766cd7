"""
One-Way Staging
===============

Stage and fairing status are one-way state machines. A clock correction
that moves elapsed time backwards must never reattach a separated stage
on screen, so each session latches the furthest status reached.

All transitions are explicit; anything not reachable through the
transition table (including every regression) is rejected.
"""

from __future__ import annotations
from collections import deque
from dataclasses import replace
from enum import Enum
import logging
from typing import Deque, Dict, FrozenSet, Generic, Mapping, Optional, Tuple, TypeVar

from ..contracts.telemetry import TelemetryPoint, StageStatus, FairingStatus
from ..temporal.phases import PhaseTable, STANDARD_PHASE_TABLE
from .summary import FlightRecord, MissionSummary
from .synthesizer import TelemetrySynthesizer


logger = logging.getLogger(__name__)

S = TypeVar('S', bound=Enum)


class InvalidTransition(Exception):
    """Raised by StatusLatch.transition() for a transition outside the table."""
    pass


STAGE_TRANSITIONS: Mapping[StageStatus, FrozenSet[StageStatus]] = {
    StageStatus.ATTACHED: frozenset({StageStatus.SEPARATED}),
    StageStatus.SEPARATED: frozenset({StageStatus.LANDING}),
    StageStatus.LANDING: frozenset({StageStatus.LANDED}),
    StageStatus.LANDED: frozenset(),  # Terminal state
}

FAIRING_TRANSITIONS: Mapping[FairingStatus, FrozenSet[FairingStatus]] = {
    FairingStatus.ATTACHED: frozenset({FairingStatus.SEPARATED}),
    FairingStatus.SEPARATED: frozenset(),  # Terminal state
}


def _reachable(transitions: Mapping[S, FrozenSet[S]]) -> Dict[S, FrozenSet[S]]:
    """Transitive closure of the table; a session opened mid-flight may skip states."""
    closure: Dict[S, FrozenSet[S]] = {}
    for start in transitions:
        seen = set()
        frontier = list(transitions[start])
        while frontier:
            state = frontier.pop()
            if state in seen:
                continue
            seen.add(state)
            frontier.extend(transitions.get(state, ()))
        closure[start] = frozenset(seen)
    return closure


class StatusLatch(Generic[S]):
    """
    Finite-state machine that only moves forward along its table.

    advance() is lenient: a rejected transition is ignored and the latch
    keeps its furthest-reached state. transition() is strict and raises.
    """

    def __init__(self, initial: S, transitions: Mapping[S, FrozenSet[S]]):
        if initial not in transitions:
            raise ValueError(f"Initial state {initial} is not in the transition table")
        self._state = initial
        self._transitions = transitions
        self._reachable = _reachable(transitions)

    @property
    def state(self) -> S:
        return self._state

    def can_transition(self, to_state: S) -> bool:
        return to_state in self._reachable.get(self._state, frozenset())

    def advance(self, to_state: S) -> S:
        """Move forward if the table allows it; return the latched state."""
        if to_state != self._state and self.can_transition(to_state):
            logger.debug("Latch %s -> %s", self._state.value, to_state.value)
            self._state = to_state
        return self._state

    def transition(self, to_state: S) -> S:
        if to_state == self._state:
            return self._state
        if not self.can_transition(to_state):
            raise InvalidTransition(f"{self._state.value} -> {to_state.value} is not allowed")
        self._state = to_state
        return self._state


class TelemetrySession:
    """
    Per-event, per-session telemetry view.

    Synthesizes points, applies the one-way latches and keeps a bounded,
    time-ordered recent history plus a FlightRecord for the summary.
    """

    def __init__(
        self,
        event_id: str,
        synthesizer: Optional[TelemetrySynthesizer] = None,
        history_size: int = 120,
        session_id: Optional[str] = None,
        phases: PhaseTable = STANDARD_PHASE_TABLE
    ):
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        self.event_id = event_id
        self.session_id = session_id
        self._synthesizer = synthesizer or TelemetrySynthesizer()
        self._stage = StatusLatch(StageStatus.ATTACHED, STAGE_TRANSITIONS)
        self._fairing = StatusLatch(FairingStatus.ATTACHED, FAIRING_TRANSITIONS)
        self._history: Deque[TelemetryPoint] = deque(maxlen=history_size)
        self.flight = FlightRecord(phases)

    @property
    def stage_status(self) -> StageStatus:
        return self._stage.state

    @property
    def fairing_status(self) -> FairingStatus:
        return self._fairing.state

    @property
    def latest(self) -> Optional[TelemetryPoint]:
        return self._history[-1] if self._history else None

    @property
    def history(self) -> Tuple[TelemetryPoint, ...]:
        return tuple(self._history)

    def summary(self, elapsed_seconds: float) -> Optional[MissionSummary]:
        """Peaks over everything this session has recorded, not just history."""
        return self.flight.summary(elapsed_seconds)

    def observe(self, elapsed_seconds: float) -> TelemetryPoint:
        """Synthesize the point for elapsed_seconds and record it."""
        return self.record(self._synthesizer.point(elapsed_seconds))

    def record(self, point: TelemetryPoint) -> TelemetryPoint:
        """
        Latch statuses from point and append it to history.

        A point earlier than the newest history entry means the clock
        moved back; history after that instant is discarded so the series
        stays ordered.
        """
        stage = self._stage.advance(point.stage_status)
        fairing = self._fairing.advance(point.fairing_status)
        latched = replace(point, stage_status=stage, fairing_status=fairing)

        if self._history and latched.t_elapsed_seconds <= self._history[-1].t_elapsed_seconds:
            logger.info(
                "Telemetry clock regression for %s: %.1f -> %.1f",
                self.event_id, self._history[-1].t_elapsed_seconds, latched.t_elapsed_seconds
            )
            while self._history and self._history[-1].t_elapsed_seconds >= latched.t_elapsed_seconds:
                self._history.pop()

        self._history.append(latched)
        self.flight.observe(latched)
        return latched

"""
Temporal Layer
==============

Client-local time derivation. No I/O, no server round-trip.

INVARIANTS:
- Elapsed mission time is a pure function of (now, reference instant)
- Phase resolution is a pure function of (phase table, elapsed)
- Callers own their own timers

Modules:
- clock: injectable clock, mission clock, mission-time formatting
- phases: phase table and resolver
"""

from .clock import (
    LogicalClock, MissionClock, MissionClockReading,
    elapsed, format_mission_time,
)
from .phases import (
    Phase, PhaseTable, PhaseTableError, PhaseProgress, PhaseResolver,
    STANDARD_PHASES, STANDARD_PHASE_TABLE,
)

__all__ = [
    'LogicalClock',
    'MissionClock',
    'MissionClockReading',
    'elapsed',
    'format_mission_time',
    'Phase',
    'PhaseTable',
    'PhaseTableError',
    'PhaseProgress',
    'PhaseResolver',
    'STANDARD_PHASES',
    'STANDARD_PHASE_TABLE',
]

"""
Mission Phases
==============

Static, ordered phase table and the resolver that maps elapsed mission
time onto it.

INVARIANTS:
- The table is sorted once, at construction, never at query time
- No two phases share a nominal offset
- Resolution is "latest offset not exceeding elapsed", never proximity,
  so a brief regression of elapsed time cannot make the phase flicker
  forward and back around a boundary
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple, Union

from .clock import MissionClockReading


class PhaseTableError(ValueError):
    """Raised when a phase table violates its ordering invariants."""
    pass


@dataclass(frozen=True)
class Phase:
    """A named segment of the mission timeline."""
    id: str
    label: str
    icon: str
    nominal_offset_seconds: float
    short_description: str
    long_description: str = ""

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'label': self.label,
            'icon': self.icon,
            'nominal_offset_seconds': self.nominal_offset_seconds,
            'short_description': self.short_description,
            'long_description': self.long_description,
        }


class PhaseTable:
    """Immutable phase list, ascending by nominal offset."""

    def __init__(self, phases: Iterable[Phase]):
        ordered = sorted(phases, key=lambda p: p.nominal_offset_seconds)
        if not ordered:
            raise PhaseTableError("A phase table needs at least one phase")

        seen_ids = set()
        for previous, current in zip(ordered, ordered[1:]):
            if previous.nominal_offset_seconds == current.nominal_offset_seconds:
                raise PhaseTableError(
                    f"Phases '{previous.id}' and '{current.id}' share offset "
                    f"{current.nominal_offset_seconds}"
                )
        for phase in ordered:
            if phase.id in seen_ids:
                raise PhaseTableError(f"Duplicate phase id '{phase.id}'")
            seen_ids.add(phase.id)

        self._phases: Tuple[Phase, ...] = tuple(ordered)
        self._offsets: Tuple[float, ...] = tuple(p.nominal_offset_seconds for p in ordered)

    def __len__(self) -> int:
        return len(self._phases)

    def __iter__(self) -> Iterator[Phase]:
        return iter(self._phases)

    def __getitem__(self, index: int) -> Phase:
        return self._phases[index]

    @property
    def offsets(self) -> Tuple[float, ...]:
        return self._offsets

    def index_of(self, phase_id: str) -> int:
        for i, phase in enumerate(self._phases):
            if phase.id == phase_id:
                return i
        raise KeyError(phase_id)


@dataclass(frozen=True)
class PhaseProgress:
    """
    Resolved phase at one instant.

    index is -1 (and phase None) before the first phase.
    progress is in [0, 1]; it is 1.0 in the final phase.
    """
    index: int
    phase: Optional[Phase]
    next_phase: Optional[Phase]
    progress: float
    elapsed_seconds: float

    @property
    def is_pre_phase(self) -> bool:
        return self.phase is None

    def to_dict(self) -> dict:
        return {
            'index': self.index,
            'phase': self.phase.to_dict() if self.phase else None,
            'next_phase': self.next_phase.to_dict() if self.next_phase else None,
            'progress': self.progress,
            'elapsed_seconds': self.elapsed_seconds,
        }


class PhaseResolver:
    """
    Pure resolution of (table, elapsed) -> PhaseProgress.

    Presentational only; nothing may gate behavior on it.
    """

    def __init__(self, table: PhaseTable):
        self._table = table

    @property
    def table(self) -> PhaseTable:
        return self._table

    def resolve(self, reading: Union[MissionClockReading, float]) -> PhaseProgress:
        elapsed = reading.elapsed_seconds if isinstance(reading, MissionClockReading) else float(reading)
        index = bisect_right(self._table.offsets, elapsed) - 1

        if index < 0:
            return PhaseProgress(
                index=-1,
                phase=None,
                next_phase=self._table[0],
                progress=0.0,
                elapsed_seconds=elapsed,
            )

        phase = self._table[index]
        next_phase = self._table[index + 1] if index + 1 < len(self._table) else None

        progress = 1.0
        if next_phase is not None:
            span = next_phase.nominal_offset_seconds - phase.nominal_offset_seconds
            progress = (elapsed - phase.nominal_offset_seconds) / span
            progress = min(1.0, max(0.0, progress))

        return PhaseProgress(
            index=index,
            phase=phase,
            next_phase=next_phase,
            progress=progress,
            elapsed_seconds=elapsed,
        )


# =============================================================================
# STANDARD ORBITAL MISSION TEMPLATE
# =============================================================================

STANDARD_PHASES: Tuple[Phase, ...] = (
    Phase(
        id='pre_launch', label='Pre-Launch', icon='\U0001F527', nominal_offset_seconds=-3600,
        short_description='Vehicle on pad, systems check',
        long_description=(
            'The vehicle is vertical on the pad. Ground crews run final inspections '
            'and range safety checks and verify every telemetry link.'
        ),
    ),
    Phase(
        id='fueling', label='Fueling', icon='⛽', nominal_offset_seconds=-2400,
        short_description='Propellant loading',
        long_description=(
            'Kerosene and liquid oxygen are loaded into both stages. Oxygen topping '
            'continues until shortly before launch to replace boil-off.'
        ),
    ),
    Phase(
        id='terminal_count', label='Terminal Count', icon='⏱️', nominal_offset_seconds=-600,
        short_description='Final countdown sequence',
        long_description=(
            'Flight computers take over the count. Tanks are pressurized, engines '
            'are chilled and the launch director polls every station for GO.'
        ),
    ),
    Phase(
        id='ignition', label='Ignition', icon='\U0001F525', nominal_offset_seconds=0,
        short_description='Engine ignition and liftoff',
        long_description=(
            'First-stage engines ignite, the hold-down clamps release at T-0 and '
            'the vehicle clears the tower within seconds.'
        ),
    ),
    Phase(
        id='max_q', label='Max-Q', icon='\U0001F4A8', nominal_offset_seconds=72,
        short_description='Maximum dynamic pressure',
        long_description=(
            'Peak aerodynamic stress, around 35 kPa. Engines throttle down to ~70% '
            'through the region and back up once past it.'
        ),
    ),
    Phase(
        id='meco', label='MECO', icon='✂️', nominal_offset_seconds=162,
        short_description='Main engine cutoff',
        long_description=(
            'The first stage shuts down at roughly 2.3 km/s with most of its '
            'propellant spent. A short coast precedes separation.'
        ),
    ),
    Phase(
        id='stage_sep', label='Stage Separation', icon='\U0001F517', nominal_offset_seconds=165,
        short_description='First and second stage separation',
        long_description=(
            'Pneumatic pushers part the stages; cold-gas thrusters turn the booster '
            'around for its return.'
        ),
    ),
    Phase(
        id='ses', label='SES', icon='\U0001F680', nominal_offset_seconds=170,
        short_description='Second engine start',
        long_description='The vacuum engine ignites for the burn to orbit.',
    ),
    Phase(
        id='fairing_sep', label='Fairing Sep', icon='\U0001F6E1️', nominal_offset_seconds=210,
        short_description='Payload fairing separation',
        long_description=(
            'Above the sensible atmosphere the fairing halves fall away and the '
            'payload is exposed to space.'
        ),
    ),
    Phase(
        id='seco', label='SECO', icon='⏹️', nominal_offset_seconds=510,
        short_description='Second engine cutoff',
        long_description=(
            'The second stage shuts down at orbital velocity, roughly 7.8 km/s '
            'at about 250 km.'
        ),
    ),
    Phase(
        id='booster_landing', label='Booster Landing', icon='\U0001F3AF', nominal_offset_seconds=540,
        short_description='First stage landing',
        long_description=(
            'After boostback, entry and landing burns the booster touches down on '
            'the drone ship or landing zone.'
        ),
    ),
    Phase(
        id='payload_deploy', label='Payload Deploy', icon='\U0001F6F0️', nominal_offset_seconds=960,
        short_description='Payload deployment',
        long_description=(
            'The payload separates from its adapter, deploys its arrays and begins '
            'its own mission.'
        ),
    ),
    Phase(
        id='mission_complete', label='Mission Complete', icon='✅', nominal_offset_seconds=3600,
        short_description='Mission objectives achieved',
        long_description='Payload confirmed in its target orbit; mission success declared.',
    ),
)

STANDARD_PHASE_TABLE = PhaseTable(STANDARD_PHASES)

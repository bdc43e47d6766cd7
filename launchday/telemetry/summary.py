"""
Mission Summary

Post-launch statistics: peak values seen in the telemetry and how many
phase milestones the session actually witnessed.

A milestone counts as achieved when its nominal offset has passed and at
least one observed point fell inside that phase. A session opened
mid-flight therefore never claims milestones it did not see.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional, Set

from ..contracts.telemetry import TelemetryPoint
from ..temporal.clock import format_mission_time
from ..temporal.phases import PhaseResolver, PhaseTable, STANDARD_PHASE_TABLE


@dataclass(frozen=True)
class MissionSummary:
    elapsed_seconds: float
    max_altitude_km: float
    max_velocity_km_s: float
    max_acceleration_g: float
    max_dynamic_pressure_kpa: float
    milestones_achieved: int
    total_milestones: int

    @property
    def duration_label(self) -> str:
        return format_mission_time(self.elapsed_seconds)

    def to_dict(self) -> dict:
        return {
            'duration': self.duration_label,
            'elapsed_seconds': self.elapsed_seconds,
            'max_altitude_km': self.max_altitude_km,
            'max_velocity_km_s': self.max_velocity_km_s,
            'max_acceleration_g': self.max_acceleration_g,
            'max_dynamic_pressure_kpa': self.max_dynamic_pressure_kpa,
            'milestones_achieved': self.milestones_achieved,
            'total_milestones': self.total_milestones,
        }


class FlightRecord:
    """Running peaks and visited phases over every point observed."""

    def __init__(self, table: PhaseTable = STANDARD_PHASE_TABLE):
        self._resolver = PhaseResolver(table)
        self._visited: Set[str] = set()
        self._count = 0
        self._max_altitude = 0.0
        self._max_velocity = 0.0
        self._max_acceleration = 0.0
        self._max_dynamic_pressure = 0.0

    @property
    def point_count(self) -> int:
        return self._count

    def observe(self, point: TelemetryPoint) -> None:
        progress = self._resolver.resolve(point.t_elapsed_seconds)
        if progress.phase is not None:
            self._visited.add(progress.phase.id)
        self._count += 1
        self._max_altitude = max(self._max_altitude, point.altitude_km)
        self._max_velocity = max(self._max_velocity, point.velocity_km_s)
        self._max_acceleration = max(self._max_acceleration, point.acceleration_g)
        self._max_dynamic_pressure = max(self._max_dynamic_pressure, point.dynamic_pressure_kpa)

    def summary(self, elapsed_seconds: float) -> Optional[MissionSummary]:
        """None until a point has been observed."""
        if not self._count:
            return None
        table = self._resolver.table
        achieved = sum(
            1 for phase in table
            if phase.nominal_offset_seconds <= elapsed_seconds and phase.id in self._visited
        )
        return MissionSummary(
            elapsed_seconds=elapsed_seconds,
            max_altitude_km=round(self._max_altitude, 1),
            max_velocity_km_s=round(self._max_velocity, 3),
            max_acceleration_g=round(self._max_acceleration, 2),
            max_dynamic_pressure_kpa=round(self._max_dynamic_pressure, 1),
            milestones_achieved=achieved,
            total_milestones=len(table),
        )


def summarize(
    points: Iterable[TelemetryPoint],
    elapsed_seconds: float,
    table: PhaseTable = STANDARD_PHASE_TABLE
) -> Optional[MissionSummary]:
    """Summary over an explicit point series, e.g. a fetched history page."""
    record = FlightRecord(table)
    for point in points:
        record.observe(point)
    return record.summary(elapsed_seconds)

"""
Telemetry Contracts

One synthesized (or published) telemetry sample.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Mapping
from enum import Enum


class StageStatus(Enum):
    ATTACHED = "attached"
    SEPARATED = "separated"
    LANDING = "landing"
    LANDED = "landed"


class FairingStatus(Enum):
    ATTACHED = "attached"
    SEPARATED = "separated"


@dataclass(frozen=True)
class TelemetryPoint:
    """
    Vehicle state at t_elapsed_seconds.

    Ordered by t_elapsed_seconds. Throttle is a percentage in [0, 100].
    """
    t_elapsed_seconds: float
    altitude_km: float
    velocity_km_s: float
    downrange_km: float
    acceleration_g: float
    dynamic_pressure_kpa: float
    fuel_remaining_pct: float
    throttle_pct: float
    stage_status: StageStatus
    fairing_status: FairingStatus
    is_max_q: bool
    latitude: float
    longitude: float

    def to_dict(self) -> dict:
        return {
            't_elapsed_seconds': self.t_elapsed_seconds,
            'altitude_km': self.altitude_km,
            'velocity_km_s': self.velocity_km_s,
            'downrange_km': self.downrange_km,
            'acceleration_g': self.acceleration_g,
            'dynamic_pressure_kpa': self.dynamic_pressure_kpa,
            'fuel_remaining_pct': self.fuel_remaining_pct,
            'throttle_pct': self.throttle_pct,
            'stage_status': self.stage_status.value,
            'fairing_status': self.fairing_status.value,
            'is_max_q': self.is_max_q,
            'latitude': self.latitude,
            'longitude': self.longitude,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> 'TelemetryPoint':
        return TelemetryPoint(
            t_elapsed_seconds=float(data['t_elapsed_seconds']),
            altitude_km=float(data['altitude_km']),
            velocity_km_s=float(data['velocity_km_s']),
            downrange_km=float(data['downrange_km']),
            acceleration_g=float(data['acceleration_g']),
            dynamic_pressure_kpa=float(data['dynamic_pressure_kpa']),
            fuel_remaining_pct=float(data['fuel_remaining_pct']),
            throttle_pct=float(data['throttle_pct']),
            stage_status=StageStatus(data['stage_status']),
            fairing_status=FairingStatus(data['fairing_status']),
            is_max_q=bool(data['is_max_q']),
            latitude=float(data.get('latitude', 0.0)),
            longitude=float(data.get('longitude', 0.0)),
        )

"""
Telemetry Synthesizer
=====================

Closed-form ascent profile for a two-stage orbital launch, used where no
real sensor feed exists.

PROFILE:
========
  T+0   .. T+162   first stage burn      0 -> 80 km,    0 -> 2.3 km/s
  T+162 .. T+165   separation coast
  T+165 .. T+510   second stage burn    81.5 -> 250 km, 2.3 -> 7.8 km/s
  T+510 ..         orbital coast, apogee at T+1410

GUARANTEES:
===========
1. point(t) is a pure function of (t, seed): repeated calls are bit-identical
2. altitude and downrange never decrease before APOGEE_T
3. velocity never decreases before SECO_T
4. fuel never increases and settles at FUEL_FLOOR_PCT
5. dynamic pressure has a single peak, inside the MaxQ window
6. jitter touches only fields with no ordering guarantee
"""

from __future__ import annotations
import math
import zlib
from typing import Dict, List

import numpy as np

from ..contracts.telemetry import TelemetryPoint, StageStatus, FairingStatus


# Cape Canaveral
LAUNCH_LAT = 28.5623
LAUNCH_LON = -80.5774

MECO_T = 162.0
SES_T = 165.0
FAIRING_SEP_T = 210.0
LANDING_BURN_T = 480.0
SECO_T = 510.0
LANDED_T = 540.0
APOGEE_T = SECO_T + 900.0
ORBIT_PERIOD_S = 3600.0

MAX_Q_T = 72.0
MAX_Q_WINDOW = (67.0, 77.0)
Q_PEAK_KPA = 35.0
Q_SIGMA_S = 25.0

FUEL_AT_MECO_PCT = 22.0
FUEL_AT_SECO_PCT = 4.0
FUEL_FLOOR_PCT = 3.0

ENGINE_RAMP_S = 10.0
THROTTLE_BUCKET = (50.0, 80.0)

# Elapsed values beyond this are clamped; keeps the jitter key finite
MAX_ELAPSED_S = 1.0e7


def _dynamic_pressure(t: float) -> float:
    if t < 0 or t > SECO_T:
        return 0.0
    return Q_PEAK_KPA * math.exp(-0.5 * ((t - MAX_Q_T) / Q_SIGMA_S) ** 2)


def _fuel(t: float) -> float:
    """Whole-vehicle propellant fraction, percent."""
    if t < 0:
        return 100.0
    if t <= MECO_T:
        return 100.0 - (100.0 - FUEL_AT_MECO_PCT) * (t / MECO_T)
    if t <= SES_T:
        return FUEL_AT_MECO_PCT
    if t <= SECO_T:
        n2 = (t - SES_T) / (SECO_T - SES_T)
        return FUEL_AT_MECO_PCT - (FUEL_AT_MECO_PCT - FUEL_AT_SECO_PCT) * n2
    coast = min(1.0, (t - SECO_T) / ORBIT_PERIOD_S)
    return FUEL_AT_SECO_PCT - (FUEL_AT_SECO_PCT - FUEL_FLOOR_PCT) * coast


def stage_status_at(t: float) -> StageStatus:
    if t <= MECO_T:
        return StageStatus.ATTACHED
    if t < LANDING_BURN_T:
        return StageStatus.SEPARATED
    if t < LANDED_T:
        return StageStatus.LANDING
    return StageStatus.LANDED


def fairing_status_at(t: float) -> FairingStatus:
    return FairingStatus.SEPARATED if t >= FAIRING_SEP_T else FairingStatus.ATTACHED


def nominal_profile(t: float) -> Dict[str, float]:
    """
    Noise-free profile values at t, for overlay plots.

    Keys: altitude, velocity, downrange, acceleration, throttle,
    dynamic_pressure, fuel, latitude, longitude.
    """
    if t < 0:
        return {
            'altitude': 0.0, 'velocity': 0.0, 'downrange': 0.0, 'acceleration': 0.0,
            'throttle': 100.0 if t > -ENGINE_RAMP_S else 0.0,
            'dynamic_pressure': 0.0, 'fuel': 100.0,
            'latitude': LAUNCH_LAT, 'longitude': LAUNCH_LON,
        }

    if t <= MECO_T:
        n = t / MECO_T
        in_bucket = THROTTLE_BUCKET[0] <= t <= THROTTLE_BUCKET[1]
        return {
            'altitude': 80.0 * (0.3 * n * n + 0.7 * n),
            'velocity': 2.3 * n * (0.5 + 0.5 * n),
            'downrange': 100.0 * n ** 3,
            'acceleration': 1.3 + 2.2 * n,
            'throttle': 70.0 if in_bucket else 100.0,
            'dynamic_pressure': _dynamic_pressure(t),
            'fuel': _fuel(t),
            'latitude': LAUNCH_LAT + 2.0 * n,
            'longitude': LAUNCH_LON + 5.0 * n,
        }

    if t <= SES_T:
        dt = t - MECO_T
        return {
            'altitude': 80.0 + 0.5 * dt,
            'velocity': 2.3,
            'downrange': 100.0 + 2.0 * dt,
            'acceleration': 0.0,
            'throttle': 0.0,
            'dynamic_pressure': _dynamic_pressure(t),
            'fuel': _fuel(t),
            'latitude': LAUNCH_LAT + 2.0,
            'longitude': LAUNCH_LON + 5.0,
        }

    if t <= SECO_T:
        n2 = (t - SES_T) / (SECO_T - SES_T)
        return {
            'altitude': 81.5 + 168.5 * n2,
            'velocity': 2.3 + 5.5 * n2,
            'downrange': 106.0 + 1894.0 * n2 * (0.3 + 0.7 * n2),
            'acceleration': 0.8 + 2.2 * n2,
            'throttle': 100.0,
            'dynamic_pressure': _dynamic_pressure(t),
            'fuel': _fuel(t),
            'latitude': LAUNCH_LAT + 2.0 + 10.0 * n2,
            'longitude': LAUNCH_LON + 5.0 + 30.0 * n2,
        }

    coast_t = t - SECO_T
    cn = min(1.0, coast_t / ORBIT_PERIOD_S)
    swing = math.sin(cn * 2.0 * math.pi)
    return {
        'altitude': 250.0 + 5.0 * swing,
        'velocity': 7.8 - 0.05 * swing,
        'downrange': 2000.0 + 7.8 * coast_t,
        'acceleration': 0.0,
        'throttle': 0.0,
        'dynamic_pressure': 0.0,
        'fuel': _fuel(t),
        'latitude': LAUNCH_LAT + 12.0 + cn * 20.0 * math.sin(cn * math.pi),
        'longitude': LAUNCH_LON + 35.0 + cn * 60.0,
    }


class TelemetrySynthesizer:
    """
    Deterministic telemetry generator.

    Jitter comes from a numpy generator seeded by (seed, t quantized to
    the millisecond), so two components asking for the same instant in
    the same render pass always agree.
    """

    def __init__(self, seed: int = 0):
        self._seed = int(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def point(self, elapsed_seconds: float) -> TelemetryPoint:
        t = float(elapsed_seconds)
        if math.isnan(t):
            t = -MAX_ELAPSED_S
        t = float(np.clip(t, -MAX_ELAPSED_S, MAX_ELAPSED_S))

        p = nominal_profile(t)
        acceleration = p['acceleration']
        throttle = p['throttle']
        latitude = p['latitude']
        longitude = p['longitude']

        if t >= 0:
            noise = self._jitter(t)
            acceleration += noise[0] * (0.05 if acceleration else 0.01)
            if throttle:
                throttle += noise[1] * (2.0 if throttle < 100.0 else 1.0)
            latitude += noise[2] * 0.01
            longitude += noise[3] * 0.01

        return TelemetryPoint(
            t_elapsed_seconds=t,
            altitude_km=round(max(0.0, p['altitude']), 2),
            velocity_km_s=round(max(0.0, p['velocity']), 3),
            downrange_km=round(max(0.0, p['downrange']), 2),
            acceleration_g=round(max(0.0, acceleration), 2),
            dynamic_pressure_kpa=round(max(0.0, p['dynamic_pressure']), 2),
            fuel_remaining_pct=round(min(100.0, max(0.0, p['fuel'])), 1),
            throttle_pct=round(float(np.clip(throttle, 0.0, 100.0)), 1),
            stage_status=stage_status_at(t),
            fairing_status=fairing_status_at(t),
            is_max_q=MAX_Q_WINDOW[0] <= t <= MAX_Q_WINDOW[1],
            latitude=round(latitude, 4),
            longitude=round(longitude, 4),
        )

    def batch(self, start: float, end: float, interval_seconds: float = 1.0) -> List[TelemetryPoint]:
        """Points from start to end inclusive, every interval_seconds."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        count = int(math.floor((end - start) / interval_seconds)) + 1
        return [self.point(start + i * interval_seconds) for i in range(max(0, count))]

    def _jitter(self, t: float) -> List[float]:
        key = f"{self._seed}:{int(round(t * 1000))}".encode('ascii')
        rng = np.random.default_rng(zlib.crc32(key))
        return rng.uniform(-0.5, 0.5, size=4).tolist()


def synthesize(elapsed_seconds: float, seed: int = 0) -> TelemetryPoint:
    """Convenience wrapper around TelemetrySynthesizer(seed).point()."""
    return TelemetrySynthesizer(seed).point(elapsed_seconds)


def synthesize_batch(
    start: float, end: float, interval_seconds: float = 1.0, seed: int = 0
) -> List[TelemetryPoint]:
    return TelemetrySynthesizer(seed).batch(start, end, interval_seconds)


def telemetry_seed(event_id: str) -> int:
    """Every client of one event draws the same jitter."""
    return zlib.crc32(event_id.encode('utf-8'))

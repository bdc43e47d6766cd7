"""
Weather Oracle

Seeded launch-site weather with a go/no-go call. The same event asks in
the same UTC hour and gets the same report, so polling clients agree.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
import zlib
from typing import Optional, Tuple

import numpy as np

from ..contracts.base import ensure_utc
from ..contracts.weather import (
    WeatherReport, GoNoGoCriterion, LightningRisk, CriterionStatus, RangeStatus,
)


@dataclass(frozen=True)
class SiteProfile:
    base_temp_f: float
    base_wind_kts: float
    base_cloud_pct: float
    storm_chance: float


# (location keywords, profile); first match wins
SITE_PROFILES: Tuple[Tuple[Tuple[str, ...], SiteProfile], ...] = (
    (('canaveral', 'cape', 'kennedy', 'florida'), SiteProfile(78, 10, 30, 0.25)),
    (('vandenberg', 'california'), SiteProfile(62, 12, 40, 0.10)),
    (('boca chica', 'starbase', 'texas'), SiteProfile(82, 14, 25, 0.20)),
    (('wallops',), SiteProfile(65, 11, 35, 0.15)),
)
DEFAULT_SITE = SiteProfile(72, 10, 30, 0.15)

WIND_DIRECTIONS = ('N', 'NE', 'E', 'SE', 'S', 'SW', 'W', 'NW')

SURFACE_WIND_LIMIT_KTS = 25
SURFACE_WIND_CAUTION_KTS = 18


def site_profile(location: Optional[str]) -> SiteProfile:
    loc = (location or '').lower()
    for keywords, profile in SITE_PROFILES:
        if any(k in loc for k in keywords):
            return profile
    return DEFAULT_SITE


def range_status_for(criteria: Tuple[GoNoGoCriterion, ...]) -> RangeStatus:
    statuses = {c.status for c in criteria}
    if CriterionStatus.NO_GO in statuses:
        return RangeStatus.RED
    if CriterionStatus.CAUTION in statuses:
        return RangeStatus.YELLOW
    return RangeStatus.GREEN


class WeatherOracle:
    """Deterministic per (event, hour) weather generator."""

    def report(self, event_id: str, location: Optional[str], now: datetime) -> WeatherReport:
        now = ensure_utc(now)
        hour_key = int(now.timestamp() // 3600)
        rng = np.random.default_rng(zlib.crc32(f"{event_id}-{hour_key}".encode('utf-8')))
        profile = site_profile(location)

        stormy = rng.random() < profile.storm_chance
        wind_speed = round(profile.base_wind_kts + rng.random() * 8 + (10 if stormy else 0))
        wind_direction = WIND_DIRECTIONS[int(rng.integers(len(WIND_DIRECTIONS)))]
        temperature = round(profile.base_temp_f + (rng.random() - 0.5) * 10)
        cloud_cover = min(100, round(profile.base_cloud_pct + rng.random() * 30 + (30 if stormy else 0)))
        precipitation = round(30 + rng.random() * 50) if stormy else round(rng.random() * 10)
        visibility = round(3 + rng.random() * 4) if stormy else round(8 + rng.random() * 4)
        humidity = round(40 + rng.random() * 40 + (15 if stormy else 0))

        if stormy:
            lightning = LightningRisk.HIGH if rng.random() > 0.5 else LightningRisk.MODERATE
        else:
            lightning = LightningRisk.LOW if rng.random() > 0.85 else LightningRisk.NONE

        vehicle_anomaly = rng.random() > 0.95

        criteria = (
            GoNoGoCriterion(
                'Surface Winds',
                CriterionStatus.NO_GO if wind_speed > SURFACE_WIND_LIMIT_KTS
                else CriterionStatus.CAUTION if wind_speed > SURFACE_WIND_CAUTION_KTS
                else CriterionStatus.GO,
                f"{wind_speed} kts {wind_direction} (limit: {SURFACE_WIND_LIMIT_KTS} kts)",
            ),
            GoNoGoCriterion(
                'Upper Level Winds',
                CriterionStatus.CAUTION if stormy else CriterionStatus.GO,
                'Elevated wind shear detected' if stormy else 'Within acceptable limits',
            ),
            GoNoGoCriterion(
                'Lightning / Triggered Lightning',
                CriterionStatus.NO_GO if lightning == LightningRisk.HIGH
                else CriterionStatus.CAUTION if lightning == LightningRisk.MODERATE
                else CriterionStatus.GO,
                f"{lightning.value.capitalize()} risk",
            ),
            GoNoGoCriterion(
                'Cumulus Clouds',
                CriterionStatus.CAUTION if cloud_cover > 80 else CriterionStatus.GO,
                f"{cloud_cover}% coverage",
            ),
            GoNoGoCriterion('Range Safety', CriterionStatus.GO, 'All tracking systems operational'),
            GoNoGoCriterion(
                'Vehicle Health',
                CriterionStatus.CAUTION if vehicle_anomaly else CriterionStatus.GO,
                'Minor sensor anomaly under review' if vehicle_anomaly else 'All systems nominal',
            ),
            GoNoGoCriterion('Flight Termination System', CriterionStatus.GO, 'FTS armed and operational'),
            GoNoGoCriterion(
                'Precipitation',
                CriterionStatus.NO_GO if precipitation > 40
                else CriterionStatus.CAUTION if precipitation > 15
                else CriterionStatus.GO,
                f"{precipitation}% chance",
            ),
        )

        return WeatherReport(
            wind_speed_kts=int(wind_speed),
            wind_direction=wind_direction,
            temperature_f=int(temperature),
            cloud_cover_pct=int(cloud_cover),
            lightning_risk=lightning,
            precipitation_pct=int(precipitation),
            visibility_mi=int(visibility),
            humidity_pct=int(humidity),
            criteria=criteria,
            range_status=range_status_for(criteria),
            generated_at=now,
        )

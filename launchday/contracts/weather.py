"""
Weather / Go-No-Go Contracts
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Tuple
from enum import Enum

from .base import parse_instant


class LightningRisk(Enum):
    NONE = "none"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class CriterionStatus(Enum):
    GO = "go"
    CAUTION = "caution"
    NO_GO = "no_go"


class RangeStatus(Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


@dataclass(frozen=True)
class GoNoGoCriterion:
    name: str
    status: CriterionStatus
    detail: str

    def to_dict(self) -> dict:
        return {'name': self.name, 'status': self.status.value, 'detail': self.detail}


@dataclass(frozen=True)
class WeatherReport:
    """Launch-site conditions and the range's overall go/no-go call."""
    wind_speed_kts: int
    wind_direction: str
    temperature_f: int
    cloud_cover_pct: int
    lightning_risk: LightningRisk
    precipitation_pct: int
    visibility_mi: int
    humidity_pct: int
    criteria: Tuple[GoNoGoCriterion, ...]
    range_status: RangeStatus
    generated_at: datetime

    def to_dict(self) -> dict:
        return {
            'weather': {
                'wind_speed_kts': self.wind_speed_kts,
                'wind_direction': self.wind_direction,
                'temperature_f': self.temperature_f,
                'cloud_cover_pct': self.cloud_cover_pct,
                'lightning_risk': self.lightning_risk.value,
                'precipitation_pct': self.precipitation_pct,
                'visibility_mi': self.visibility_mi,
                'humidity_pct': self.humidity_pct,
            },
            'criteria': [c.to_dict() for c in self.criteria],
            'range_status': self.range_status.value,
            'generated_at': self.generated_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> 'WeatherReport':
        w = data['weather']
        return WeatherReport(
            wind_speed_kts=int(w['wind_speed_kts']),
            wind_direction=w['wind_direction'],
            temperature_f=int(w['temperature_f']),
            cloud_cover_pct=int(w['cloud_cover_pct']),
            lightning_risk=LightningRisk(w['lightning_risk']),
            precipitation_pct=int(w['precipitation_pct']),
            visibility_mi=int(w['visibility_mi']),
            humidity_pct=int(w['humidity_pct']),
            criteria=tuple(
                GoNoGoCriterion(c['name'], CriterionStatus(c['status']), c['detail'])
                for c in data.get('criteria') or ()
            ),
            range_status=RangeStatus(data['range_status']),
            generated_at=parse_instant(data['generated_at']),
        )

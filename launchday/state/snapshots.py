"""
Dashboard Snapshots

The rendering boundary: one immutable picture of the dashboard, mapped
to plain JSON-serializable dicts for whatever draws it.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from ..contracts.base import Error, LogKind, MissionContext
from ..contracts.records import PollState
from ..contracts.telemetry import TelemetryPoint
from ..sync.merge import LogEntry
from ..telemetry.summary import MissionSummary
from ..temporal.clock import MissionClockReading
from ..temporal.phases import PhaseProgress


@dataclass(frozen=True)
class KindHealth:
    last_success_at: Optional[datetime]
    consecutive_failures: int
    consecutive_timeouts: int = 0

    def to_dict(self) -> dict:
        return {
            'last_success_at': self.last_success_at.isoformat() if self.last_success_at else None,
            'consecutive_failures': self.consecutive_failures,
            'consecutive_timeouts': self.consecutive_timeouts,
        }


@dataclass(frozen=True)
class DashboardSnapshot:
    event: MissionContext
    generated_at: datetime
    mission_time: MissionClockReading
    phase: PhaseProgress
    telemetry: Optional[TelemetryPoint]
    telemetry_history: Tuple[TelemetryPoint, ...] = field(default_factory=tuple)
    summary: Optional[MissionSummary] = None
    chat: Tuple[LogEntry, ...] = field(default_factory=tuple)
    reaction_totals: Mapping[str, int] = field(default_factory=dict)
    reaction_recent: Mapping[str, int] = field(default_factory=dict)
    polls: Tuple[PollState, ...] = field(default_factory=tuple)
    voted: Mapping[str, int] = field(default_factory=dict)
    weather: Optional[Mapping[str, Any]] = None
    cooldowns: Mapping[LogKind, float] = field(default_factory=dict)
    health: Mapping[LogKind, KindHealth] = field(default_factory=dict)
    last_error: Optional[Error] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event': self.event.to_dict(),
            'generated_at': self.generated_at.isoformat(),
            'mission_time': {
                'elapsed_seconds': self.mission_time.elapsed_seconds,
                'label': self.mission_time.label,
                'is_countdown': self.mission_time.is_countdown,
            },
            'phase': self.phase.to_dict(),
            'telemetry': self.telemetry.to_dict() if self.telemetry else None,
            'telemetry_history': [p.to_dict() for p in self.telemetry_history],
            'summary': self.summary.to_dict() if self.summary else None,
            'chat': [entry.to_dict() for entry in self.chat],
            'reactions': {
                'totals': dict(self.reaction_totals),
                'recent': dict(self.reaction_recent),
            },
            'polls': [
                dict(
                    poll.to_dict(),
                    percentages={str(i): pct for i, pct in poll.percentages().items()},
                    voted_option=self.voted.get(poll.poll_id),
                )
                for poll in self.polls
            ],
            'weather': self.weather,
            'cooldowns': {kind.value: seconds for kind, seconds in self.cooldowns.items()},
            'health': {kind.value: h.to_dict() for kind, h in self.health.items()},
            'last_error': self.last_error.to_dict() if self.last_error else None,
        }

"""
Configuration

Dataclass configs; unset fields are filled in __post_init__.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import os
from typing import Dict, Mapping, Optional

from .contracts.base import LogKind, MissionContext, parse_instant, utc_now
from .store.rate_limit import DEFAULT_POLICIES, RateLimitPolicy


DEFAULT_POLL_INTERVALS: Mapping[LogKind, float] = {
    LogKind.CHAT: 3.0,
    LogKind.REACTION: 3.0,
    LogKind.POLL: 5.0,
    LogKind.WEATHER: 60.0,
    LogKind.TELEMETRY: 2.0,
}


@dataclass
class SyncConfig:
    """Client-side cadences and bounds."""
    poll_intervals: Dict[LogKind, float] = None
    request_timeout_seconds: float = 8.0
    read_limit: int = 200
    telemetry_history_size: int = 120
    mission_tick_seconds: float = 1.0

    def __post_init__(self):
        intervals = dict(DEFAULT_POLL_INTERVALS)
        intervals.update(self.poll_intervals or {})
        self.poll_intervals = intervals
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")

    def interval_for(self, kind: LogKind) -> float:
        return self.poll_intervals[kind]


@dataclass
class ServerConfig:
    """
    HTTP server settings.

    The demo event is registered at startup so a fresh server has
    something to serve; its T-0 defaults to one hour from boot.
    """
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"
    demo_event_id: Optional[str] = "demo-launch"
    demo_launch_time: Optional[datetime] = None
    demo_location: Optional[str] = "Cape Canaveral SLC-40"
    rate_limits: Dict[LogKind, RateLimitPolicy] = None
    milestone_tick_seconds: float = 1.0
    imminent_window_seconds: float = 24 * 3600.0
    cors_origins: tuple = field(default_factory=lambda: ("*",))

    def __post_init__(self):
        self.rate_limits = self.rate_limits or dict(DEFAULT_POLICIES)

    def demo_context(self, now: Optional[datetime] = None) -> Optional[MissionContext]:
        if not self.demo_event_id:
            return None
        launch = self.demo_launch_time
        if launch is None:
            launch = (now or utc_now()) + timedelta(hours=1)
        return MissionContext(
            event_id=self.demo_event_id,
            reference_instant=launch,
            name="Launch Day Demo",
            location=self.demo_location,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ServerConfig':
        env = os.environ if environ is None else environ
        launch = env.get("LAUNCHDAY_LAUNCH_TIME")
        return cls(
            host=env.get("LAUNCHDAY_HOST", "0.0.0.0"),
            port=int(env.get("LAUNCHDAY_PORT", "8000")),
            log_level=env.get("LAUNCHDAY_LOG_LEVEL", "info").lower(),
            demo_event_id=env.get("LAUNCHDAY_EVENT_ID", "demo-launch") or None,
            demo_launch_time=parse_instant(launch) if launch else None,
            demo_location=env.get("LAUNCHDAY_LOCATION", "Cape Canaveral SLC-40"),
            imminent_window_seconds=float(env.get("LAUNCHDAY_IMMINENT_WINDOW_SECONDS", str(24 * 3600.0))),
        )

"""
Mission Clock
=============

Signed elapsed time against a reference launch instant, plus an
injectable clock so every time read can be controlled in tests.

GUARANTEES:
- elapsed() is pure and total: same (now, reference) = same seconds
- Components never read system time implicitly; they are handed a clock
- The mission clock does not schedule itself; callers own their timers
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..contracts.base import ensure_utc, utc_now


@dataclass
class LogicalClock:
    """
    Injectable clock.

    MODES:
    ======
    1. LIVE mode: uses real system time
    2. MANUAL mode: holds a fixed instant until advance()/set() moves it

    Manual mode may be moved backwards on purpose, to reproduce the
    clock corrections a sleeping device sees on wake.
    """
    _mode: str = "live"
    _manual: Optional[datetime] = None

    def now(self) -> datetime:
        """
        Get current logical time.

        LIVE: system time. MANUAL: the held instant.
        """
        if self._mode == "manual":
            return self._manual
        return utc_now()

    def advance(self, seconds: float) -> datetime:
        """Move a manual clock by seconds (negative moves it back)."""
        self._require_manual()
        self._manual = self._manual + timedelta(seconds=seconds)
        return self._manual

    def set(self, instant: datetime) -> datetime:
        self._require_manual()
        self._manual = ensure_utc(instant)
        return self._manual

    def _require_manual(self) -> None:
        if self._mode != "manual":
            raise RuntimeError(f"Only a manual clock can be moved (mode={self._mode})")

    @classmethod
    def live(cls) -> 'LogicalClock':
        """Create clock in LIVE mode (uses system time)."""
        return cls(_mode="live")

    @classmethod
    def manual(cls, start: datetime) -> 'LogicalClock':
        """Create clock in MANUAL mode holding start."""
        return cls(_mode="manual", _manual=ensure_utc(start))

    def __repr__(self) -> str:
        if self._mode == "manual":
            return f"LogicalClock(MANUAL, at={self._manual.isoformat()})"
        return "LogicalClock(LIVE)"


# =============================================================================
# MISSION CLOCK
# =============================================================================

def elapsed(now: datetime, reference_instant: datetime) -> float:
    """
    Signed seconds from reference_instant to now.

    Negative before the reference (countdown), non-negative after.
    """
    return (ensure_utc(now) - ensure_utc(reference_instant)).total_seconds()


@dataclass(frozen=True)
class MissionClockReading:
    """Derived, never persisted."""
    elapsed_seconds: float

    @property
    def is_countdown(self) -> bool:
        return self.elapsed_seconds < 0

    @property
    def label(self) -> str:
        return format_mission_time(self.elapsed_seconds)


class MissionClock:
    """Reads elapsed mission time from an injected clock."""

    def __init__(self, reference_instant: datetime, clock: Optional[LogicalClock] = None):
        self._reference = ensure_utc(reference_instant)
        self._clock = clock or LogicalClock.live()

    @property
    def reference_instant(self) -> datetime:
        return self._reference

    def read(self, now: Optional[datetime] = None) -> MissionClockReading:
        return MissionClockReading(elapsed(now or self._clock.now(), self._reference))


def format_mission_time(seconds: float) -> str:
    """
    Render as T-MM:SS / T+MM:SS, or with hours once past an hour.

    >>> format_mission_time(-125)
    'T-02:05'
    >>> format_mission_time(3725)
    'T+01:02:05'
    """
    sign = '-' if seconds < 0 else '+'
    total = int(abs(seconds))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"T{sign}{h:02d}:{m:02d}:{s:02d}"
    return f"T{sign}{m:02d}:{s:02d}"

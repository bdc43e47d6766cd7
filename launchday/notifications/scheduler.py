"""
Notification Scheduler
======================

Launch reminders the user opted into.

GUARANTEES:
- Schedules are persisted locally and recomputed on every load; nothing
  trusts a timer armed in a previous session
- fire_at = target_instant - lead_seconds, against the current target
  (a resolver reports slips)
- A fire_at already in the past fires immediately on load
- Permission denial degrades to UNAVAILABLE, never an error
- Firing or cancelling removes the persisted entry
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..contracts.records import NotificationSchedule
from ..storage import KeyValueStore
from ..temporal.clock import LogicalClock, format_mission_time
from .delivery import NotificationDelivery, PermissionState


logger = logging.getLogger(__name__)

STORAGE_KEY = "launch-reminders"

ScheduleKey = Tuple[str, str]
TargetResolver = Callable[[NotificationSchedule], Optional[datetime]]


class ScheduleStatus(Enum):
    ARMED = "armed"
    FIRED_IMMEDIATELY = "fired_immediately"
    UNAVAILABLE = "unavailable"
    CANCELLED = "cancelled"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ScheduleResult:
    status: ScheduleStatus
    schedule: Optional[NotificationSchedule] = None
    fire_at: Optional[datetime] = None
    handle: Optional[str] = None


def _key(schedule: NotificationSchedule) -> ScheduleKey:
    return (schedule.event_id, schedule.label)


class NotificationScheduler:

    def __init__(
        self,
        storage: KeyValueStore,
        delivery: NotificationDelivery,
        clock: Optional[LogicalClock] = None,
        target_resolver: Optional[TargetResolver] = None
    ):
        self._storage = storage
        self._delivery = delivery
        self._clock = clock or LogicalClock.live()
        self._resolve_target = target_resolver
        self._handles: Dict[ScheduleKey, str] = {}

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def pending(self) -> Tuple[NotificationSchedule, ...]:
        raw = self._storage.get(STORAGE_KEY) or []
        schedules = []
        for item in raw:
            try:
                schedules.append(NotificationSchedule.from_dict(item))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Dropping malformed reminder %r: %s", item, e)
        return tuple(schedules)

    def _save(self, schedules: List[NotificationSchedule]) -> None:
        if schedules:
            self._storage.set(STORAGE_KEY, [s.to_dict() for s in schedules])
        else:
            self._storage.remove(STORAGE_KEY)

    def _upsert(self, schedule: NotificationSchedule) -> None:
        schedules = [s for s in self.pending() if _key(s) != _key(schedule)]
        schedules.append(schedule)
        self._save(schedules)

    def _remove(self, key: ScheduleKey) -> bool:
        schedules = list(self.pending())
        kept = [s for s in schedules if _key(s) != key]
        if len(kept) == len(schedules):
            return False
        self._save(kept)
        return True

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def opt_in(self, schedule: NotificationSchedule) -> ScheduleResult:
        permission = await self._delivery.request_permission()
        if permission != PermissionState.GRANTED:
            logger.info("Reminder %s unavailable: permission %s", schedule.label, permission.value)
            return ScheduleResult(ScheduleStatus.UNAVAILABLE, schedule)

        self._upsert(schedule)
        return self._arm(schedule)

    async def load(self) -> List[ScheduleResult]:
        """Re-resolve, recompute and re-arm every persisted reminder."""
        schedules = self.pending()
        if not schedules:
            return []

        permission = await self._delivery.request_permission()
        if permission != PermissionState.GRANTED:
            return [ScheduleResult(ScheduleStatus.UNAVAILABLE, s) for s in schedules]

        results = []
        for schedule in schedules:
            current = schedule
            if self._resolve_target is not None:
                target = self._resolve_target(schedule)
                if target is not None and target != schedule.target_instant:
                    logger.info(
                        "Reminder %s retargeted %s -> %s",
                        schedule.label, schedule.target_instant.isoformat(), target.isoformat()
                    )
                    current = schedule.retargeted(target)
                    self._upsert(current)
            results.append(self._arm(current))
        return results

    def cancel(self, event_id: str, label: str) -> ScheduleResult:
        key = (event_id, label)
        handle = self._handles.pop(key, None)
        if handle is not None:
            self._delivery.cancel(handle)
        if not self._remove(key) and handle is None:
            return ScheduleResult(ScheduleStatus.NOT_FOUND)
        logger.info("Reminder %s for %s cancelled", label, event_id)
        return ScheduleResult(ScheduleStatus.CANCELLED, handle=handle)

    def cancel_all(self) -> None:
        """Cancel armed timers without touching persisted reminders (teardown)."""
        for handle in self._handles.values():
            self._delivery.cancel(handle)
        self._handles.clear()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _arm(self, schedule: NotificationSchedule) -> ScheduleResult:
        key = _key(schedule)
        previous = self._handles.pop(key, None)
        if previous is not None:
            self._delivery.cancel(previous)

        now = self._clock.now()
        fire_at = schedule.fire_at
        immediate = fire_at <= now
        handle = self._delivery.schedule_one_shot(
            now if immediate else fire_at,
            self._payload(schedule),
            on_fire=lambda _h, _p, k=key: self._on_fire(k),
        )
        self._handles[key] = handle

        status = ScheduleStatus.FIRED_IMMEDIATELY if immediate else ScheduleStatus.ARMED
        logger.info("Reminder %s %s (fire at %s)", schedule.label, status.value, fire_at.isoformat())
        return ScheduleResult(status, schedule, fire_at, handle)

    def _on_fire(self, key: ScheduleKey) -> None:
        self._handles.pop(key, None)
        self._remove(key)

    @staticmethod
    def _payload(schedule: NotificationSchedule) -> dict:
        lead = format_mission_time(-schedule.lead_seconds) if schedule.lead_seconds else "T-0"
        return {
            'event_id': schedule.event_id,
            'label': schedule.label,
            'title': schedule.label,
            'body': f"{schedule.label} at {lead}",
            'target_instant': schedule.target_instant.isoformat(),
        }

"""
Notification Delivery

Port for the platform's one-shot notification facility, and an asyncio
implementation that fires on the running loop.
"""

from __future__ import annotations
import asyncio
from datetime import datetime
from enum import Enum
import itertools
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..temporal.clock import LogicalClock


logger = logging.getLogger(__name__)

Payload = Mapping[str, Any]
FireCallback = Callable[[str, Payload], None]


class PermissionState(Enum):
    GRANTED = "granted"
    DENIED = "denied"


class NotificationDelivery:
    """request_permission / schedule_one_shot / cancel."""

    async def request_permission(self) -> PermissionState:
        raise NotImplementedError

    def schedule_one_shot(
        self,
        fire_at: datetime,
        payload: Payload,
        on_fire: Optional[FireCallback] = None
    ) -> str:
        raise NotImplementedError

    def cancel(self, handle: str) -> bool:
        raise NotImplementedError


class AsyncioNotificationDelivery(NotificationDelivery):
    """
    Timers on the running event loop.

    Delivered payloads go to `sink` (if given) and are kept on
    `delivered` in firing order. A fire_at in the past fires on the next
    loop iteration.
    """

    def __init__(
        self,
        clock: Optional[LogicalClock] = None,
        sink: Optional[Callable[[Payload], None]] = None,
        permission: PermissionState = PermissionState.GRANTED
    ):
        self._clock = clock or LogicalClock.live()
        self._sink = sink
        self._permission = permission
        self._handles: Dict[str, asyncio.Handle] = {}
        self._ids = itertools.count(1)
        self.delivered: List[Payload] = []

    async def request_permission(self) -> PermissionState:
        return self._permission

    def schedule_one_shot(self, fire_at, payload, on_fire=None) -> str:
        loop = asyncio.get_running_loop()
        handle = f"notification-{next(self._ids)}"
        delay = (fire_at - self._clock.now()).total_seconds()
        if delay <= 0:
            timer = loop.call_soon(self._fire, handle, payload, on_fire)
        else:
            timer = loop.call_later(delay, self._fire, handle, payload, on_fire)
        self._handles[handle] = timer
        logger.debug("Scheduled %s in %.1fs", handle, max(0.0, delay))
        return handle

    def cancel(self, handle: str) -> bool:
        timer = self._handles.pop(handle, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    @property
    def pending_handles(self):
        return tuple(self._handles)

    def _fire(self, handle: str, payload: Payload, on_fire: Optional[FireCallback]) -> None:
        if self._handles.pop(handle, None) is None:
            return
        self.delivered.append(payload)
        logger.info("Delivered notification %s: %s", handle, payload.get('title'))
        if self._sink is not None:
            self._sink(payload)
        if on_fire is not None:
            on_fire(handle, payload)

"""
Sync Client
===========

Keeps one client's view of an event's logs converged with the server.

GUARANTEES:
===========
1. Each log kind polls on its own PeriodicTask; kinds never wait on
   each other
2. Records merge by server id, so duplicates and reordering are harmless
3. A failed or timed-out poll is logged and swallowed; already-rendered
   state is never cleared
4. A rate-limit response pauses the write path for that kind until the
   server-hinted instant; reads continue
5. Every transport call is bounded by request_timeout_seconds
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..config import SyncConfig
from ..contracts.base import ActorContext, LogKind, MissionContext
from ..contracts.records import ReadBatch, WriteOutcome, WriteStatus
from ..tasks import PeriodicTask
from ..temporal.clock import LogicalClock
from .merge import MergedLog
from .transport import EventLogTransport, TransportError


logger = logging.getLogger(__name__)

DEFAULT_KINDS = (LogKind.CHAT, LogKind.REACTION, LogKind.POLL, LogKind.WEATHER)

BatchListener = Callable[[ReadBatch, datetime], None]


@dataclass
class LogView:
    """Everything the client knows about one log kind."""
    kind: LogKind
    log: MergedLog
    totals: Optional[Mapping[str, Any]] = None
    snapshot: Optional[Mapping[str, Any]] = None
    last_read_started_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    consecutive_failures: int = 0
    consecutive_timeouts: int = 0
    paused_until: Optional[datetime] = None
    listeners: List[BatchListener] = field(default_factory=list)


class SyncClient:
    """Polling and write path for one MissionContext."""

    def __init__(
        self,
        context: MissionContext,
        transport: EventLogTransport,
        clock: Optional[LogicalClock] = None,
        config: Optional[SyncConfig] = None,
        kinds: Iterable[LogKind] = DEFAULT_KINDS
    ):
        self.context = context
        self._transport = transport
        self._clock = clock or LogicalClock.live()
        self._config = config or SyncConfig()
        self._views: Dict[LogKind, LogView] = {
            kind: LogView(kind=kind, log=MergedLog(max_records=self._config.read_limit))
            for kind in kinds
        }
        self._tasks: Dict[LogKind, PeriodicTask] = {}

    @property
    def kinds(self):
        return tuple(self._views)

    @property
    def clock(self) -> LogicalClock:
        return self._clock

    def view(self, kind: LogKind) -> LogView:
        return self._views[kind]

    def add_listener(self, kind: LogKind, listener: BatchListener) -> None:
        """listener(batch, read_started_at) runs after each applied batch."""
        self._views[kind].listeners.append(listener)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        for kind in self._views:
            if kind in self._tasks and self._tasks[kind].running:
                continue
            task = PeriodicTask(
                name=f"sync:{self.context.event_id}:{kind.value}",
                interval=self._config.interval_for(kind),
                callback=lambda k=kind: self.poll_once(k),
            )
            self._tasks[kind] = task
            task.start()

    def cancel(self) -> None:
        for task in self._tasks.values():
            task.cancel()

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            await task.stop()

    async def aclose(self) -> None:
        """Stop polling and release the transport."""
        await self.stop()
        await self._transport.aclose()

    @property
    def running(self) -> bool:
        return any(t.running for t in self._tasks.values())

    # =========================================================================
    # READ PATH
    # =========================================================================

    async def poll_once(self, kind: LogKind) -> bool:
        """One read for kind. Returns False if the read failed."""
        view = self._views[kind]
        started = self._clock.now()
        cursor = view.log.cursor or None

        try:
            batch = await asyncio.wait_for(
                self._transport.read(
                    self.context.event_id, kind, cursor=cursor, limit=self._config.read_limit
                ),
                timeout=self._config.request_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._read_failed(view, "timed out", timed_out=True)
            return False
        except TransportError as e:
            self._read_failed(view, f"failed: {e}", timed_out=e.timed_out)
            return False

        self.apply_batch(batch, started)
        return True

    def _read_failed(self, view: LogView, reason: str, timed_out: bool) -> None:
        view.consecutive_failures += 1
        if timed_out:
            view.consecutive_timeouts += 1
        logger.warning("Poll %s/%s %s", self.context.event_id, view.kind.value, reason)

    def apply_batch(self, batch: ReadBatch, read_started_at: datetime) -> None:
        """
        Fold a read result into the view.

        Aggregates from a read that began before the last applied one are
        stale and ignored; its records still merge.
        """
        view = self._views[batch.kind]
        view.log.merge(batch.records)
        view.log.drop_acknowledged(read_started_at)

        stale = view.last_read_started_at is not None and read_started_at < view.last_read_started_at
        if not stale:
            if batch.totals is not None:
                view.totals = batch.totals
            if batch.snapshot is not None:
                view.snapshot = batch.snapshot
            view.last_read_started_at = read_started_at

        view.last_success_at = self._clock.now()
        view.consecutive_failures = 0
        view.consecutive_timeouts = 0
        logger.debug(
            "Applied %s batch: %d records, cursor %d",
            batch.kind.value, len(batch.records), view.log.cursor
        )

        for listener in view.listeners:
            listener(batch, read_started_at)

    # =========================================================================
    # WRITE PATH
    # =========================================================================

    def cooldown_remaining(self, kind: LogKind) -> float:
        view = self._views.get(kind)
        if view is None or view.paused_until is None:
            return 0.0
        return max(0.0, (view.paused_until - self._clock.now()).total_seconds())

    async def write(self, kind: LogKind, payload: Mapping[str, Any], actor: ActorContext) -> WriteOutcome:
        view = self._views[kind]

        remaining = self.cooldown_remaining(kind)
        if remaining > 0:
            return WriteOutcome.rate_limited(remaining)

        try:
            outcome = await asyncio.wait_for(
                self._transport.write(self.context.event_id, kind, payload, actor),
                timeout=self._config.request_timeout_seconds,
            )
        except asyncio.TimeoutError:
            outcome = WriteOutcome.network_failure("Request timed out", timed_out=True)
        except TransportError as e:
            outcome = WriteOutcome.network_failure(str(e), timed_out=e.timed_out)

        if outcome.status == WriteStatus.RATE_LIMITED:
            view.paused_until = self._clock.now() + timedelta(seconds=outcome.retry_after_seconds or 0.0)
            logger.warning(
                "Write path for %s paused %.1fs by server", kind.value, outcome.retry_after_seconds or 0.0
            )
        elif outcome.status == WriteStatus.NETWORK_FAILURE:
            logger.warning("Write to %s failed: %s", kind.value, outcome.reason)
        elif outcome.status == WriteStatus.INVALID:
            logger.info("Write to %s rejected: %s", kind.value, outcome.reason)
        else:
            view.paused_until = None

        return outcome

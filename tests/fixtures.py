"""
Shared Test Fixtures

Explicit factories; every clock is manual so no test reads system time.
"""

from __future__ import annotations
import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from launchday.contracts.base import ActorContext, MissionContext
from launchday.contracts.records import WriteOutcome
from launchday.store.event_log import InMemoryEventLogStore
from launchday.sync.transport import InProcessTransport, TransportError
from launchday.temporal.clock import LogicalClock


# Fixed wall-clock origin for every test
NOW = datetime(2026, 3, 14, 15, 0, 0, tzinfo=timezone.utc)

EVENT_ID = "falcon9-starlink-7-12"

ALICE = ActorContext(actor_id="user-alice", session_id="sess-a", display_name="Alice")
BOB = ActorContext(actor_id="user-bob", session_id="sess-b", display_name="Bob")
ANONYMOUS = ActorContext()


def make_clock(start: datetime = NOW) -> LogicalClock:
    return LogicalClock.manual(start)


def make_context(
    launch_in_seconds: float = 3600.0,
    event_id: str = EVENT_ID,
    location: Optional[str] = "Cape Canaveral SLC-40"
) -> MissionContext:
    return MissionContext(
        event_id=event_id,
        reference_instant=NOW + timedelta(seconds=launch_in_seconds),
        name="Starlink Group 7-12",
        location=location,
    )


def make_store(clock: Optional[LogicalClock] = None, context: Optional[MissionContext] = None) -> InMemoryEventLogStore:
    store = InMemoryEventLogStore(clock=clock or make_clock())
    store.register_event(context or make_context())
    return store


class ScriptedTransport(InProcessTransport):
    """
    In-process transport with injectable faults.

    fail_reads: every read raises TransportError (timed out if timeout_reads)
    write_error: raised from every write instead of answering
    read_delay / write_delay: seconds to sleep before answering
    write_outcomes: queued outcomes returned instead of the store's
    """

    def __init__(self, store: InMemoryEventLogStore):
        super().__init__(store)
        self.reads: List[Optional[int]] = []
        self.writes = 0
        self.fail_reads = False
        self.timeout_reads = False
        self.read_delay = 0.0
        self.write_delay = 0.0
        self.write_outcomes: List[WriteOutcome] = []
        self.write_error: Optional[Exception] = None
        self.closed = 0

    async def read(self, event_id, kind, cursor=None, limit=None):
        self.reads.append(cursor)
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        if self.fail_reads:
            raise TransportError("connection refused", timed_out=self.timeout_reads)
        return await super().read(event_id, kind, cursor=cursor, limit=limit)

    async def write(self, event_id, kind, payload, actor):
        self.writes += 1
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if self.write_error is not None:
            raise self.write_error
        if self.write_outcomes:
            return self.write_outcomes.pop(0)
        return await super().write(event_id, kind, payload, actor)

    async def aclose(self):
        self.closed += 1

"""
Launch Day Dashboard
====================

Wires the client-local pieces for one MissionContext.

    LogicalClock -> MissionClock -> PhaseResolver / TelemetrySession
    EventLogTransport -> SyncClient -> OptimisticWriteBuffer
    KeyValueStore -> NotificationScheduler

The mission tick (1 Hz by default) and the per-kind polls are separate
PeriodicTasks; the telemetry path never waits on the network.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
import logging
from typing import Iterable, List, Optional

from .config import SyncConfig
from .contracts.base import ActorContext, LogKind, MissionContext
from .contracts.records import NotificationSchedule, WriteOutcome
from .contracts.telemetry import TelemetryPoint
from .notifications.delivery import AsyncioNotificationDelivery, NotificationDelivery
from .notifications.scheduler import NotificationScheduler, ScheduleResult
from .state.snapshots import DashboardSnapshot, KindHealth
from .storage import KeyValueStore, MemoryKeyValueStore
from .sync.client import DEFAULT_KINDS, SyncClient
from .sync.optimistic import OptimisticWriteBuffer
from .sync.transport import EventLogTransport
from .tasks import PeriodicTask
from .telemetry.staging import TelemetrySession
from .telemetry.synthesizer import TelemetrySynthesizer, telemetry_seed
from .temporal.clock import LogicalClock, MissionClock
from .temporal.phases import PhaseResolver, PhaseTable, STANDARD_PHASE_TABLE


logger = logging.getLogger(__name__)

DEFAULT_REMINDER_LEAD_SECONDS = 600.0


class LaunchDayDashboard:

    def __init__(
        self,
        context: MissionContext,
        transport: EventLogTransport,
        actor: ActorContext,
        storage: Optional[KeyValueStore] = None,
        delivery: Optional[NotificationDelivery] = None,
        clock: Optional[LogicalClock] = None,
        config: Optional[SyncConfig] = None,
        phases: PhaseTable = STANDARD_PHASE_TABLE,
        kinds: Iterable[LogKind] = DEFAULT_KINDS
    ):
        self.context = context
        self.clock = clock or LogicalClock.live()
        self.config = config or SyncConfig()
        storage = storage or MemoryKeyValueStore()

        self.mission_clock = MissionClock(context.reference_instant, self.clock)
        self.resolver = PhaseResolver(phases)
        self.telemetry = TelemetrySession(
            context.event_id,
            TelemetrySynthesizer(telemetry_seed(context.event_id)),
            history_size=self.config.telemetry_history_size,
            session_id=actor.session_id,
            phases=phases,
        )
        self.sync = SyncClient(context, transport, self.clock, self.config, kinds)
        self.writes = OptimisticWriteBuffer(self.sync, storage, actor, self.clock)
        self.reminders = NotificationScheduler(
            storage,
            delivery or AsyncioNotificationDelivery(self.clock),
            self.clock,
            target_resolver=self._current_target,
        )
        self._tick_task: Optional[PeriodicTask] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> List[ScheduleResult]:
        """Start polling and the mission tick; re-arm persisted reminders."""
        self.tick()
        self.sync.start()
        if self._tick_task is None or not self._tick_task.running:
            self._tick_task = PeriodicTask(
                name=f"mission:{self.context.event_id}",
                interval=self.config.mission_tick_seconds,
                callback=self.tick,
                run_immediately=False,
            )
            self._tick_task.start()
        logger.info("Dashboard started for %s", self.context.event_id)
        return await self.reminders.load()

    async def stop(self) -> None:
        """
        Idempotent teardown. Persisted reminders survive it.

        The dashboard owns its transport and closes it here.
        """
        if self._tick_task is not None:
            await self._tick_task.stop()
            self._tick_task = None
        await self.sync.aclose()
        self.reminders.cancel_all()

    # =========================================================================
    # MISSION TICK
    # =========================================================================

    def tick(self) -> TelemetryPoint:
        reading = self.mission_clock.read()
        published = self._latest_published_telemetry()
        if published is not None:
            latest = self.telemetry.latest
            if latest is None or published.t_elapsed_seconds > latest.t_elapsed_seconds:
                return self.telemetry.record(published)
            return latest
        return self.telemetry.observe(reading.elapsed_seconds)

    def _latest_published_telemetry(self) -> Optional[TelemetryPoint]:
        if LogKind.TELEMETRY not in self.sync.kinds:
            return None
        records = self.sync.view(LogKind.TELEMETRY).log.confirmed
        if not records:
            return None
        try:
            return TelemetryPoint.from_dict(records[-1].payload)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Ignoring malformed telemetry record %d: %s", records[-1].id, e)
            return None

    # =========================================================================
    # USER ACTIONS
    # =========================================================================

    async def send_chat(self, message: str) -> WriteOutcome:
        return await self.writes.send_chat(message)

    async def react(self, emoji: str) -> WriteOutcome:
        phase = self.resolver.resolve(self.mission_clock.read()).phase
        return await self.writes.react(emoji, phase.id if phase else None)

    async def vote(self, poll_id: str, option_index: int) -> WriteOutcome:
        return await self.writes.vote(poll_id, option_index)

    async def remind_me(
        self,
        label: str = "Liftoff",
        lead_seconds: float = DEFAULT_REMINDER_LEAD_SECONDS
    ) -> ScheduleResult:
        return await self.reminders.opt_in(NotificationSchedule(
            event_id=self.context.event_id,
            label=label,
            target_instant=self.context.reference_instant,
            lead_seconds=lead_seconds,
        ))

    async def retarget(self, reference_instant: datetime) -> List[ScheduleResult]:
        """Apply a launch slip: new T-0, recomputed reminders."""
        self.context = replace(self.context, reference_instant=reference_instant)
        self.mission_clock = MissionClock(self.context.reference_instant, self.clock)
        logger.info("Event %s retargeted to %s", self.context.event_id, self.context.reference_instant.isoformat())
        return await self.reminders.load()

    def _current_target(self, schedule: NotificationSchedule) -> Optional[datetime]:
        if schedule.event_id != self.context.event_id:
            return None
        return self.context.reference_instant

    # =========================================================================
    # RENDERING
    # =========================================================================

    def snapshot(self) -> DashboardSnapshot:
        now = self.clock.now()
        reading = self.mission_clock.read(now)
        kinds = self.sync.kinds

        weather = None
        if LogKind.WEATHER in kinds:
            weather = self.sync.view(LogKind.WEATHER).snapshot

        chat = self.sync.view(LogKind.CHAT).log.entries if LogKind.CHAT in kinds else ()

        return DashboardSnapshot(
            event=self.context,
            generated_at=now,
            mission_time=reading,
            phase=self.resolver.resolve(reading),
            telemetry=self.telemetry.latest,
            telemetry_history=self.telemetry.history,
            summary=None if reading.is_countdown else self.telemetry.summary(reading.elapsed_seconds),
            chat=chat,
            reaction_totals=self.writes.tally.totals(),
            reaction_recent=self.writes.tally.recent(),
            polls=self.writes.polls(),
            voted=self.writes.votes.voted(),
            weather=weather,
            cooldowns={
                kind: self.sync.cooldown_remaining(kind)
                for kind in kinds if kind.accepts_actor_writes
            },
            health={
                kind: KindHealth(
                    self.sync.view(kind).last_success_at,
                    self.sync.view(kind).consecutive_failures,
                    self.sync.view(kind).consecutive_timeouts,
                )
                for kind in kinds
            },
            last_error=self.writes.last_error,
        )

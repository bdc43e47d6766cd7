"""
Milestone Announcer

Posts one milestone chat message per phase entered, per event.
"""

from __future__ import annotations
from datetime import datetime
import logging
from typing import Dict, List, Optional

from ..contracts.base import MissionContext
from ..contracts.records import InteractionRecord
from ..temporal.clock import elapsed
from ..temporal.phases import PhaseResolver, STANDARD_PHASE_TABLE
from .event_log import InMemoryEventLogStore


logger = logging.getLogger(__name__)


class MilestoneAnnouncer:
    """
    Tracks the last phase announced for each event.

    The first observation of an event announces only its current phase;
    later observations announce every phase entered since, in order.
    A backwards clock step announces nothing.
    """

    def __init__(self, store: InMemoryEventLogStore, resolver: Optional[PhaseResolver] = None):
        self._store = store
        self._resolver = resolver or PhaseResolver(STANDARD_PHASE_TABLE)
        self._announced: Dict[str, int] = {}

    def observe(self, context: MissionContext, now: datetime) -> List[InteractionRecord]:
        progress = self._resolver.resolve(elapsed(now, context.reference_instant))
        if progress.phase is None:
            return []

        last = self._announced.get(context.event_id)
        if last is not None and progress.index <= last:
            return []

        first = progress.index if last is None else last + 1
        posted = []
        for index in range(first, progress.index + 1):
            phase = self._resolver.table[index]
            posted.append(self._store.post_system_message(
                context.event_id,
                f"{phase.icon} {phase.label}: {phase.short_description}",
                milestone=True,
            ))
            logger.info("Milestone %s announced for %s", phase.id, context.event_id)

        self._announced[context.event_id] = progress.index
        return posted

    def observe_all(self, now: datetime) -> List[InteractionRecord]:
        posted = []
        for context in self._store.events():
            posted.extend(self.observe(context, now))
        return posted

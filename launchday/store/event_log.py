"""
Event Log Store
===============

Append-only per-event logs, one per LogKind, with server-assigned ids.

INVARIANTS:
- No updates or deletes - append only
- Every record has a monotonic integer id; id order is the only order
- read() has no side effects
- A successful write is visible to the next read

WRITE PATH:
===========
  1. kind check     READ_ONLY_KIND for weather/telemetry
  2. validation     payload shape, actor identity, poll state
  3. rate limit     per (actor bucket, event, kind)
  4. append         record + aggregate totals returned

Validation runs before the limiter, so a rejected payload never costs
the actor quota.
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..contracts.base import ActorContext, ErrorCode, LogKind, MissionContext
from ..contracts.records import InteractionRecord, PollState, ReadBatch, WriteOutcome
from ..temporal.clock import LogicalClock
from .rate_limit import RateLimiter
from .weather import WeatherOracle


logger = logging.getLogger(__name__)

DEFAULT_READ_LIMIT = 200
MAX_READ_LIMIT = 500

MAX_CHAT_LENGTH = 500
SYSTEM_USER_NAME = "Mission Control"
ALLOWED_REACTIONS: Tuple[str, ...] = ('rocket', 'fire', 'star', 'heart', '100')
RECENT_REACTION_WINDOW_S = 30.0


class EventLogStore:
    """
    Contract consumed by sync clients.

    read() is idempotent and side-effect free. write() never raises for
    a rejected write; the rejection is returned as a WriteOutcome.
    """

    def read(
        self,
        event_id: str,
        kind: LogKind,
        cursor: Optional[int] = None,
        limit: Optional[int] = None
    ) -> ReadBatch:
        raise NotImplementedError

    def write(
        self,
        event_id: str,
        kind: LogKind,
        payload: Mapping[str, Any],
        actor: ActorContext
    ) -> WriteOutcome:
        raise NotImplementedError


@dataclass
class _Log:
    """One append-only log. ids is kept parallel to records for bisect."""
    records: List[InteractionRecord] = field(default_factory=list)
    ids: List[int] = field(default_factory=list)

    def append(self, record: InteractionRecord) -> None:
        self.records.append(record)
        self.ids.append(record.id)


@dataclass
class _Poll:
    state: PollState
    voters: Dict[str, int] = field(default_factory=dict)


class InMemoryEventLogStore(EventLogStore):
    """
    Reference store held in process memory.

    Event ids need not be registered to be read or written; registration
    only attaches a MissionContext (reference instant, site location).
    """

    def __init__(
        self,
        clock: Optional[LogicalClock] = None,
        rate_limiter: Optional[RateLimiter] = None,
        weather: Optional[WeatherOracle] = None,
        default_read_limit: int = DEFAULT_READ_LIMIT
    ):
        self._clock = clock or LogicalClock.live()
        self._limiter = rate_limiter or RateLimiter()
        self._weather = weather or WeatherOracle()
        self._default_read_limit = default_read_limit

        self._events: Dict[str, MissionContext] = {}
        self._logs: Dict[Tuple[str, LogKind], _Log] = {}
        self._polls: Dict[str, Dict[str, _Poll]] = {}
        self._last_id = 0

    @property
    def clock(self) -> LogicalClock:
        return self._clock

    # =========================================================================
    # EVENTS & POLLS
    # =========================================================================

    def register_event(self, context: MissionContext) -> MissionContext:
        self._events[context.event_id] = context
        logger.info("Registered event %s (T-0 %s)", context.event_id, context.reference_instant.isoformat())
        return context

    def get_event(self, event_id: str) -> Optional[MissionContext]:
        return self._events.get(event_id)

    def events(self) -> Tuple[MissionContext, ...]:
        return tuple(self._events.values())

    def sweep_rate_limits(self, now: Optional[datetime] = None) -> int:
        return self._limiter.sweep(now or self._clock.now())

    def create_poll(
        self,
        event_id: str,
        question: str,
        options: Sequence[str],
        poll_id: Optional[str] = None
    ) -> PollState:
        state = PollState(
            poll_id=poll_id or f"poll-{uuid.uuid4().hex[:8]}",
            question=question,
            options=tuple(options),
        )
        polls = self._polls.setdefault(event_id, {})
        if state.poll_id in polls:
            raise ValueError(f"Poll {state.poll_id} already exists for {event_id}")
        polls[state.poll_id] = _Poll(state=state)
        return state

    def close_poll(self, event_id: str, poll_id: str) -> PollState:
        entry = self._polls.get(event_id, {}).get(poll_id)
        if entry is None:
            raise KeyError(poll_id)
        entry.state = PollState(
            poll_id=entry.state.poll_id,
            question=entry.state.question,
            options=entry.state.options,
            votes=entry.state.votes,
            is_active=False,
        )
        return entry.state

    def polls(self, event_id: str) -> Tuple[PollState, ...]:
        return tuple(p.state for p in self._polls.get(event_id, {}).values())

    # =========================================================================
    # SYSTEM WRITES (no actor, no rate limit)
    # =========================================================================

    def post_system_message(self, event_id: str, message: str, milestone: bool = False) -> InteractionRecord:
        return self._append(event_id, LogKind.CHAT, {
            'user_name': SYSTEM_USER_NAME,
            'message': message,
            'type': 'milestone' if milestone else 'system',
        }, actor_id=None)

    def publish(self, event_id: str, kind: LogKind, payload: Mapping[str, Any]) -> InteractionRecord:
        """Append to a system-only log (weather, telemetry)."""
        if kind.accepts_actor_writes:
            raise ValueError(f"{kind.value} is written by actors, not published")
        return self._append(event_id, kind, dict(payload), actor_id=None)

    # =========================================================================
    # READ
    # =========================================================================

    def read(
        self,
        event_id: str,
        kind: LogKind,
        cursor: Optional[int] = None,
        limit: Optional[int] = None
    ) -> ReadBatch:
        """
        Bounded, id-ordered read.

        Without a cursor: the newest `limit` records.
        With a cursor: the first `limit` records with id > cursor.
        """
        limit = self._default_read_limit if limit is None else max(1, min(int(limit), MAX_READ_LIMIT))
        log = self._logs.get((event_id, kind)) or _Log()

        if cursor is None:
            records = log.records[-limit:]
        else:
            start = bisect_right(log.ids, cursor)
            records = log.records[start:start + limit]

        next_cursor = records[-1].id if records else (cursor or 0)
        if cursor is not None:
            next_cursor = max(next_cursor, cursor)

        return ReadBatch(
            event_id=event_id,
            kind=kind,
            records=tuple(records),
            totals=self._totals(event_id, kind),
            snapshot=self._snapshot(event_id, kind),
            cursor=next_cursor,
        )

    # =========================================================================
    # WRITE
    # =========================================================================

    def write(
        self,
        event_id: str,
        kind: LogKind,
        payload: Mapping[str, Any],
        actor: ActorContext
    ) -> WriteOutcome:
        if not kind.accepts_actor_writes:
            return WriteOutcome.invalid(f"{kind.value} is read-only", ErrorCode.READ_ONLY_KIND)
        if not isinstance(payload, Mapping):
            return WriteOutcome.invalid("Payload must be an object")

        if kind == LogKind.CHAT:
            checked = self._validate_chat(payload, actor)
        elif kind == LogKind.REACTION:
            checked = self._validate_reaction(payload)
        else:
            checked = self._validate_vote(event_id, payload, actor)

        if isinstance(checked, WriteOutcome):
            logger.warning("Rejected %s write on %s: %s", kind.value, event_id, checked.reason)
            return checked

        now = self._clock.now()
        decision = self._limiter.check((actor.bucket_key, event_id, kind), now)
        if not decision.allowed:
            return WriteOutcome.rate_limited(decision.retry_after_seconds)

        if kind == LogKind.POLL:
            self._apply_vote(event_id, checked, actor)

        record = self._append(event_id, kind, checked, actor_id=actor.actor_id or actor.session_id, at=now)
        return WriteOutcome.success(record, self._totals(event_id, kind))

    def _validate_chat(self, payload: Mapping[str, Any], actor: ActorContext):
        if not actor.is_identified:
            return WriteOutcome.invalid("Sign in to chat", ErrorCode.ACTOR_REQUIRED)
        message = payload.get('message')
        if not isinstance(message, str) or not message.strip():
            return WriteOutcome.invalid("Message cannot be empty")
        message = message.strip()
        if len(message) > MAX_CHAT_LENGTH:
            return WriteOutcome.invalid(f"Message exceeds {MAX_CHAT_LENGTH} characters")
        user_name = payload.get('user_name') or actor.display_name or "Anonymous"
        return {'user_name': str(user_name), 'message': message, 'type': 'chat'}

    def _validate_reaction(self, payload: Mapping[str, Any]):
        emoji = payload.get('emoji')
        if emoji not in ALLOWED_REACTIONS:
            return WriteOutcome.invalid(f"Unknown reaction {emoji!r}")
        phase = payload.get('phase')
        return {'emoji': emoji, 'phase': phase if isinstance(phase, str) else None}

    def _validate_vote(self, event_id: str, payload: Mapping[str, Any], actor: ActorContext):
        if not actor.is_identified:
            return WriteOutcome.invalid("Sign in to vote", ErrorCode.ACTOR_REQUIRED)
        poll_id = payload.get('poll_id')
        entry = self._polls.get(event_id, {}).get(poll_id) if isinstance(poll_id, str) else None
        if entry is None:
            return WriteOutcome.invalid(f"Unknown poll {poll_id!r}", ErrorCode.UNKNOWN_POLL)
        if not entry.state.is_active:
            return WriteOutcome.invalid("Poll is closed", ErrorCode.POLL_CLOSED)
        option = payload.get('option_index')
        if isinstance(option, bool) or not isinstance(option, int) or not 0 <= option < len(entry.state.options):
            return WriteOutcome.invalid(f"Invalid option {option!r}")
        if actor.bucket_key in entry.voters:
            return WriteOutcome.invalid("Already voted in this poll", ErrorCode.ALREADY_VOTED)
        return {'poll_id': poll_id, 'option_index': option}

    def _apply_vote(self, event_id: str, vote: Mapping[str, Any], actor: ActorContext) -> None:
        entry = self._polls[event_id][vote['poll_id']]
        option = vote['option_index']
        entry.voters[actor.bucket_key] = option
        votes = dict(entry.state.votes)
        votes[option] = votes.get(option, 0) + 1
        entry.state = entry.state.with_votes(votes)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _append(
        self,
        event_id: str,
        kind: LogKind,
        payload: Mapping[str, Any],
        actor_id: Optional[str],
        at: Optional[datetime] = None
    ) -> InteractionRecord:
        # The only mutation of a log
        self._last_id += 1
        record = InteractionRecord(
            id=self._last_id,
            event_id=event_id,
            kind=kind,
            payload=dict(payload),
            created_at=at or self._clock.now(),
            actor_id=actor_id,
        )
        self._logs.setdefault((event_id, kind), _Log()).append(record)
        logger.debug("Appended %s #%d to %s", kind.value, record.id, event_id)
        return record

    def _totals(self, event_id: str, kind: LogKind) -> Optional[Dict[str, Any]]:
        if kind == LogKind.REACTION:
            return self._reaction_totals(event_id)
        if kind == LogKind.POLL:
            return {'polls': {
                p.poll_id: {str(k): v for k, v in sorted(p.votes.items())}
                for p in self.polls(event_id)
            }}
        return None

    def _reaction_totals(self, event_id: str) -> Dict[str, Any]:
        log = self._logs.get((event_id, LogKind.REACTION)) or _Log()
        totals = {emoji: 0 for emoji in ALLOWED_REACTIONS}
        recent = {emoji: 0 for emoji in ALLOWED_REACTIONS}
        window_start = self._clock.now() - timedelta(seconds=RECENT_REACTION_WINDOW_S)
        for record in log.records:
            emoji = record.payload['emoji']
            totals[emoji] += 1
            if record.created_at >= window_start:
                recent[emoji] += 1
        return {'totals': totals, 'recent': recent}

    def _snapshot(self, event_id: str, kind: LogKind) -> Optional[Dict[str, Any]]:
        if kind == LogKind.POLL:
            return {'polls': [p.to_dict() for p in self.polls(event_id)]}
        if kind == LogKind.WEATHER:
            context = self._events.get(event_id)
            location = context.location if context else None
            return self._weather.report(event_id, location, self._clock.now()).to_dict()
        return None


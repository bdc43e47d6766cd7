"""
Optimistic Writes
=================

Local mutations shown before the server confirms them, and the rules for
reconciling them with authoritative state.

RECONCILIATION RULES:
=====================
  Chat      provisional entry until the next read that began after the
            write was acknowledged; removed at once on rejection
  Reaction  +1 delta over the snapshot; a rejection rolls back exactly
            that delta; an acknowledged delta is superseded by the first
            snapshot read that began after the acknowledgement
  Vote      local choice persisted before sending; counts always come
            from the server (read snapshot or vote response)
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
import itertools
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..contracts.base import ActorContext, Error, ErrorCode, LogKind
from ..contracts.records import PollState, ReadBatch, WriteOutcome, WriteStatus, votes_from_wire
from ..storage import KeyValueStore
from ..store.event_log import ALLOWED_REACTIONS, MAX_CHAT_LENGTH
from ..temporal.clock import LogicalClock
from .client import SyncClient
from .merge import Provisional, new_local_id


logger = logging.getLogger(__name__)

_delta_counter = itertools.count(1)


# =============================================================================
# REACTIONS
# =============================================================================

@dataclass
class PendingDelta:
    delta_id: int
    emoji: str
    amount: int
    created_at: datetime
    acknowledged_at: Optional[datetime] = None


class ReactionTally:
    """Authoritative reaction totals with optimistic deltas overlaid."""

    def __init__(self):
        self._totals: Dict[str, int] = {}
        self._recent: Dict[str, int] = {}
        self._as_of: Optional[datetime] = None
        self._deltas: List[PendingDelta] = []

    @property
    def pending(self) -> Tuple[PendingDelta, ...]:
        return tuple(self._deltas)

    def add(self, emoji: str, at: datetime, amount: int = 1) -> PendingDelta:
        delta = PendingDelta(next(_delta_counter), emoji, amount, at)
        self._deltas.append(delta)
        return delta

    def acknowledge(self, delta_id: int, at: datetime) -> bool:
        for delta in self._deltas:
            if delta.delta_id == delta_id:
                delta.acknowledged_at = at
                return True
        return False

    def rollback(self, delta_id: int) -> bool:
        """Remove exactly one delta; the snapshot is untouched."""
        before = len(self._deltas)
        self._deltas = [d for d in self._deltas if d.delta_id != delta_id]
        return len(self._deltas) < before

    def apply_snapshot(self, totals: Optional[Mapping[str, Any]], read_started_at: datetime) -> bool:
        """
        Replace the base totals with a server snapshot.

        A snapshot from a read that began before the current one is stale
        and ignored. Returns True if applied.
        """
        if totals is None:
            return False
        if self._as_of is not None and read_started_at < self._as_of:
            return False

        self._totals = {k: int(v) for k, v in (totals.get('totals') or {}).items()}
        self._recent = {k: int(v) for k, v in (totals.get('recent') or {}).items()}
        self._as_of = read_started_at
        self._deltas = [
            d for d in self._deltas
            if d.acknowledged_at is None or d.acknowledged_at > read_started_at
        ]
        return True

    def totals(self) -> Dict[str, int]:
        merged = dict(self._totals)
        for delta in self._deltas:
            merged[delta.emoji] = merged.get(delta.emoji, 0) + delta.amount
        return merged

    def recent(self) -> Dict[str, int]:
        merged = dict(self._recent)
        for delta in self._deltas:
            merged[delta.emoji] = merged.get(delta.emoji, 0) + delta.amount
        return merged


# =============================================================================
# VOTES
# =============================================================================

class VoteBook:
    """
    Persisted "already voted" set for one event.

    Advisory only: the server's one-vote-per-actor rule is authoritative.
    """

    def __init__(self, storage: KeyValueStore, event_id: str):
        self._storage = storage
        self.key = f"poll-votes-{event_id}"

    def _load(self) -> Dict[str, int]:
        raw = self._storage.get(self.key) or {}
        return {str(k): int(v) for k, v in raw.items()} if isinstance(raw, dict) else {}

    def voted(self) -> Dict[str, int]:
        return self._load()

    def has_voted(self, poll_id: str) -> bool:
        return poll_id in self._load()

    def choice(self, poll_id: str) -> Optional[int]:
        return self._load().get(poll_id)

    def record(self, poll_id: str, option_index: int) -> None:
        votes = self._load()
        votes[poll_id] = option_index
        self._storage.set(self.key, votes)

    def forget(self, poll_id: str) -> None:
        votes = self._load()
        if votes.pop(poll_id, None) is not None:
            self._storage.set(self.key, votes)


# =============================================================================
# WRITE BUFFER
# =============================================================================

class OptimisticWriteBuffer:
    """
    User-facing write operations for one actor on one event.

    Every method returns the WriteOutcome; the latest rejection is also
    kept on last_error for display.
    """

    def __init__(
        self,
        sync: SyncClient,
        storage: KeyValueStore,
        actor: ActorContext,
        clock: Optional[LogicalClock] = None
    ):
        self._sync = sync
        self._actor = actor
        self._clock = clock or sync.clock
        self.tally = ReactionTally()
        self.votes = VoteBook(storage, sync.context.event_id)
        self._vote_counts: Dict[str, Tuple[Dict[int, int], datetime]] = {}
        self.last_error: Optional[Error] = None

        if LogKind.REACTION in sync.kinds:
            sync.add_listener(LogKind.REACTION, self._on_reaction_batch)

    @property
    def actor(self) -> ActorContext:
        return self._actor

    def _on_reaction_batch(self, batch: ReadBatch, read_started_at: datetime) -> None:
        self.tally.apply_snapshot(batch.totals, read_started_at)

    def _fail(self, kind: LogKind, outcome: WriteOutcome) -> WriteOutcome:
        if outcome.status != WriteStatus.NETWORK_FAILURE:
            self.last_error = Error(
                code=outcome.error_code or ErrorCode.INVALID_PAYLOAD,
                message=outcome.reason or outcome.status.value,
                timestamp=self._clock.now(),
            ).with_context('kind', kind.value)
        return outcome

    def _cooling_down(self, kind: LogKind) -> Optional[WriteOutcome]:
        remaining = self._sync.cooldown_remaining(kind)
        if remaining > 0:
            return WriteOutcome.rate_limited(remaining)
        return None

    # -------------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------------

    async def send_chat(self, message: str) -> WriteOutcome:
        text = (message or '').strip()
        if not text:
            return self._fail(LogKind.CHAT, WriteOutcome.invalid("Message cannot be empty"))
        if len(text) > MAX_CHAT_LENGTH:
            return self._fail(LogKind.CHAT, WriteOutcome.invalid(f"Message exceeds {MAX_CHAT_LENGTH} characters"))

        blocked = self._cooling_down(LogKind.CHAT)
        if blocked:
            return self._fail(LogKind.CHAT, blocked)

        payload = {
            'user_name': self._actor.display_name or "Anonymous",
            'message': text,
            'type': 'chat',
        }
        log = self._sync.view(LogKind.CHAT).log
        entry = log.add_provisional(Provisional(
            local_id=new_local_id(),
            kind=LogKind.CHAT,
            payload=payload,
            pending_since=self._clock.now(),
            actor_id=self._actor.actor_id,
        ))

        outcome = await self._sync.write(LogKind.CHAT, payload, self._actor)
        if outcome.is_success:
            log.acknowledge(entry.local_id, self._clock.now(), outcome.record)
            self.last_error = None
        else:
            log.drop_provisional(entry.local_id)
            self._fail(LogKind.CHAT, outcome)
        return outcome

    # -------------------------------------------------------------------------
    # Reactions
    # -------------------------------------------------------------------------

    async def react(self, emoji: str, phase: Optional[str] = None) -> WriteOutcome:
        if emoji not in ALLOWED_REACTIONS:
            return self._fail(LogKind.REACTION, WriteOutcome.invalid(f"Unknown reaction {emoji!r}"))

        blocked = self._cooling_down(LogKind.REACTION)
        if blocked:
            return self._fail(LogKind.REACTION, blocked)

        delta = self.tally.add(emoji, self._clock.now())
        outcome = await self._sync.write(LogKind.REACTION, {'emoji': emoji, 'phase': phase}, self._actor)

        if outcome.is_success:
            acked_at = self._clock.now()
            self.tally.acknowledge(delta.delta_id, acked_at)
            self.tally.apply_snapshot(outcome.totals, acked_at)
            self.last_error = None
        else:
            self.tally.rollback(delta.delta_id)
            self._fail(LogKind.REACTION, outcome)
        return outcome

    # -------------------------------------------------------------------------
    # Polls
    # -------------------------------------------------------------------------

    async def vote(self, poll_id: str, option_index: int) -> WriteOutcome:
        """
        Cast one vote.

        A poll already in the local vote book is not sent again.
        """
        if self.votes.has_voted(poll_id):
            return WriteOutcome.invalid("Already voted in this poll", ErrorCode.ALREADY_VOTED)

        blocked = self._cooling_down(LogKind.POLL)
        if blocked:
            return self._fail(LogKind.POLL, blocked)

        self.votes.record(poll_id, option_index)
        outcome = await self._sync.write(
            LogKind.POLL, {'poll_id': poll_id, 'option_index': option_index}, self._actor
        )

        if outcome.is_success:
            counts = ((outcome.totals or {}).get('polls') or {}).get(poll_id)
            if counts is not None:
                self._vote_counts[poll_id] = (votes_from_wire(counts), self._clock.now())
            self.last_error = None
        elif outcome.error_code == ErrorCode.ALREADY_VOTED:
            # The server already holds a vote from this actor
            pass
        else:
            self.votes.forget(poll_id)
            self._fail(LogKind.POLL, outcome)
        return outcome

    def polls(self) -> Tuple[PollState, ...]:
        """Polls from the latest snapshot, with fresher vote-response counts applied."""
        view = self._sync.view(LogKind.POLL) if LogKind.POLL in self._sync.kinds else None
        if view is None or not view.snapshot:
            return ()

        polls = []
        for raw in view.snapshot.get('polls') or ():
            poll = PollState.from_dict(raw)
            fresher = self._vote_counts.get(poll.poll_id)
            if fresher is not None:
                counts, as_of = fresher
                if view.last_read_started_at is None or as_of > view.last_read_started_at:
                    poll = poll.with_votes(counts)
            polls.append(poll)
        return tuple(polls)

"""
Interaction Record Contracts

Wire-level types exchanged between the event log store and its clients.

INVARIANTS:
===========
- Server ids are positive integers; their order is the authoritative order
- Client-side provisional ids are strings and never enter the server id space
- WriteOutcome is data: rejections are returned, never raised
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional, Tuple
from enum import Enum

from .base import ErrorCode, LogKind, ensure_utc, parse_instant


@dataclass(frozen=True)
class InteractionRecord:
    """One confirmed entry of an append-only per-event log."""
    id: int
    event_id: str
    kind: LogKind
    payload: Mapping[str, Any]
    created_at: datetime
    actor_id: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.id, bool) or not isinstance(self.id, int) or self.id < 1:
            raise ValueError(f"Server record id must be a positive int, got {self.id!r}")
        object.__setattr__(self, 'created_at', ensure_utc(self.created_at))

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'event_id': self.event_id,
            'kind': self.kind.value,
            'payload': dict(self.payload),
            'created_at': self.created_at.isoformat(),
            'actor_id': self.actor_id,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> 'InteractionRecord':
        return InteractionRecord(
            id=int(data['id']),
            event_id=data['event_id'],
            kind=LogKind(data['kind']),
            payload=dict(data.get('payload') or {}),
            created_at=parse_instant(data['created_at']),
            actor_id=data.get('actor_id'),
        )


@dataclass(frozen=True)
class ReadBatch:
    """
    Result of one idempotent read.

    records: bounded, ordered by id
    totals: aggregate counters (reaction totals, poll vote counts)
    snapshot: non-record state (poll definitions, weather report)
    cursor: highest record id the reader has now seen
    """
    event_id: str
    kind: LogKind
    records: Tuple[InteractionRecord, ...] = field(default_factory=tuple)
    totals: Optional[Mapping[str, Any]] = None
    snapshot: Optional[Mapping[str, Any]] = None
    cursor: int = 0

    def to_dict(self) -> dict:
        return {
            'event_id': self.event_id,
            'kind': self.kind.value,
            'records': [r.to_dict() for r in self.records],
            'totals': self.totals,
            'snapshot': self.snapshot,
            'cursor': self.cursor,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> 'ReadBatch':
        return ReadBatch(
            event_id=data['event_id'],
            kind=LogKind(data['kind']),
            records=tuple(InteractionRecord.from_dict(r) for r in data.get('records') or ()),
            totals=data.get('totals'),
            snapshot=data.get('snapshot'),
            cursor=int(data.get('cursor') or 0),
        )


# =============================================================================
# WRITE OUTCOMES
# =============================================================================

class WriteStatus(Enum):
    SUCCESS = "success"
    RATE_LIMITED = "rejected_rate_limited"
    INVALID = "rejected_invalid"
    NETWORK_FAILURE = "network_failure"


@dataclass(frozen=True)
class WriteOutcome:
    """
    Tagged result of a write.

    RATE_LIMITED carries retry_after_seconds.
    INVALID carries reason and error_code; it is not retryable.
    NETWORK_FAILURE is retried by the next natural poll or user action.
    """
    status: WriteStatus
    record: Optional[InteractionRecord] = None
    totals: Optional[Mapping[str, Any]] = None
    retry_after_seconds: Optional[float] = None
    reason: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    @staticmethod
    def success(record: InteractionRecord, totals: Optional[Mapping[str, Any]] = None) -> 'WriteOutcome':
        return WriteOutcome(status=WriteStatus.SUCCESS, record=record, totals=totals)

    @staticmethod
    def rate_limited(retry_after_seconds: float) -> 'WriteOutcome':
        return WriteOutcome(
            status=WriteStatus.RATE_LIMITED,
            retry_after_seconds=max(0.0, float(retry_after_seconds)),
            reason="Too many writes, retry later",
            error_code=ErrorCode.RATE_LIMITED,
        )

    @staticmethod
    def invalid(reason: str, error_code: ErrorCode = ErrorCode.INVALID_PAYLOAD) -> 'WriteOutcome':
        return WriteOutcome(status=WriteStatus.INVALID, reason=reason, error_code=error_code)

    @staticmethod
    def network_failure(reason: str = "Network failure", timed_out: bool = False) -> 'WriteOutcome':
        return WriteOutcome(
            status=WriteStatus.NETWORK_FAILURE,
            reason=reason,
            error_code=ErrorCode.REQUEST_TIMEOUT if timed_out else ErrorCode.NETWORK_FAILURE,
        )

    @property
    def is_success(self) -> bool:
        return self.status == WriteStatus.SUCCESS

    @property
    def is_retryable(self) -> bool:
        return self.status in (WriteStatus.RATE_LIMITED, WriteStatus.NETWORK_FAILURE)

    def to_dict(self) -> dict:
        return {
            'status': self.status.value,
            'record': self.record.to_dict() if self.record else None,
            'totals': self.totals,
            'retry_after_seconds': self.retry_after_seconds,
            'reason': self.reason,
            'error_code': self.error_code.name if self.error_code else None,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> 'WriteOutcome':
        record = data.get('record')
        code = data.get('error_code')
        retry_after = data.get('retry_after_seconds')
        return WriteOutcome(
            status=WriteStatus(data['status']),
            record=InteractionRecord.from_dict(record) if record else None,
            totals=data.get('totals'),
            retry_after_seconds=float(retry_after) if retry_after is not None else None,
            reason=data.get('reason'),
            error_code=ErrorCode[code] if code else None,
        )


# =============================================================================
# POLLS
# =============================================================================

@dataclass(frozen=True)
class PollState:
    """
    A poll and its authoritative vote counts.

    Counts only ever come from the server; clients never sum local votes.
    """
    poll_id: str
    question: str
    options: Tuple[str, ...]
    votes: Mapping[int, int] = field(default_factory=dict)
    is_active: bool = True

    def __post_init__(self):
        if len(self.options) < 2:
            raise ValueError("A poll needs at least two options")

    @property
    def total_votes(self) -> int:
        return sum(self.votes.values())

    def count_for(self, option_index: int) -> int:
        return self.votes.get(option_index, 0)

    def percentages(self) -> Dict[int, int]:
        total = self.total_votes
        return {
            i: (round(self.count_for(i) * 100 / total) if total else 0)
            for i in range(len(self.options))
        }

    def with_votes(self, votes: Mapping[int, int]) -> 'PollState':
        return PollState(
            poll_id=self.poll_id,
            question=self.question,
            options=self.options,
            votes=dict(votes),
            is_active=self.is_active,
        )

    def to_dict(self) -> dict:
        return {
            'poll_id': self.poll_id,
            'question': self.question,
            'options': list(self.options),
            'votes': {str(k): v for k, v in sorted(self.votes.items())},
            'is_active': self.is_active,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> 'PollState':
        return PollState(
            poll_id=data['poll_id'],
            question=data['question'],
            options=tuple(data['options']),
            votes=votes_from_wire(data.get('votes') or {}),
            is_active=bool(data.get('is_active', True)),
        )


def votes_from_wire(raw: Mapping[Any, Any]) -> Dict[int, int]:
    """JSON object keys are strings; vote maps are keyed by option index."""
    return {int(k): int(v) for k, v in raw.items()}


# =============================================================================
# NOTIFICATION SCHEDULES
# =============================================================================

@dataclass(frozen=True)
class NotificationSchedule:
    """A reminder the user opted into, persisted client-locally."""
    event_id: str
    label: str
    target_instant: datetime
    lead_seconds: float

    def __post_init__(self):
        if self.lead_seconds < 0:
            raise ValueError("lead_seconds must be non-negative")
        object.__setattr__(self, 'target_instant', ensure_utc(self.target_instant))

    @property
    def fire_at(self) -> datetime:
        return self.target_instant - timedelta(seconds=self.lead_seconds)

    def retargeted(self, target_instant: datetime) -> 'NotificationSchedule':
        return NotificationSchedule(
            event_id=self.event_id,
            label=self.label,
            target_instant=target_instant,
            lead_seconds=self.lead_seconds,
        )

    def to_dict(self) -> dict:
        return {
            'event_id': self.event_id,
            'label': self.label,
            'target_instant': self.target_instant.isoformat(),
            'lead_seconds': self.lead_seconds,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> 'NotificationSchedule':
        return NotificationSchedule(
            event_id=data['event_id'],
            label=data['label'],
            target_instant=parse_instant(data['target_instant']),
            lead_seconds=float(data['lead_seconds']),
        )

"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    No silent fallbacks - every error state is enumerated.
    """
    # Write path rejections
    RATE_LIMITED = auto()
    INVALID_PAYLOAD = auto()
    ACTOR_REQUIRED = auto()
    READ_ONLY_KIND = auto()
    UNKNOWN_POLL = auto()
    POLL_CLOSED = auto()
    ALREADY_VOTED = auto()

    # Transport errors
    NETWORK_FAILURE = auto()
    REQUEST_TIMEOUT = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )

    def to_dict(self) -> dict:
        return {
            'code': self.code.name,
            'message': self.message,
            'timestamp': self.timestamp.isoformat(),
            'context': dict(self.context),
        }


# =============================================================================
# TEMPORAL HELPERS (All timestamps are UTC, never local time)
# =============================================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(iso_string: str) -> datetime:
    return ensure_utc(datetime.fromisoformat(iso_string.replace('Z', '+00:00')))


# =============================================================================
# LOG KINDS
# =============================================================================

class LogKind(Enum):
    """
    Logical append-only logs kept per event.

    CHAT, REACTION and POLL accept actor writes.
    WEATHER and TELEMETRY are published by the system only.
    """
    CHAT = "chat"
    REACTION = "reaction"
    POLL = "poll"
    WEATHER = "weather"
    TELEMETRY = "telemetry"

    @property
    def accepts_actor_writes(self) -> bool:
        return self in (LogKind.CHAT, LogKind.REACTION, LogKind.POLL)


# =============================================================================
# IDENTITY TYPES (Immutable)
# =============================================================================

ANONYMOUS_BUCKET = "anonymous"


@dataclass(frozen=True)
class ActorContext:
    """
    Who is writing.

    Authentication happens elsewhere; this is only the identity the
    session layer vouched for. Either field may be absent.
    """
    actor_id: Optional[str] = None
    session_id: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def bucket_key(self) -> str:
        """Rate-limit and vote-uniqueness identity."""
        return self.actor_id or self.session_id or ANONYMOUS_BUCKET

    @property
    def is_identified(self) -> bool:
        return self.bucket_key != ANONYMOUS_BUCKET


@dataclass(frozen=True)
class MissionContext:
    """
    The event a component works on.

    Passed explicitly to every component; there is no ambient
    "current event".
    """
    event_id: str
    reference_instant: datetime
    name: Optional[str] = None
    location: Optional[str] = None

    def __post_init__(self):
        if not self.event_id or not isinstance(self.event_id, str):
            raise ValueError("event_id must be a non-empty string")
        object.__setattr__(self, 'reference_instant', ensure_utc(self.reference_instant))

    def to_dict(self) -> dict:
        return {
            'event_id': self.event_id,
            'reference_instant': self.reference_instant.isoformat(),
            'name': self.name,
            'location': self.location,
        }

"""
Rate Limiting
=============

Server-side sliding-window limiter keyed by (actor bucket, event, kind).

GUARANTEES:
- An exceeding write is rejected with a retry-after hint, never dropped
- Rejected attempts do not consume quota
- The limiter reads time only from the instant it is handed
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Deque, Dict, Mapping, Optional, Tuple

from ..contracts.base import LogKind


logger = logging.getLogger(__name__)

BucketKey = Tuple[str, str, LogKind]


@dataclass(frozen=True)
class RateLimitPolicy:
    """At most max_writes within any per_seconds window."""
    max_writes: int = 1
    per_seconds: float = 5.0

    def __post_init__(self):
        if self.max_writes < 1:
            raise ValueError("max_writes must be at least 1")
        if self.per_seconds <= 0:
            raise ValueError("per_seconds must be positive")


DEFAULT_POLICIES: Mapping[LogKind, RateLimitPolicy] = {
    LogKind.CHAT: RateLimitPolicy(max_writes=1, per_seconds=5.0),
    LogKind.REACTION: RateLimitPolicy(max_writes=1, per_seconds=2.0),
    LogKind.POLL: RateLimitPolicy(max_writes=1, per_seconds=5.0),
}


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: float = 0.0


@dataclass
class RateLimiter:
    """
    Sliding-window buckets of accepted write instants.

    Kinds without a policy are unlimited.
    """
    policies: Dict[LogKind, RateLimitPolicy] = field(default_factory=lambda: dict(DEFAULT_POLICIES))
    _buckets: Dict[BucketKey, Deque[datetime]] = field(default_factory=dict)

    def policy_for(self, kind: LogKind) -> Optional[RateLimitPolicy]:
        return self.policies.get(kind)

    def peek(self, key: BucketKey, now: datetime) -> RateLimitDecision:
        """Decide without recording anything."""
        policy = self.policy_for(key[2])
        if policy is None:
            return RateLimitDecision(allowed=True)

        bucket = self._prune(key, now, policy)
        if len(bucket) < policy.max_writes:
            return RateLimitDecision(allowed=True)

        oldest = bucket[0]
        retry_after = policy.per_seconds - (now - oldest).total_seconds()
        return RateLimitDecision(allowed=False, retry_after_seconds=max(0.0, retry_after))

    def check(self, key: BucketKey, now: datetime) -> RateLimitDecision:
        """Decide, and record the write if it is allowed."""
        decision = self.peek(key, now)
        if decision.allowed:
            self.record(key, now)
        else:
            logger.warning(
                "Rate limited %s/%s/%s, retry after %.1fs",
                key[0], key[1], key[2].value, decision.retry_after_seconds
            )
        return decision

    def record(self, key: BucketKey, now: datetime) -> None:
        if self.policy_for(key[2]) is None:
            return
        self._buckets.setdefault(key, deque()).append(now)

    def reset(self) -> None:
        self._buckets.clear()

    @property
    def bucket_count(self) -> int:
        return len(self._buckets)

    def sweep(self, now: datetime) -> int:
        """Drop buckets whose window has fully elapsed. Returns how many went."""
        before = len(self._buckets)
        for key in list(self._buckets):
            policy = self.policy_for(key[2])
            if policy is None:
                del self._buckets[key]
            else:
                self._prune(key, now, policy)
        swept = before - len(self._buckets)
        if swept:
            logger.debug("Swept %d idle rate-limit buckets", swept)
        return swept

    def _prune(self, key: BucketKey, now: datetime, policy: RateLimitPolicy) -> Deque[datetime]:
        bucket = self._buckets.get(key)
        if bucket is None:
            return deque()
        while bucket and (now - bucket[0]).total_seconds() >= policy.per_seconds:
            bucket.popleft()
        if not bucket:
            del self._buckets[key]
        return bucket

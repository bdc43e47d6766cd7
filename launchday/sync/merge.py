"""
Merged Log
==========

Client-side view of one log kind: confirmed server records plus
provisional local entries awaiting reconciliation.

INVARIANTS:
- Confirmed records are keyed by server id; a duplicate is ignored
- Confirmed records are presented in id order, never arrival order
- Merging the same batch twice leaves the log unchanged
- Provisional ids carry the "local-" prefix and never collide with
  server ids
"""

from __future__ import annotations
from bisect import insort
from dataclasses import dataclass, replace
from datetime import datetime
import itertools
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..contracts.base import LogKind
from ..contracts.records import InteractionRecord


logger = logging.getLogger(__name__)

LOCAL_ID_PREFIX = "local-"

_local_counter = itertools.count(1)


def new_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{next(_local_counter)}"


@dataclass(frozen=True)
class Confirmed:
    """A record the server has assigned an id to."""
    record: InteractionRecord

    @property
    def id(self) -> int:
        return self.record.id

    @property
    def is_provisional(self) -> bool:
        return False

    def to_dict(self) -> dict:
        data = self.record.to_dict()
        data['provisional'] = False
        return data


@dataclass(frozen=True)
class Provisional:
    """
    A local mutation shown before the server confirms it.

    acknowledged_at is set once the write succeeded; confirmed_id is the
    server id it was given.
    """
    local_id: str
    kind: LogKind
    payload: Mapping[str, Any]
    pending_since: datetime
    actor_id: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    confirmed_id: Optional[int] = None

    @property
    def id(self) -> str:
        return self.local_id

    @property
    def is_provisional(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {
            'id': self.local_id,
            'kind': self.kind.value,
            'payload': dict(self.payload),
            'created_at': self.pending_since.isoformat(),
            'actor_id': self.actor_id,
            'provisional': True,
            'acknowledged': self.acknowledged_at is not None,
        }


LogEntry = Union[Confirmed, Provisional]


class MergedLog:
    """Id-keyed ordered record set for one log kind."""

    def __init__(self, max_records: Optional[int] = None):
        self._max_records = max_records
        self._by_id: Dict[int, InteractionRecord] = {}
        self._ids: List[int] = []
        self._provisional: List[Provisional] = []

    def __len__(self) -> int:
        return len(self._ids) + len(self._provisional)

    @property
    def cursor(self) -> int:
        """Highest confirmed id seen; 0 when empty."""
        return self._ids[-1] if self._ids else 0

    @property
    def confirmed(self) -> Tuple[InteractionRecord, ...]:
        return tuple(self._by_id[i] for i in self._ids)

    @property
    def provisional(self) -> Tuple[Provisional, ...]:
        return tuple(self._provisional)

    @property
    def entries(self) -> Tuple[LogEntry, ...]:
        """Confirmed in id order, then provisional in the order they were made."""
        confirmed = [Confirmed(self._by_id[i]) for i in self._ids]
        return tuple(confirmed) + tuple(self._provisional)

    def contains(self, record_id: int) -> bool:
        return record_id in self._by_id

    def merge(self, records: Iterable[InteractionRecord]) -> int:
        """Insert records not yet present. Returns how many were new."""
        added = 0
        for record in records:
            if record.id in self._by_id:
                continue
            self._by_id[record.id] = record
            insort(self._ids, record.id)
            added += 1

        if added:
            self._drop_confirmed_provisionals()
            self._trim()
        return added

    def add_provisional(self, entry: Provisional) -> Provisional:
        if not entry.local_id.startswith(LOCAL_ID_PREFIX):
            raise ValueError(f"Provisional ids must start with {LOCAL_ID_PREFIX!r}")
        self._provisional.append(entry)
        return entry

    def acknowledge(
        self,
        local_id: str,
        at: datetime,
        record: Optional[InteractionRecord] = None
    ) -> Optional[Provisional]:
        """Mark a provisional entry as accepted by the server."""
        for i, entry in enumerate(self._provisional):
            if entry.local_id == local_id:
                acked = replace(
                    entry,
                    acknowledged_at=at,
                    confirmed_id=record.id if record else None,
                )
                self._provisional[i] = acked
                if record is not None and record.id in self._by_id:
                    del self._provisional[i]
                return acked
        return None

    def drop_provisional(self, local_id: Optional[str] = None) -> int:
        """Remove one provisional entry, or all of them when local_id is None."""
        before = len(self._provisional)
        if local_id is None:
            self._provisional.clear()
        else:
            self._provisional = [p for p in self._provisional if p.local_id != local_id]
        return before - len(self._provisional)

    def drop_acknowledged(self, before: datetime) -> int:
        """
        Remove provisional entries acknowledged at or before `before`.

        Called with the start instant of a read: anything the server
        accepted before that read began is covered by its result.
        """
        kept = [
            p for p in self._provisional
            if p.acknowledged_at is None or p.acknowledged_at > before
        ]
        dropped = len(self._provisional) - len(kept)
        self._provisional = kept
        return dropped

    def _drop_confirmed_provisionals(self) -> None:
        self._provisional = [
            p for p in self._provisional
            if p.confirmed_id is None or p.confirmed_id not in self._by_id
        ]

    def _trim(self) -> None:
        if self._max_records is None:
            return
        while len(self._ids) > self._max_records:
            oldest = self._ids.pop(0)
            del self._by_id[oldest]

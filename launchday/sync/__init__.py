"""
Sync Layer

Client-side convergence with the authoritative event log.

- transport: in-process and HTTP access to the store
- merge: id-keyed confirmed/provisional record sets
- client: per-kind polling tasks and the write path
- optimistic: provisional chat, reaction deltas, persisted votes
"""

from .transport import EventLogTransport, InProcessTransport, HttpTransport, TransportError
from .merge import MergedLog, Confirmed, Provisional, LogEntry, new_local_id, LOCAL_ID_PREFIX
from .client import SyncClient, LogView, DEFAULT_KINDS
from .optimistic import OptimisticWriteBuffer, ReactionTally, VoteBook, PendingDelta

__all__ = [
    'EventLogTransport', 'InProcessTransport', 'HttpTransport', 'TransportError',
    'MergedLog', 'Confirmed', 'Provisional', 'LogEntry', 'new_local_id', 'LOCAL_ID_PREFIX',
    'SyncClient', 'LogView', 'DEFAULT_KINDS',
    'OptimisticWriteBuffer', 'ReactionTally', 'VoteBook', 'PendingDelta',
]

"""
Launch Day Live-Event Core

Keeps many independent dashboard clients consistent with one slowly
updating authoritative state for a single time-bounded event, while the
mission timeline and telemetry run entirely client-side.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Immutable types shared by every layer
   - MUST NOT: hold behavior beyond validation and serialization

2. TEMPORAL LAYER (temporal/)
   - Responsibility: elapsed mission time, phase resolution
   - Allowed inputs: an injected clock and a reference instant
   - MUST NOT: do I/O or schedule itself

3. TELEMETRY LAYER (telemetry/)
   - Responsibility: deterministic telemetry, one-way stage latches
   - Allowed inputs: elapsed seconds
   - MUST NOT: depend on the network

4. STORE LAYER (store/)
   - Responsibility: authoritative append-only logs, rate limits, polls
   - Outputs: ReadBatch, WriteOutcome (rejections are data)

5. SYNC LAYER (sync/)
   - Responsibility: polling, id-keyed merge, optimistic writes
   - MUST NOT: clear rendered state on a failed poll

6. NOTIFICATIONS (notifications/) and LOCAL STORAGE (storage/)
   - Responsibility: persisted reminders, recomputed on every load

7. SURFACES (api/, dashboard.py, state/)
   - FastAPI server over the store; dashboard wiring and snapshots

CONSTRAINTS ENFORCED:
=====================
- No ambient "current event": a MissionContext is passed explicitly
- Every time read goes through an injectable LogicalClock
- Server ids are the only ordering; arrival order is never trusted
- Each live component owns its own cancellable task
"""

__version__ = "0.1.0"

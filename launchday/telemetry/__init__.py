"""
Telemetry Layer

Deterministic, client-local vehicle telemetry.

- synthesizer: closed-form ascent profile with seeded jitter
- staging: one-way stage/fairing latches and per-session history
- summary: post-launch peaks and milestones witnessed
"""

from .synthesizer import (
    TelemetrySynthesizer, synthesize, synthesize_batch, nominal_profile, telemetry_seed,
    stage_status_at, fairing_status_at,
    MAX_Q_WINDOW, APOGEE_T, SECO_T, FUEL_FLOOR_PCT,
)
from .staging import (
    StatusLatch, TelemetrySession, InvalidTransition,
    STAGE_TRANSITIONS, FAIRING_TRANSITIONS,
)
from .summary import FlightRecord, MissionSummary, summarize

__all__ = [
    'TelemetrySynthesizer', 'synthesize', 'synthesize_batch', 'nominal_profile', 'telemetry_seed',
    'stage_status_at', 'fairing_status_at',
    'MAX_Q_WINDOW', 'APOGEE_T', 'SECO_T', 'FUEL_FLOOR_PCT',
    'StatusLatch', 'TelemetrySession', 'InvalidTransition',
    'STAGE_TRANSITIONS', 'FAIRING_TRANSITIONS',
    'FlightRecord', 'MissionSummary', 'summarize',
]

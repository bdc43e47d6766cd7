"""
Contracts

Immutable types shared by every layer. No behavior beyond
validation and (de)serialization.
"""

from .base import (
    ErrorCode, Error, LogKind, ActorContext, MissionContext,
    ANONYMOUS_BUCKET, utc_now, ensure_utc, parse_instant,
)
from .records import (
    InteractionRecord, ReadBatch, WriteStatus, WriteOutcome,
    PollState, NotificationSchedule, votes_from_wire,
)
from .telemetry import StageStatus, FairingStatus, TelemetryPoint
from .weather import (
    LightningRisk, CriterionStatus, RangeStatus, GoNoGoCriterion, WeatherReport,
)

__all__ = [
    'ErrorCode', 'Error', 'LogKind', 'ActorContext', 'MissionContext',
    'ANONYMOUS_BUCKET', 'utc_now', 'ensure_utc', 'parse_instant',
    'InteractionRecord', 'ReadBatch', 'WriteStatus', 'WriteOutcome',
    'PollState', 'NotificationSchedule', 'votes_from_wire',
    'StageStatus', 'FairingStatus', 'TelemetryPoint',
    'LightningRisk', 'CriterionStatus', 'RangeStatus', 'GoNoGoCriterion', 'WeatherReport',
]

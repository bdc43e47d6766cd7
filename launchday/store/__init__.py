"""
Store Layer

Authoritative server-side state: append-only per-event logs, rate-limit
buckets, poll tallies, seeded weather and milestone announcements.
"""

from .event_log import (
    EventLogStore, InMemoryEventLogStore,
    ALLOWED_REACTIONS, MAX_CHAT_LENGTH, RECENT_REACTION_WINDOW_S, DEFAULT_READ_LIMIT,
)
from .rate_limit import RateLimiter, RateLimitPolicy, RateLimitDecision, DEFAULT_POLICIES
from .weather import WeatherOracle, site_profile
from .milestones import MilestoneAnnouncer

__all__ = [
    'EventLogStore', 'InMemoryEventLogStore',
    'ALLOWED_REACTIONS', 'MAX_CHAT_LENGTH', 'RECENT_REACTION_WINDOW_S', 'DEFAULT_READ_LIMIT',
    'RateLimiter', 'RateLimitPolicy', 'RateLimitDecision', 'DEFAULT_POLICIES',
    'WeatherOracle', 'site_profile',
    'MilestoneAnnouncer',
]

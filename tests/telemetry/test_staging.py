"""
One-Way Staging Tests

INVARIANTS TESTED:
1. Latches only move forward along their transition table
2. A clock regression never reattaches a stage or fairing
3. Session history stays time-ordered and bounded
"""

import pytest
from hypothesis import given, strategies as st

from launchday.contracts.telemetry import StageStatus, FairingStatus
from launchday.telemetry.staging import (
    StatusLatch, TelemetrySession, InvalidTransition,
    STAGE_TRANSITIONS, FAIRING_TRANSITIONS,
)
from launchday.telemetry.synthesizer import TelemetrySynthesizer


STAGE_ORDER = [StageStatus.ATTACHED, StageStatus.SEPARATED, StageStatus.LANDING, StageStatus.LANDED]


class TestStatusLatch:

    def test_forward_transition(self):
        latch = StatusLatch(StageStatus.ATTACHED, STAGE_TRANSITIONS)
        assert latch.advance(StageStatus.SEPARATED) == StageStatus.SEPARATED

    def test_regression_is_ignored(self):
        latch = StatusLatch(StageStatus.ATTACHED, STAGE_TRANSITIONS)
        latch.advance(StageStatus.LANDING)
        assert latch.advance(StageStatus.ATTACHED) == StageStatus.LANDING

    def test_session_opened_mid_flight_may_skip_states(self):
        latch = StatusLatch(StageStatus.ATTACHED, STAGE_TRANSITIONS)
        assert latch.can_transition(StageStatus.LANDED)
        assert latch.advance(StageStatus.LANDED) == StageStatus.LANDED

    def test_strict_transition_raises_on_regression(self):
        latch = StatusLatch(FairingStatus.ATTACHED, FAIRING_TRANSITIONS)
        latch.transition(FairingStatus.SEPARATED)
        with pytest.raises(InvalidTransition):
            latch.transition(FairingStatus.ATTACHED)

    def test_initial_state_must_be_in_table(self):
        with pytest.raises(ValueError):
            StatusLatch(StageStatus.ATTACHED, FAIRING_TRANSITIONS)


class TestTelemetrySession:

    def test_clock_regression_keeps_separated_stage(self):
        session = TelemetrySession("evt", TelemetrySynthesizer(seed=3))
        session.observe(200)
        point = session.observe(100)
        assert point.stage_status == StageStatus.SEPARATED
        assert session.stage_status == StageStatus.SEPARATED

    def test_clock_regression_truncates_history(self):
        session = TelemetrySession("evt", TelemetrySynthesizer(seed=3))
        for t in (150, 200, 250):
            session.observe(t)
        session.observe(180)
        assert [p.t_elapsed_seconds for p in session.history] == [150, 180]

    def test_history_is_bounded(self):
        session = TelemetrySession("evt", history_size=5)
        for t in range(10):
            session.observe(t)
        assert len(session.history) == 5
        assert session.latest.t_elapsed_seconds == 9

    def test_empty_session(self):
        session = TelemetrySession("evt")
        assert session.latest is None
        assert session.history == ()

    @given(st.lists(st.floats(min_value=-100, max_value=2000, allow_nan=False), min_size=1, max_size=40))
    def test_one_way_staging(self, elapsed_sequence):
        """Whatever order the clock delivers, visible status never regresses."""
        session = TelemetrySession("evt")
        seen = []
        for t in elapsed_sequence:
            point = session.observe(t)
            seen.append(STAGE_ORDER.index(point.stage_status))
        assert seen == sorted(seen)

    @given(st.lists(st.floats(min_value=-100, max_value=2000, allow_nan=False), min_size=1, max_size=40))
    def test_history_time_ordered(self, elapsed_sequence):
        session = TelemetrySession("evt", history_size=10)
        for t in elapsed_sequence:
            session.observe(t)
        stamps = [p.t_elapsed_seconds for p in session.history]
        assert stamps == sorted(set(stamps))

"""Sliding-window rate limiter."""

import pytest
from datetime import timedelta

from launchday.contracts.base import LogKind
from launchday.store.rate_limit import RateLimiter, RateLimitPolicy
from tests.fixtures import NOW


KEY = ("user-alice", "evt", LogKind.CHAT)


class TestRateLimiter:

    def test_policy_validation(self):
        with pytest.raises(ValueError):
            RateLimitPolicy(max_writes=0)
        with pytest.raises(ValueError):
            RateLimitPolicy(per_seconds=0)

    def test_window_allows_burst_up_to_max(self):
        limiter = RateLimiter(policies={LogKind.CHAT: RateLimitPolicy(max_writes=3, per_seconds=10)})
        for i in range(3):
            assert limiter.check(KEY, NOW + timedelta(seconds=i)).allowed
        decision = limiter.check(KEY, NOW + timedelta(seconds=3))
        assert not decision.allowed
        assert decision.retry_after_seconds == pytest.approx(7.0)
        assert limiter.check(KEY, NOW + timedelta(seconds=10)).allowed

    def test_rejections_do_not_extend_the_window(self):
        limiter = RateLimiter()
        limiter.check(KEY, NOW)
        for i in range(1, 5):
            assert not limiter.check(KEY, NOW + timedelta(seconds=i)).allowed
        assert limiter.check(KEY, NOW + timedelta(seconds=5)).allowed

    def test_peek_records_nothing(self):
        limiter = RateLimiter()
        assert limiter.peek(KEY, NOW).allowed
        assert limiter.peek(KEY, NOW).allowed
        assert limiter.check(KEY, NOW).allowed

    def test_unlimited_kinds(self):
        limiter = RateLimiter()
        key = ("system", "evt", LogKind.WEATHER)
        assert all(limiter.check(key, NOW).allowed for _ in range(10))

    def test_kinds_have_separate_buckets(self):
        limiter = RateLimiter()
        assert limiter.check(KEY, NOW).allowed
        assert limiter.check(("user-alice", "evt", LogKind.REACTION), NOW).allowed
        assert limiter.check(("user-alice", "other", LogKind.CHAT), NOW).allowed

    def test_reset(self):
        limiter = RateLimiter()
        limiter.check(KEY, NOW)
        limiter.reset()
        assert limiter.check(KEY, NOW).allowed

    def test_sweep_drops_idle_buckets_only(self):
        limiter = RateLimiter()
        for i in range(50):
            limiter.check((f"fan-{i}", "evt", LogKind.REACTION), NOW)
        limiter.check(KEY, NOW + timedelta(seconds=3))
        assert limiter.bucket_count == 51

        assert limiter.sweep(NOW + timedelta(seconds=4)) == 50
        assert limiter.bucket_count == 1
        assert not limiter.check(KEY, NOW + timedelta(seconds=4)).allowed

        assert limiter.sweep(NOW + timedelta(seconds=8)) == 1
        assert limiter.bucket_count == 0

    def test_sweep_drops_buckets_for_removed_policies(self):
        limiter = RateLimiter()
        limiter.check(KEY, NOW)
        del limiter.policies[LogKind.CHAT]
        assert limiter.sweep(NOW) == 1

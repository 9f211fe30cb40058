"""
Tests for the fixed-window rate limiter.
"""

import pytest

from claimgate.config import RATE_LIMITS
from claimgate.errors import RateLimitError
from claimgate.utils.rate_limiter import FixedWindowRateLimiter, enforce_rate_limit


class FakeClock:
    def __init__(self, start=1_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return FixedWindowRateLimiter(clock=clock)


class TestAllow:
    """Test FixedWindowRateLimiter.allow()."""

    def test_allows_up_to_max(self, limiter):
        results = [limiter.allow("k", 60_000, 3) for _ in range(4)]
        assert results == [True, True, True, False]

    def test_window_reset(self, limiter, clock):
        for _ in range(3):
            limiter.allow("k", 60_000, 3)
        assert limiter.allow("k", 60_000, 3) is False

        clock.advance(60_000)
        assert limiter.allow("k", 60_000, 3) is True

    def test_still_limited_just_before_reset(self, limiter, clock):
        limiter.allow("k", 60_000, 1)
        clock.advance(59_999)
        assert limiter.allow("k", 60_000, 1) is False

    def test_keys_are_independent(self, limiter):
        assert limiter.allow("a", 60_000, 1) is True
        assert limiter.allow("a", 60_000, 1) is False
        assert limiter.allow("b", 60_000, 1) is True

    def test_distinct_windows_per_route(self, limiter, clock):
        limiter.allow("fast", 1_000, 1)
        limiter.allow("slow", 60_000, 1)
        clock.advance(1_000)
        assert limiter.allow("fast", 1_000, 1) is True
        assert limiter.allow("slow", 60_000, 1) is False


class TestInfoAndSweep:
    """Test info() and sweep()."""

    def test_info_counts_down(self, limiter, clock):
        assert limiter.info("k", 60_000, 5)["remaining"] == 5
        limiter.allow("k", 60_000, 5)
        limiter.allow("k", 60_000, 5)
        info = limiter.info("k", 60_000, 5)
        assert info["remaining"] == 3
        assert info["reset_at"] == clock.now + 60_000

    def test_sweep_removes_only_expired(self, limiter, clock):
        limiter.allow("old", 1_000, 5)
        limiter.allow("new", 60_000, 5)
        clock.advance(1_000)

        assert limiter.sweep() == 1
        assert len(limiter) == 1
        assert limiter.info("new", 60_000, 5)["remaining"] == 4


class TestEnforceRateLimit:
    """Test enforce_rate_limit() with configured route rules."""

    def test_raises_after_configured_limit(self, limiter):
        rule = RATE_LIMITS["claim"]
        for _ in range(rule.max_requests):
            enforce_rate_limit(limiter, "claim", "1.2.3.4")

        with pytest.raises(RateLimitError) as exc:
            enforce_rate_limit(limiter, "claim", "1.2.3.4")
        assert exc.value.status_code == 429
        assert 1 <= exc.value.retry_after <= rule.window_ms // 1000

    def test_routes_do_not_share_counters(self, limiter):
        for _ in range(RATE_LIMITS["claim"].max_requests):
            enforce_rate_limit(limiter, "claim", "1.2.3.4")
        enforce_rate_limit(limiter, "eligibility", "1.2.3.4")

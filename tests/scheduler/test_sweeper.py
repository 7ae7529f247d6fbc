"""
Tests for the rate limit sweeper.
"""

import pytest
from unittest.mock import MagicMock

from api.rate_limiter import FixedWindowRateLimiter
from scheduler.sweeper import SWEEP_JOB_ID, RateLimitSweeper


@pytest.fixture
def limiters(fake_clock):
    return [
        FixedWindowRateLimiter(window_seconds=60, max_requests=5, name="global", clock=fake_clock),
        FixedWindowRateLimiter(window_seconds=60, max_requests=5, name="auth", clock=fake_clock),
    ]


class TestRateLimitSweeper:
    """Test cases for RateLimitSweeper."""

    def test_run_sweep_reports_per_limiter(self, limiters, fake_clock):
        """Expired counters are removed from every limiter."""
        global_limiter, auth_limiter = limiters
        global_limiter.check("a")
        global_limiter.check("b")
        auth_limiter.check("a")
        fake_clock.advance(61)
        auth_limiter.check("c")

        sweeper = RateLimitSweeper(limiters, interval_seconds=30)
        removed = sweeper.run_sweep()

        assert removed == {"global": 2, "auth": 1}
        assert len(global_limiter) == 0
        assert len(auth_limiter) == 1

    def test_run_sweep_isolates_failures(self, limiters, fake_clock):
        """A failing limiter is logged and the others are still swept."""
        broken = MagicMock(spec=FixedWindowRateLimiter)
        broken.name = "broken"
        broken.sweep.side_effect = RuntimeError("boom")

        limiters[0].check("a")
        fake_clock.advance(61)

        sweeper = RateLimitSweeper([broken] + limiters)
        removed = sweeper.run_sweep()

        assert removed == {"broken": 0, "global": 1, "auth": 0}

    def test_not_running_before_start(self, limiters):
        sweeper = RateLimitSweeper(limiters)
        assert sweeper.running is False

    @pytest.mark.asyncio
    async def test_start_schedules_job(self, limiters):
        sweeper = RateLimitSweeper(limiters, interval_seconds=45)
        sweeper.start()
        try:
            assert sweeper.running is True
            job = sweeper.scheduler.get_job(SWEEP_JOB_ID)
            assert job is not None
            assert job.trigger.interval.total_seconds() == 45
            assert job.max_instances == 1
        finally:
            sweeper.stop()

        assert sweeper.running is False

    @pytest.mark.asyncio
    async def test_start_twice_keeps_single_job(self, limiters):
        sweeper = RateLimitSweeper(limiters)
        sweeper.start()
        sweeper.start()
        try:
            assert len(sweeper.scheduler.get_jobs()) == 1
        finally:
            sweeper.stop()

    def test_stop_without_start_is_safe(self, limiters):
        sweeper = RateLimitSweeper(limiters)
        sweeper.stop()
        assert sweeper.running is False

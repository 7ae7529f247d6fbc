"""
Tests for the fixed-window rate limiter.
"""

import threading

import pytest

from api.rate_limiter import FixedWindowRateLimiter, RateLimitDecision


@pytest.fixture
def limiter(fake_clock):
    return FixedWindowRateLimiter(window_seconds=900, max_requests=3, name="test", clock=fake_clock)


class TestFixedWindowRateLimiter:
    """Test cases for FixedWindowRateLimiter."""

    def test_requests_up_to_limit_allowed(self, limiter):
        """The Nth request (N <= max) succeeds and the count becomes N."""
        for expected in range(1, 4):
            decision = limiter.check("10.0.0.1")
            assert decision.allowed is True
            assert decision.count == expected

    def test_request_over_limit_rejected(self, limiter):
        for _ in range(3):
            limiter.check("10.0.0.1")

        decision = limiter.check("10.0.0.1")
        assert decision.allowed is False
        assert decision.count == 4
        assert decision.remaining == 0

    def test_window_starts_at_first_request(self, limiter, fake_clock):
        start = fake_clock()
        decision = limiter.check("10.0.0.1")
        assert decision.reset_time == start + 900

    def test_request_at_reset_time_still_in_window(self, limiter, fake_clock):
        for _ in range(3):
            limiter.check("10.0.0.1")

        fake_clock.advance(900)
        assert limiter.check("10.0.0.1").allowed is False

    def test_request_after_reset_time_starts_new_window(self, limiter, fake_clock):
        """A request issued after resetTime succeeds and resets count to 1."""
        for _ in range(4):
            limiter.check("10.0.0.1")

        fake_clock.advance(900.001)
        decision = limiter.check("10.0.0.1")
        assert decision.allowed is True
        assert decision.count == 1
        assert decision.reset_time == fake_clock() + 900

    def test_keys_are_independent(self, limiter):
        for _ in range(4):
            limiter.check("10.0.0.1")

        decision = limiter.check("10.0.0.2")
        assert decision.allowed is True
        assert decision.count == 1

    def test_rejected_requests_keep_counting(self, limiter):
        for _ in range(10):
            limiter.check("10.0.0.1")
        assert limiter.get("10.0.0.1").count == 10

    def test_get_returns_snapshot(self, limiter):
        limiter.check("10.0.0.1")
        snapshot = limiter.get("10.0.0.1")
        snapshot.count = 100
        assert limiter.get("10.0.0.1").count == 1
        assert limiter.get("unknown") is None

    def test_reset_single_key(self, limiter):
        limiter.check("10.0.0.1")
        limiter.check("10.0.0.2")

        limiter.reset("10.0.0.1")
        assert limiter.get("10.0.0.1") is None
        assert limiter.get("10.0.0.2") is not None

    def test_reset_all(self, limiter):
        limiter.check("10.0.0.1")
        limiter.check("10.0.0.2")

        limiter.reset()
        assert len(limiter) == 0

    def test_sweep_removes_only_expired(self, limiter, fake_clock):
        limiter.check("old")
        fake_clock.advance(600)
        limiter.check("new")
        fake_clock.advance(301)

        removed = limiter.sweep()
        assert removed == 1
        assert limiter.get("old") is None
        assert limiter.get("new") is not None

    def test_sweep_with_explicit_time(self, limiter, fake_clock):
        limiter.check("10.0.0.1")
        assert limiter.sweep(now=fake_clock() + 901) == 1
        assert len(limiter) == 0

    def test_concurrent_checks_are_not_lost(self, fake_clock):
        """Concurrent checks for one key never lose an increment."""
        limiter = FixedWindowRateLimiter(window_seconds=900, max_requests=1000, clock=fake_clock)
        threads_count = 8
        per_thread = 250
        allowed = []
        lock = threading.Lock()

        def worker():
            local = 0
            for _ in range(per_thread):
                if limiter.check("shared").allowed:
                    local += 1
            with lock:
                allowed.append(local)

        threads = [threading.Thread(target=worker) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert limiter.get("shared").count == threads_count * per_thread
        assert sum(allowed) == 1000

    @pytest.mark.parametrize("window,max_requests", [(0, 5), (-1, 5), (60, 0)])
    def test_invalid_configuration(self, window, max_requests):
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(window_seconds=window, max_requests=max_requests)


class TestRateLimitDecision:
    """Test cases for decision headers."""

    def test_allowed_headers(self):
        decision = RateLimitDecision(allowed=True, limit=100, count=40, reset_time=2000.0)
        headers = decision.headers(now=1000.0)

        assert headers == {
            "X-RateLimit-Limit": "100",
            "X-RateLimit-Remaining": "60",
            "X-RateLimit-Reset": "2000",
        }

    def test_rejected_headers_include_retry_after(self):
        decision = RateLimitDecision(allowed=False, limit=5, count=6, reset_time=1900.5)
        headers = decision.headers(now=1000.0)

        assert headers["X-RateLimit-Remaining"] == "0"
        assert headers["Retry-After"] == "901"

    def test_retry_after_never_negative(self):
        decision = RateLimitDecision(allowed=False, limit=5, count=6, reset_time=1000.0)
        assert decision.retry_after(2000.0) == 0

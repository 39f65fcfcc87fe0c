"""
Tests for FixedWindowRateLimiter and the rate-limit middleware.

Covers:
    - The (N+1)-th request inside a window is rejected
    - The first request at the deadline opens a new window
    - Keys are counted independently
    - retry_after rounds up to whole seconds
    - Expired windows are swept
    - Middleware answers 429 with Retry-After and details.retryAfter
"""

import pytest

from farmagenius.services.rate_limiter import FixedWindowRateLimiter


class TestFixedWindowRateLimiter:

    @pytest.fixture(autouse=True)
    def _limiter(self, clock):
        self.clock = clock
        self.limiter = FixedWindowRateLimiter(clock=clock)

    def test_allows_up_to_limit_then_rejects(self):
        results = [self.limiter.allow("ip:1.1.1.1", 3, 1000) for _ in range(4)]
        assert results == [True, True, True, False]

    def test_rejection_does_not_extend_window(self):
        for _ in range(3):
            self.limiter.allow("k", 2, 1000)
        self.clock.advance(1000)
        assert self.limiter.allow("k", 2, 1000) is True

    def test_new_window_at_deadline(self):
        self.limiter.allow("k", 1, 1000)
        self.clock.advance(999)
        assert self.limiter.allow("k", 1, 1000) is False
        self.clock.advance(1)
        assert self.limiter.allow("k", 1, 1000) is True

    def test_keys_are_independent(self):
        assert self.limiter.allow("login:1.1.1.1", 1, 1000) is True
        assert self.limiter.allow("login:1.1.1.1", 1, 1000) is False
        assert self.limiter.allow("login:2.2.2.2", 1, 1000) is True
        assert self.limiter.allow("sensitive:1.1.1.1", 1, 1000) is True

    def test_remaining(self):
        assert self.limiter.remaining("k", 5) == 5
        self.limiter.allow("k", 5, 1000)
        self.limiter.allow("k", 5, 1000)
        assert self.limiter.remaining("k", 5) == 3

    def test_retry_after_rounds_up(self):
        self.limiter.allow("k", 1, 60_000)
        self.clock.advance(58_500)
        assert self.limiter.retry_after("k") == 2
        assert self.limiter.retry_after("unknown") == 0

    def test_sweep_drops_expired_windows(self):
        limiter = FixedWindowRateLimiter(clock=self.clock, sweep_interval=3)
        limiter.allow("a", 10, 100)
        limiter.allow("b", 10, 100)
        assert len(limiter) == 2

        self.clock.advance(200)
        # Third call triggers the sweep before opening its own window
        limiter.allow("c", 10, 100)
        assert len(limiter) == 1

    def test_reset(self):
        self.limiter.allow("k", 1, 1000)
        self.limiter.reset()
        assert len(self.limiter) == 0
        assert self.limiter.allow("k", 1, 1000) is True


class TestRateLimitMiddleware:

    @pytest.mark.asyncio
    async def test_general_limit_returns_429_envelope(self, app, client):
        from farmagenius.config import settings

        limiter = app.state.rate_limiter
        for _ in range(settings.rate_limit_requests):
            assert limiter.allow("ip:127.0.0.1", settings.rate_limit_requests, settings.rate_limit_window_ms)

        response = await client.get("/user/settings")

        assert response.status_code == 429
        body = response.json()
        assert body["success"] is False
        assert body["details"]["retryAfter"] >= 1
        assert response.headers["Retry-After"] == str(body["details"]["retryAfter"])

    @pytest.mark.asyncio
    async def test_health_is_not_limited(self, app, client):
        from farmagenius.config import settings

        limiter = app.state.rate_limiter
        for _ in range(settings.rate_limit_requests):
            limiter.allow("ip:127.0.0.1", settings.rate_limit_requests, settings.rate_limit_window_ms)

        response = await client.get("/health")
        assert response.status_code == 200

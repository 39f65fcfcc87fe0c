"""
FarmaGenius Backend — Fixed-Window Rate Limiter
================================================

What:  In-memory per-key request counter with a reset deadline.
How:   One `_Window(count, reset_at)` per key, guarded by a lock. The
       instance is created by the app factory and stored on
       `app.state.rate_limiter`; handlers reach it through dependencies
       (see dependencies.rate_limit) and middleware through app state.
Who:   RateLimitMiddleware (general per-IP limit) and route dependencies
       (login, sensitive and stats limits).

Algorithm: Fixed Window Counter
    allow(key, N, W):
    1. No window for key, or now ≥ reset_at → count = 1, reset_at = now + W, allow
    2. count ≥ N                             → reject (window unchanged)
    3. Otherwise                             → count += 1, allow

    The (N+1)-th call inside a window is rejected; the first call at or after
    the deadline starts a new window. Bursts straddling a boundary can reach
    close to 2×N in a short span; that is accepted behavior of a fixed window.

Eviction:
    Every `sweep_interval` calls, windows whose deadline has passed are
    dropped, so memory is bounded by the keys active in the last window.

Counters live in process memory only and are lost on restart.
For multi-worker deployments each worker enforces its own limits.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    """Default clock: monotonic milliseconds."""
    return time.monotonic() * 1000


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """
    Thread-safe fixed-window limiter keyed by arbitrary strings.

    Keys are namespaced by the caller ("ip:1.2.3.4", "login:1.2.3.4",
    "sensitive:1.2.3.4") so different limits never share a counter.

    Args:
        clock:          Returns the current time in milliseconds (injectable for tests)
        sweep_interval: Number of allow() calls between expired-key sweeps
    """

    def __init__(self, clock: Optional[Clock] = None, sweep_interval: int = 1000):
        self._clock: Clock = clock or monotonic_ms
        self._sweep_interval = max(1, sweep_interval)
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._calls = 0

    def allow(self, key: str, max_requests: int, window_ms: float) -> bool:
        """Count one request for `key`; False once the window's budget is spent."""
        with self._lock:
            now = self._clock()
            self._calls += 1
            if self._calls % self._sweep_interval == 0:
                self._sweep(now)

            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + window_ms)
                return True

            if window.count >= max_requests:
                return False

            window.count += 1
            return True

    def remaining(self, key: str, max_requests: int) -> int:
        """Requests left in the current window (full budget if none is open)."""
        with self._lock:
            window = self._windows.get(key)
            if window is None or self._clock() >= window.reset_at:
                return max_requests
            return max(0, max_requests - window.count)

    def retry_after(self, key: str) -> int:
        """Whole seconds until `key`'s window resets (0 if no window is open)."""
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                return 0
            remaining_ms = window.reset_at - self._clock()
            if remaining_ms <= 0:
                return 0
            return int(-(-remaining_ms // 1000))

    def reset(self) -> None:
        """Drop every window."""
        with self._lock:
            self._windows.clear()
            self._calls = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _sweep(self, now: float) -> None:
        # Caller holds the lock
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("Rate limiter swept %d expired keys", len(expired))

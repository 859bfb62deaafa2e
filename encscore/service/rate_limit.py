"""
Rate limiting for the scoring node.

Sliding window limiter keyed by sender address.
"""

import time
import threading
from collections import defaultdict, deque
from typing import Dict, Optional
from dataclasses import dataclass


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    remaining: int
    reset_at: float
    retry_after: Optional[float] = None


class RateLimiter:
    """
    Sliding window rate limiter.

    Thread-safe; one deque of hit timestamps per key.
    """

    def __init__(self, rpm: int, window_seconds: int = 60):
        """
        Args:
            rpm: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._limit = max(1, rpm)
        self._window = window_seconds
        self._hits: Dict[str, deque] = defaultdict(deque)
        self._lock = threading.RLock()

    def allow(self, key: str) -> bool:
        return self.check(key).allowed

    def check(self, key: str) -> RateLimitResult:
        """Record a hit for `key` unless the window is full."""
        now = time.time()
        window_start = now - self._window

        with self._lock:
            q = self._hits[key]

            while q and q[0] < window_start:
                q.popleft()

            current_count = len(q)
            remaining = max(0, self._limit - current_count)
            reset_at = (q[0] + self._window) if q else (now + self._window)

            if current_count >= self._limit:
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after=max(0, q[0] + self._window - now)
                )

            q.append(now)

            return RateLimitResult(
                allowed=True,
                remaining=remaining - 1,
                reset_at=reset_at
            )

    def reset(self, key: Optional[str] = None) -> None:
        """Reset one key, or every key when `key` is None."""
        with self._lock:
            if key:
                self._hits.pop(key, None)
            else:
                self._hits.clear()

"""
In-process rate limiting.

The public OSRM demo server asks clients to stay around one request per second;
the routing client can share one limiter across its worker threads.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field


@dataclass
class TokenBucketRateLimiter:
    """Thread-safe token bucket limiter for N events per minute (best-effort)."""

    max_per_minute: float
    burst: float | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        rpm = float(self.max_per_minute)
        if rpm <= 0:
            raise ValueError("max_per_minute must be > 0")
        self._capacity = float(self.burst) if self.burst is not None else max(1.0, rpm / 60.0)
        self._tokens = self._capacity
        self._refill_per_sec = rpm / 60.0
        self._last = time.monotonic()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last
        if elapsed <= 0:
            return
        self._tokens = min(self._capacity, self._tokens + elapsed * self._refill_per_sec)
        self._last = now

    def try_acquire(self, tokens: float = 1.0) -> float:
        """Take tokens if available; otherwise return the seconds to wait (0.0 on success)."""
        need = float(tokens)
        with self._lock:
            self._refill()
            if self._tokens >= need:
                self._tokens -= need
                return 0.0
            return (need - self._tokens) / self._refill_per_sec

    def acquire(self, tokens: float = 1.0) -> None:
        if float(tokens) <= 0:
            return
        while True:
            wait_s = self.try_acquire(tokens)
            if wait_s <= 0:
                return
            time.sleep(min(1.0, max(0.05, wait_s)))

"""
Sliding window request limiter.

Each client key keeps the timestamps of its recent requests. A request is
refused once ``limit`` of them fall inside the window; the answer says how
long until the oldest one leaves it. Counts live in process memory, so each
worker process limits on its own.
"""
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    retry_after_seconds: float = 0.0


class RateLimiter:
    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def check(self, key: str, now: Optional[float] = None) -> RateLimitResult:
        """Count one request for ``key`` unless it is over the limit."""
        if now is None:
            now = self._clock()

        with self._lock:
            bucket = self._buckets[key]
            cutoff = now - self.window_seconds
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()

            if len(bucket) >= self.limit:
                retry_after = bucket[0] + self.window_seconds - now
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    limit=self.limit,
                    retry_after_seconds=max(0.0, retry_after),
                )

            bucket.append(now)
            return RateLimitResult(allowed=True, remaining=self.limit - len(bucket), limit=self.limit)

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._buckets.clear()
            else:
                self._buckets.pop(key, None)

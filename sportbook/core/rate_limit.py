from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable


class SlidingWindowRateLimiter:
    """Per-key sliding window counter.

    One instance lives on ``app.state`` for the lifetime of the process and is
    handed to request handlers through a dependency. Stale keys are dropped by
    :meth:`sweep`, which the scheduler calls periodically.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            self._evict(hits, now)
            if len(hits) >= self.limit:
                return False
            hits.append(now)
            return True

    def sweep(self) -> int:
        now = self._clock()
        removed = 0
        with self._lock:
            for key in list(self._hits):
                hits = self._hits[key]
                self._evict(hits, now)
                if not hits:
                    del self._hits[key]
                    removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._hits)

    def _evict(self, hits: deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()

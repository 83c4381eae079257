"""Sliding-window request ceilings keyed by client address."""

from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Callable, Deque, Dict

from app.errors import RateLimitError


class SlidingWindowRateLimiter:
    """Allows at most ``max_requests`` per ``window_seconds`` for each client."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        message: str = RateLimitError.public_message,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive.")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive.")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = Lock()

    def hit(self, client: str) -> None:
        """Record a request for ``client`` or raise ``RateLimitError``."""
        now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            hits = self._hits.setdefault(client, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= self.max_requests:
                retry_after = max(0.0, hits[0] + self.window_seconds - now)
                raise RateLimitError(self.message, retry_after=retry_after)
            hits.append(now)
            self._prune(cutoff)

    def _prune(self, cutoff: float) -> None:
        stale = [client for client, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for client in stale:
            del self._hits[client]

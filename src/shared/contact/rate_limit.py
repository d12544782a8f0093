"""In-memory sliding-window rate limiting for contact submissions."""

import math
import time
from collections import deque
from threading import Lock
from typing import Callable, Deque, Dict, Optional

from fastapi import Request
from pydantic import BaseModel, ConfigDict

# Shared bucket for callers whose address cannot be determined
UNKNOWN_CLIENT = "unknown"

# Sweep every identity once the store holds this many
_SWEEP_THRESHOLD = 10_000


class RateLimitDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed: bool
    remaining_time: int = 0  # seconds until the next admission, 0 when allowed


class RateLimiter:
    """
    Per-client sliding window limiter.

    Each identity keeps a deque of admission timestamps. A request is admitted
    while fewer than max_requests timestamps fall inside the window. State
    lives in process memory only.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._store: Dict[str, Deque[float]] = {}
        self._lock = Lock()

    def check(self, identity: Optional[str]) -> RateLimitDecision:
        """Admit and record the request, or report how long to wait."""
        key = identity.strip() if identity and identity.strip() else UNKNOWN_CLIENT
        now = self._clock()

        with self._lock:
            if len(self._store) >= _SWEEP_THRESHOLD:
                self._sweep(now)

            request_times = self._store.setdefault(key, deque())
            while request_times and request_times[0] <= now - self.window_seconds:
                request_times.popleft()

            if len(request_times) >= self.max_requests:
                retry_after = math.ceil(request_times[0] + self.window_seconds - now)
                return RateLimitDecision(allowed=False, remaining_time=max(retry_after, 1))

            request_times.append(now)
            return RateLimitDecision(allowed=True)

    def reset(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def _sweep(self, now: float) -> None:
        cutoff = now - self.window_seconds
        for key in list(self._store):
            request_times = self._store[key]
            while request_times and request_times[0] <= cutoff:
                request_times.popleft()
            if not request_times:
                del self._store[key]


def get_client_ip(request: Request) -> str:
    """Extracts client IP address, considering common proxy headers."""
    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        first = x_forwarded_for.split(",")[0].strip()
        if first:
            return first
    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip and x_real_ip.strip():
        return x_real_ip.strip()
    client = request.client
    if client and client.host:
        return client.host
    return UNKNOWN_CLIENT

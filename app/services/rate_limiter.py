# app/services/rate_limiter.py
"""
Fixed-window request counter for scan submissions, keyed by device identity
(or client IP before a device is known).

Best-effort and in-process: counts reset on restart. One instance lives on
app.state for the lifetime of the application; tests call reset().
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from app.config import settings


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float          # epoch seconds

    @property
    def headers(self) -> dict:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }


@dataclass
class _Window:
    count: int
    reset_at: float


class ScanRateLimiter:
    def __init__(self, limit: Optional[int] = None, window_seconds: Optional[int] = None):
        self.limit = limit if limit is not None else settings.SCAN_RATE_LIMIT
        self.window_seconds = window_seconds if window_seconds is not None else settings.SCAN_RATE_WINDOW_SECONDS
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, now: Optional[float] = None) -> RateLimitResult:
        """Count one request for key and report whether it is admitted."""
        now = time.time() if now is None else now
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                window = _Window(count=0, reset_at=now + self.window_seconds)
                self._windows[key] = window

            if window.count >= self.limit:
                return RateLimitResult(False, self.limit, 0, window.reset_at)

            window.count += 1
            return RateLimitResult(True, self.limit, self.limit - window.count, window.reset_at)

    def reset(self):
        with self._lock:
            self._windows.clear()

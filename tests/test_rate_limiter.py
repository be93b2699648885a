# tests/test_rate_limiter.py
"""Fixed-window scan throttle."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import threading
from app.services.rate_limiter import ScanRateLimiter


class TestScanRateLimiter:
    def test_admits_up_to_limit(self):
        limiter = ScanRateLimiter(limit=3, window_seconds=60)
        results = [limiter.hit("dev-1", now=1000.0) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]

    def test_keys_are_independent(self):
        limiter = ScanRateLimiter(limit=1, window_seconds=60)
        assert limiter.hit("dev-1", now=1000.0).allowed
        assert limiter.hit("dev-2", now=1000.0).allowed
        assert not limiter.hit("dev-1", now=1000.0).allowed

    def test_window_rolls_over(self):
        limiter = ScanRateLimiter(limit=1, window_seconds=60)
        assert limiter.hit("dev-1", now=1000.0).allowed
        assert not limiter.hit("dev-1", now=1060.0).allowed
        assert limiter.hit("dev-1", now=1060.5).allowed

    def test_headers(self):
        limiter = ScanRateLimiter(limit=300, window_seconds=60)
        headers = limiter.hit("dev-1", now=1000.2).headers

        assert headers == {
            "X-RateLimit-Limit": "300",
            "X-RateLimit-Remaining": "299",
            "X-RateLimit-Reset": "1061",
        }

    def test_reset_clears_counts(self):
        limiter = ScanRateLimiter(limit=1, window_seconds=60)
        limiter.hit("dev-1", now=1000.0)
        limiter.reset()
        assert limiter.hit("dev-1", now=1000.0).allowed

    def test_concurrent_hits_never_over_admit(self):
        limiter = ScanRateLimiter(limit=50, window_seconds=60)
        admitted = []

        def worker():
            for _ in range(20):
                if limiter.hit("dev-1", now=1000.0).allowed:
                    admitted.append(1)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(admitted) == 50

"""
Fixed-Window Rate Limiter for Gateway
=====================================

Guards every externally-callable endpoint with a per-key request counter.

Design:
- In-memory map {key: {count, reset_at_ms}} for O(1) lookups
- Window starts on the first request for a key and lasts window_ms
- Expired entries are evicted lazily on access and by a periodic sweep
  (claimgate/tasks/limiter_sweep.py)
- Route rules come from config.RATE_LIMITS, key = "<route>:<caller>"

LIMITATION: state is process-local. Running several gateway processes gives
each its own counters, so the effective limit is multiplied by the process
count. Multi-process deployments need a shared counter store with atomic
increment-and-expire behind the same allow() interface.
"""

import logging
import math
import threading
import time
from typing import Callable, Dict, Optional

from claimgate.config import RATE_LIMITS
from claimgate.errors import RateLimitError

logger = logging.getLogger(__name__)


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class FixedWindowRateLimiter:
    """
    Per-key fixed-window counter.

    Args:
        clock: returns the current time in milliseconds (monotonic by default,
            injectable for tests)
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or _monotonic_ms
        self._entries: Dict[str, Dict[str, int]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str, window_ms: int, max_requests: int) -> bool:
        """
        Count one request for `key` and report whether it is within the limit.

        A missing or elapsed window restarts at count=1 (always allowed).
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now >= entry["reset_at"]:
                self._entries[key] = {"count": 1, "reset_at": now + window_ms}
                return True

            entry["count"] += 1
            return entry["count"] <= max_requests

    def info(self, key: str, window_ms: int, max_requests: int) -> Dict[str, int]:
        """Remaining requests and window reset time for `key` (read-only)."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now >= entry["reset_at"]:
                return {"remaining": max_requests, "reset_at": now + window_ms}
            return {
                "remaining": max(0, max_requests - entry["count"]),
                "reset_at": entry["reset_at"],
            }

    def retry_after_seconds(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now >= entry["reset_at"]:
                return 0
            return max(1, math.ceil((entry["reset_at"] - now) / 1000))

    def sweep(self) -> int:
        """Drop every entry whose window has elapsed. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now >= entry["reset_at"]]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"🧹 Cleaned up {len(expired)} expired rate limit entries")
        return len(expired)

    def reset(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def enforce_rate_limit(limiter: FixedWindowRateLimiter, route: str, caller_key: str):
    """
    Apply the configured rule for `route` to `caller_key`.

    Raises:
        RateLimitError: when the caller is over the limit for this window.
    """
    rule = RATE_LIMITS[route]
    key = f"{route}:{caller_key}"
    if limiter.allow(key, rule.window_ms, rule.max_requests):
        return

    retry_after = limiter.retry_after_seconds(key) or math.ceil(rule.window_ms / 1000)
    logger.warning(f"⚠️  Rate limit exceeded: route={route} caller={caller_key}")
    raise RateLimitError(
        "Too many requests. Please try again later.",
        retry_after=retry_after,
    )

"""
auth/ratelimit.py -- Fixed-window attempt counter keyed by an arbitrary string.

Algorithm (per key, state = {count, reset_time}):
  - No record, or now is past reset_time: start a fresh window with count=1,
    reset_time = now + window. Allowed.
  - count >= max_attempts: refused. The counter is not incremented further.
  - Otherwise: count += 1. Allowed.

The window is anchored at the first attempt and resets fully on the first
call after it ends -- it does not slide. With max_attempts=5 exactly five
calls inside one window are allowed and the sixth is refused.

State lives for the life of the RateLimiter instance; nothing is persisted.
Whenever a fresh window is opened, windows that have already ended are
dropped, so memory is bounded by the keys seen within one window length.
Keys are independent of account state, so rate limiting and lockout are
separate mechanisms.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from core.clock import Clock, utc_now

logger = logging.getLogger("campaignauth.auth.ratelimit")


@dataclass
class _Window:
    count: int
    reset_time: datetime


class RateLimiter:
    """In-memory fixed-window limiter.

    Usage:
        limiter = RateLimiter()
        if not limiter.check("login_" + email, 5, timedelta(minutes=15)):
            ...refuse...
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def check(self, key: str, max_attempts: int, window: timedelta) -> bool:
        """Record an attempt for key and return True if it is within the limit."""
        now = self._clock()
        record = self._windows.get(key)
        if record is None or now > record.reset_time:
            self._prune(now)
            self._windows[key] = _Window(count=1, reset_time=now + window)
            return True
        if record.count >= max_attempts:
            logger.warning("Rate limit exceeded for %r (window resets at %s)", key, record.reset_time.isoformat())
            return False
        record.count += 1
        return True

    def check_ms(self, key: str, max_attempts: int, window_ms: int) -> bool:
        """check() with the window given in milliseconds."""
        return self.check(key, max_attempts, timedelta(milliseconds=window_ms))

    def retry_after(self, key: str) -> timedelta:
        """Time until key's current window resets; zero when there is no live window."""
        record = self._windows.get(key)
        if record is None:
            return timedelta(0)
        return max(record.reset_time - self._clock(), timedelta(0))

    def _prune(self, now: datetime) -> None:
        expired = [k for k, w in self._windows.items() if now > w.reset_time]
        for k in expired:
            del self._windows[k]

    def __len__(self) -> int:
        """Number of keys currently tracked."""
        return len(self._windows)

    def reset(self, key: str) -> None:
        self._windows.pop(key, None)

    def clear(self) -> None:
        self._windows.clear()

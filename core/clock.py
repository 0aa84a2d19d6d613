"""
core/clock.py -- The injected "now" source.

Every expiry, lockout and rate-limit comparison in auth/ goes through a Clock
rather than calling datetime.now() inline, so tests can substitute a clock
they advance by hand.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

# Any zero-argument callable returning an aware UTC datetime.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

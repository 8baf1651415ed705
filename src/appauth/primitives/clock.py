"""Injectable time source.

All expiry arithmetic in this package is done in integer milliseconds since
the epoch so that persisted instants survive JSON round trips unchanged.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    def current_time_millis(self) -> int: ...


class SystemClock:
    """Clock backed by the system wall clock."""

    def current_time_millis(self) -> int:
        return int(time.time() * 1000)


SYSTEM_CLOCK = SystemClock()


def expiration_from_expires_in(expires_in: int | None, clock: Clock) -> int | None:
    """Convert a relative lifetime in seconds into an absolute instant in ms."""
    if expires_in is None:
        return None
    return clock.current_time_millis() + int(expires_in) * 1000

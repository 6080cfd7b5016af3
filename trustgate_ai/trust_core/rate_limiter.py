"""Fixed-window hourly limiter for auto approvals.

The window is keyed by the UTC hour (``floor(now, 1h)``). When the hour
changes the counter starts again from zero; the roll happens lazily on the
next call rather than on a timer.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def window_start(moment: datetime) -> datetime:
    """Return the start of the UTC hour containing ``moment``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    current_count: int


class HourlyRateLimiter:
    """Counts auto approvals in the current hour.

    ``try_consume`` performs the check and the increment under one lock, so
    concurrent callers can never push the count past the limit.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or _utc_now
        self._lock = threading.Lock()
        self._window: Optional[datetime] = None
        self._count = 0

    def _roll(self) -> None:
        current = window_start(self._clock())
        if current != self._window:
            self._window = current
            self._count = 0

    def try_consume(self, limit: int) -> RateLimitResult:
        """
        Take one slot if fewer than ``limit`` have been used this hour.

        Args:
            limit: Maximum number of slots per hour. A limit of 0 never allows.

        Returns:
            Whether a slot was taken, and the count after the attempt.
        """
        with self._lock:
            self._roll()
            if self._count >= limit:
                return RateLimitResult(allowed=False, current_count=self._count)
            self._count += 1
            return RateLimitResult(allowed=True, current_count=self._count)

    def peek(self) -> int:
        """Return the number of slots used in the current hour."""
        with self._lock:
            self._roll()
            return self._count

    def reset(self) -> None:
        with self._lock:
            self._window = None
            self._count = 0

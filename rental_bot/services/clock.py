"""Time sources.

Every component that needs "now" receives a Clock, so rental and trial logic
can be exercised against a virtual clock instead of the wall clock.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from rental_bot.logging_config import get_logger
from rental_bot.utils.timestamps import ensure_utc

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Clock:
    """Source of the current time (UTC, timezone-aware)."""

    def now(self) -> datetime:
        raise NotImplementedError

    def now_millis(self) -> int:
        """Current time as Unix timestamp in milliseconds."""
        return (self.now() - EPOCH) // timedelta(milliseconds=1)


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class VirtualClock(Clock):
    """Manually driven clock for tests and time travel through the control API.

    Starts at the given instant (or the current wall-clock time) and only moves
    when advanced. Time never moves backwards except through reset().

    Args:
        start: initial virtual time, defaults to now
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._lock = threading.RLock()
        self._now = ensure_utc(start) if start is not None else datetime.now(timezone.utc)
        self._offset = timedelta(0)

    def now(self) -> datetime:
        with self._lock:
            return self._now

    @property
    def offset(self) -> timedelta:
        """Total time advanced since construction or the last reset."""
        with self._lock:
            return self._offset

    def advance(self, delta: timedelta) -> datetime:
        """Move time forward.

        Args:
            delta: amount to advance

        Returns:
            New virtual time

        Raises:
            ValueError: if delta is negative
        """
        if delta < timedelta(0):
            raise ValueError("Cannot advance time backwards, negative values are not allowed.")
        with self._lock:
            self._now += delta
            self._offset += delta
            return self._now

    def set_time(self, value: datetime) -> datetime:
        """Jump to a specific instant.

        Raises:
            ValueError: if value is before the current virtual time
        """
        value = ensure_utc(value)
        with self._lock:
            if value < self._now:
                raise ValueError(
                    f"cannot set time backwards, current: {self._now.isoformat()}, requested: {value.isoformat()}"
                )
            self._offset += value - self._now
            self._now = value
            return self._now

    def reset(self) -> datetime:
        """Go back to the real current time."""
        with self._lock:
            self._now = datetime.now(timezone.utc)
            self._offset = timedelta(0)
            logger.info("virtual_clock_reset", new_time=self._now.isoformat())
            return self._now

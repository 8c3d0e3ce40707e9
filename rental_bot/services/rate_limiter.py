"""Fixed-window outbound send throttle, one window per chat.

The window is fixed, not sliding: a burst at the end of one window followed by
a burst at the start of the next can reach twice the nominal rate for a short
time. That is accepted here. reset() drops every window; it reclaims memory
for quiet chats and is not needed for correctness.
"""

import threading
from dataclasses import dataclass
from typing import Optional

from rental_bot.logging_config import get_logger
from rental_bot.services.clock import Clock

logger = get_logger(__name__)

DEFAULT_WINDOW_MS = 60_000


@dataclass
class RateWindow:
    """Send counter for one chat."""

    count: int
    reset_time_ms: int


class FixedWindowRateLimiter:
    """Per-chat fixed-window counter.

    Args:
        clock: time source
        limit_per_window: sends allowed per chat per window
        window_ms: window length in milliseconds
    """

    def __init__(self, clock: Clock, limit_per_window: int, window_ms: int = DEFAULT_WINDOW_MS):
        if limit_per_window <= 0:
            raise ValueError("limit_per_window must be positive")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        self._clock = clock
        self.limit_per_window = limit_per_window
        self.window_ms = window_ms
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def allow(self, chat_id: str) -> bool:
        """Count a send for the chat if the window still has room.

        Returns:
            True if the send may proceed, False if the chat is throttled
        """
        now = self._clock.now_millis()
        with self._lock:
            window = self._windows.get(chat_id)
            if window is None or now > window.reset_time_ms:
                window = RateWindow(count=0, reset_time_ms=now + self.window_ms)
                self._windows[chat_id] = window

            if window.count >= self.limit_per_window:
                return False

            window.count += 1
            return True

    def get_window(self, chat_id: str) -> Optional[RateWindow]:
        """Current window of a chat (a copy), or None if the chat has none."""
        with self._lock:
            window = self._windows.get(chat_id)
            return RateWindow(window.count, window.reset_time_ms) if window else None

    def tracked_chats(self) -> int:
        """Number of chats with a window."""
        with self._lock:
            return len(self._windows)

    def reset(self) -> int:
        """Drop all windows.

        Returns:
            Number of windows dropped
        """
        with self._lock:
            dropped = len(self._windows)
            self._windows.clear()
        logger.debug("rate_limiter_reset", windows_dropped=dropped)
        return dropped

"""
Fixed-size rolling window admission control for outbound traffic.
"""

import logging
import math
import threading
import time
from typing import Callable, Tuple

from catalog_proxy.errors import LocalRateLimitError
from catalog_proxy.models import RateUsage

logger = logging.getLogger(__name__)


class RateGovernor:
    """
    Counts requests in a one-minute window shared by the whole process.

    The window opens when the governor is created and is replaced by a new
    one as soon as a request arrives more than `window_seconds` after it
    opened. Within a window at most `max_requests` requests are admitted.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize governor.

        Args:
            max_requests: Requests admitted per window
            window_seconds: Window length in seconds
            clock: Monotonic time source in seconds
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._window_start = clock()

    def _roll_window(self, now: float):
        # Caller must hold the lock
        if now - self._window_start > self.window_seconds:
            self._count = 0
            self._window_start = now

    def try_acquire(self) -> Tuple[bool, int]:
        """
        Admit one request if the window has room.

        Returns:
            (allowed, retry_after) where retry_after is the number of whole
            seconds until the window resets, or 0 when allowed
        """
        with self._lock:
            now = self._clock()
            self._roll_window(now)

            if self._count >= self.max_requests:
                elapsed_ms = (now - self._window_start) * 1000
                retry_after = math.ceil((self.window_seconds * 1000 - elapsed_ms) / 1000)
                return False, max(1, retry_after)

            self._count += 1
            return True, 0

    def allow(self) -> bool:
        allowed, _ = self.try_acquire()
        return allowed

    def acquire(self):
        """
        Admit one request or raise.

        Raises:
            LocalRateLimitError: If the window is full
        """
        allowed, retry_after = self.try_acquire()
        if not allowed:
            logger.warning("Rate window full, retry in %ss", retry_after)
            raise LocalRateLimitError(retry_after)

    def usage(self) -> RateUsage:
        """Current window usage, without counting as a request."""
        with self._lock:
            now = self._clock()
            elapsed = now - self._window_start
            if elapsed > self.window_seconds:
                count, resets_in = 0, self.window_seconds
            else:
                count = self._count
                resets_in = max(0, math.ceil(self.window_seconds - elapsed))

            return RateUsage(
                requests=count,
                limit=self.max_requests,
                window_seconds=self.window_seconds,
                resets_in=resets_in,
            )

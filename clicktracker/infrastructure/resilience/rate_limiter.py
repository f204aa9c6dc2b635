"""Implementation of a rate limiter.

Controls the frequency of outgoing requests to the CRM so we stay under its
request quota. Uses a sliding log of admitted request timestamps, which
gives exact admission decisions at window boundaries. The O(n) purge is
fine for the small limits the CRM imposes (~100 per window).
"""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Optional

from clicktracker.domain.interfaces.clock import Clock
from clicktracker.infrastructure.clock import SystemClock

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 100  # Max 100 requests...
DEFAULT_TIME_WINDOW_SECONDS = 60.0  # ...per 60 seconds


class SlidingWindowRateLimiter:
    """Sliding window rate limiter.

    All methods are synchronous and never await, so under asyncio each call
    runs to completion without interleaving. A threaded caller would need a
    lock around can_make_request().
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        time_window: float = DEFAULT_TIME_WINDOW_SECONDS,
        clock: Optional[Clock] = None,
    ):
        """Initializes the rate limiter.

        Args:
            max_requests: Maximum number of requests allowed in the time window.
            time_window: The time window in seconds.
            clock: Time source (defaults to the system clock).
        """
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if time_window <= 0:
            raise ValueError("time_window must be positive")
        self.max_requests = max_requests
        self.time_window = time_window
        self.clock = clock or SystemClock()
        self.timestamps: Deque[float] = deque()
        logger.info(f"RateLimiter initialized: {max_requests} requests / {time_window} seconds")

    def _cleanup_timestamps(self, now: float) -> None:
        """Removes timestamps that have left the window."""
        window_start = now - self.time_window
        while self.timestamps and self.timestamps[0] <= window_start:
            self.timestamps.popleft()

    def can_make_request(self) -> bool:
        """Admits a request if the window has room, recording it.

        Returns:
            True if the request was admitted, False otherwise (nothing recorded).
        """
        now = self.clock.now()
        self._cleanup_timestamps(now)
        if len(self.timestamps) >= self.max_requests:
            logger.debug("Rate limit reached, request denied.")
            return False
        self.timestamps.append(now)
        return True

    def get_wait_time(self) -> float:
        """Seconds until the oldest recorded request falls out of the window."""
        if not self.timestamps:
            return 0.0
        oldest_timestamp = self.timestamps[0]
        return max(0.0, self.time_window - (self.clock.now() - oldest_timestamp))

    def get_remaining_requests(self) -> int:
        now = self.clock.now()
        self._cleanup_timestamps(now)
        return max(0, self.max_requests - len(self.timestamps))

    def get_reset_time(self) -> datetime:
        """When the oldest recorded request expires (now if the window is empty)."""
        if not self.timestamps:
            return datetime.fromtimestamp(self.clock.now(), tz=timezone.utc)
        return datetime.fromtimestamp(self.timestamps[0] + self.time_window, tz=timezone.utc)

"""Wall-clock implementation of the Clock interface."""

import time

from clicktracker.domain.interfaces.clock import Clock


class SystemClock(Clock):
    """Reads time.time()."""

    def now(self) -> float:
        return time.time()

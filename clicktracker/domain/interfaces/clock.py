"""Interface for reading the current time.

The rate limiter and the field-definition cache read time through this so
tests can move time forward without sleeping.
"""

import abc


class Clock(abc.ABC):
    """Abstract Base Class for a time source."""

    @abc.abstractmethod
    def now(self) -> float:
        """Returns the current time as epoch seconds."""
        pass

"""Service for executing CRM calls with automatic retries.

Implements exponential backoff with a uniform random jitter for transient
failures (5xx, timeouts, connection errors). Authentication failures and
local conditions (rate limiter rejection, unknown field) are never retried.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from clicktracker.domain.errors import ApiError, FieldNotFoundError, RateLimitExceededError
from clicktracker.domain.events.api_events import ApiCallFailed, RetryScheduled
from clicktracker.domain.models.common import BackoffPolicy

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0
DEFAULT_MAX_JITTER_SECONDS = 1.0

# Local conditions: retrying cannot change the outcome.
NON_RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    RateLimitExceededError,
    FieldNotFoundError,
)


def dispatch_event(event: Any) -> None:
    logger.debug(f"EVENT: {event}")


class ApiRetryService:
    """Runs an async operation, retrying transient failures with backoff."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        max_jitter: float = DEFAULT_MAX_JITTER_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Optional[Callable[[], float]] = None,
    ):
        """Initializes the ApiRetryService.

        Args:
            max_retries: Total number of attempts (the first call counts).
            base_delay: Delay in seconds before the second attempt; doubles after.
            max_jitter: Upper bound (exclusive) of the random delay added each time.
            sleep: Coroutine used to wait between attempts.
            jitter: Returns the random component; defaults to uniform [0, max_jitter).
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_jitter = max_jitter
        self._sleep = sleep
        self._jitter = jitter or (lambda: random.random() * self.max_jitter)
        logger.info(
            f"ApiRetryService initialized: max_retries={max_retries}, "
            f"base_delay={base_delay}s, max_jitter={max_jitter}s"
        )

    @classmethod
    def from_policy(cls, policy: BackoffPolicy, **kwargs: Any) -> "ApiRetryService":
        return cls(
            max_retries=policy["max_retries"],
            base_delay=policy["base_delay"],
            max_jitter=policy["max_jitter"],
            **kwargs,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Deterministic part of the delay after a failed attempt (1-based)."""
        return self.base_delay * (2 ** (attempt - 1))

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        if isinstance(error, NON_RETRYABLE_EXCEPTIONS):
            return False
        if isinstance(error, ApiError) and error.is_auth_error:
            return False
        return True

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[Any]],
        endpoint_name: Optional[str] = None,
    ) -> Any:
        """Executes an async zero-argument operation with retries.

        Args:
            operation: The CRM call to run; called once per attempt.
            endpoint_name: Label used in logs and events.

        Returns:
            The result of the first successful attempt.

        Raises:
            Exception: The last error, once attempts are exhausted, or the
                first non-retryable error.
        """
        effective_endpoint = endpoint_name or getattr(operation, "__name__", "operation")

        for attempt in range(1, self.max_retries + 1):
            try:
                return await operation()
            except Exception as e:
                if not self.is_retryable(e):
                    logger.error(
                        f"Non-retryable error calling {effective_endpoint} on attempt {attempt}: {e}"
                    )
                    dispatch_event(ApiCallFailed(endpoint=effective_endpoint, error_type=type(e).__name__,
                                                 error_message=str(e), attempts=attempt))
                    raise
                if attempt == self.max_retries:
                    logger.error(
                        f"Max retries ({self.max_retries}) reached for {effective_endpoint}. Last error: {e}"
                    )
                    dispatch_event(ApiCallFailed(endpoint=effective_endpoint, error_type=type(e).__name__,
                                                 error_message=str(e), attempts=attempt))
                    raise

                delay = self.backoff_delay(attempt) + self._jitter()
                logger.warning(
                    f"Attempt {attempt}/{self.max_retries} calling {effective_endpoint} failed "
                    f"({type(e).__name__}: {e}), retrying in {delay:.2f}s..."
                )
                dispatch_event(RetryScheduled(endpoint=effective_endpoint, attempt_number=attempt,
                                              delay_seconds=delay))
                await self._sleep(delay)

        # Unreachable: the loop either returns or raises.
        raise RuntimeError("execute_with_retry exited without a result")

"""Domain Events related to CRM API calls and resilience.

Examples include events for when calls are rejected by the rate limiter,
retried, fail, or succeed.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when a CRM call is about to be made."""
    method: str
    endpoint: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when a CRM call succeeds."""
    method: str
    endpoint: str
    latency_ms: float
    status_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a CRM call fails definitively (after retries)."""
    endpoint: str
    error_type: str
    error_message: str
    attempts: int = 1
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallRejected(DomainEvent):
    """Event triggered when the rate limiter denies a CRM call."""
    endpoint: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed CRM call."""
    endpoint: str
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class FieldDefinitionsRefreshed(DomainEvent):
    """Event triggered when the field-definition cache is reloaded."""
    field_count: int
    timestamp: float = field(default_factory=time.time)
